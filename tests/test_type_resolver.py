"""Unit tests for type descriptor resolution."""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, field
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar
from uuid import UUID

import pytest
from pydantic import BaseModel, Field

from routes_to_openapi_generator.descriptors import (
    ArrayDescriptor,
    ForwardRefDescriptor,
    MapDescriptor,
    NullableDescriptor,
    ObjectDescriptor,
    PrimitiveDescriptor,
    UnionDescriptor,
)
from routes_to_openapi_generator.errors import (
    OpenHierarchyError,
    ResolutionError,
    UnsupportedKeyTypeError,
)
from routes_to_openapi_generator.markers import (
    Description,
    Discriminated,
    Float32,
    Int32,
    PathParam,
    UInt32,
    sealed,
    variant,
)
from routes_to_openapi_generator.type_resolver import TypeResolver

T = TypeVar("T")


class Color(str, enum.Enum):
    RED = "red"
    GREEN = "green"


@dataclass
class Person:
    """Someone with a name."""

    name: str
    middle_name: Optional[str]
    nickname: Optional[str] = None
    age: int = 0
    email: str = field(default="", metadata={"description": "Contact address"})


@dataclass
class Box(Generic[T]):
    value: T


@dataclass
class Node:
    label: str
    children: list[Node]


class Item(BaseModel):
    sku: str


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int


class Account(BaseModel):
    display_name: str = Field(alias="displayName", description="Shown in the UI")
    balance: Optional[float] = None


@dataclass
class ParamFields:
    a: Annotated[str, PathParam("Identifier")]
    b: Annotated[int, Description("A counter")]


@sealed("kind")
class Shape:
    pass


@variant("circle")
@dataclass
class Circle(Shape):
    radius: float


@variant("square")
@dataclass
class Square(Shape):
    side: float


@sealed("kind")
class OpenShape:
    pass


@dataclass
class Untagged(OpenShape):
    size: int


@sealed("kind")
class Empty:
    pass


@dataclass
class Cat:
    meows: bool


@dataclass
class Dog:
    barks: bool


def _resolve(type_ref: Any) -> Any:
    return TypeResolver().resolve(type_ref)


def test_primitives_keep_their_numeric_kind() -> None:
    """Integer and number widths must survive resolution exactly."""
    assert _resolve(int) == PrimitiveDescriptor("integer", "int64")
    assert _resolve(Int32) == PrimitiveDescriptor("integer", "int32")
    assert _resolve(float) == PrimitiveDescriptor("number", "double")
    assert _resolve(Float32) == PrimitiveDescriptor("number", "float")
    assert _resolve(UInt32) == PrimitiveDescriptor("integer", "int64", minimum=0, maximum=2**32 - 1)
    assert _resolve(bool) == PrimitiveDescriptor("boolean")
    assert _resolve(datetime.datetime) == PrimitiveDescriptor("string", "date-time")
    assert _resolve(UUID) == PrimitiveDescriptor("string", "uuid")


def test_enums_and_literals_become_value_lists() -> None:
    """Enum members and literal values should be listed in declaration order."""
    assert _resolve(Color) == PrimitiveDescriptor("string", enum=("red", "green"))
    assert _resolve(Literal[1, 2]) == PrimitiveDescriptor("integer", enum=(1, 2))


def test_containers_recurse_into_items() -> None:
    """Sequences, sets and string-keyed mappings wrap their element types."""
    assert _resolve(list[str]) == ArrayDescriptor(PrimitiveDescriptor("string"))
    assert _resolve(tuple[int, ...]) == ArrayDescriptor(PrimitiveDescriptor("integer", "int64"))
    assert _resolve(set[str]) == ArrayDescriptor(PrimitiveDescriptor("string"), unique_items=True)
    assert _resolve(dict[str, bool]) == MapDescriptor(PrimitiveDescriptor("boolean"))
    assert _resolve(dict[Color, bool]) == MapDescriptor(PrimitiveDescriptor("boolean"))


def test_non_string_map_keys_are_rejected() -> None:
    """Mappings must be keyed by strings on the wire."""
    with pytest.raises(UnsupportedKeyTypeError, match="int"):
        _resolve(dict[int, str])


@pytest.mark.parametrize(
    "type_ref",
    [Any, object, tuple[int, str], list, T],
    ids=["any", "object", "fixed-tuple", "bare-list", "typevar"],
)
def test_unstructured_types_are_rejected(type_ref: Any) -> None:
    """Types without a static shape cannot become schemas."""
    with pytest.raises(ResolutionError):
        _resolve(type_ref)


def test_optional_marks_nullable_without_dropping() -> None:
    """Optional values resolve to a nullable wrapper of the inner type."""
    assert _resolve(Optional[str]) == NullableDescriptor(PrimitiveDescriptor("string"))
    assert _resolve(int | None) == NullableDescriptor(PrimitiveDescriptor("integer", "int64"))


def test_required_and_nullable_are_independent() -> None:
    """A field without a default is required even when it accepts null."""
    descriptor = _resolve(Person)
    assert isinstance(descriptor, ObjectDescriptor)
    flags = {item.name: (item.required, item.nullable) for item in descriptor.fields}
    assert flags == {
        "name": (True, False),
        "middle_name": (True, True),
        "nickname": (False, True),
        "age": (False, False),
        "email": (False, False),
    }
    assert descriptor.description == "Someone with a name."
    email = descriptor.field_named("email")
    assert email is not None and email.description == "Contact address"


def test_field_markers_are_collected() -> None:
    """Parameter and description markers attach to the field descriptor."""
    descriptor = _resolve(ParamFields)
    assert isinstance(descriptor, ObjectDescriptor)
    a, b = descriptor.fields
    assert (a.location, a.description) == ("path", "Identifier")
    assert (b.location, b.description) == (None, "A counter")
    assert b.descriptor == PrimitiveDescriptor("integer", "int64")


def test_pydantic_aliases_and_descriptions() -> None:
    """Pydantic fields use their wire alias and declared description."""
    descriptor = _resolve(Account)
    assert isinstance(descriptor, ObjectDescriptor)
    display = descriptor.field_named("displayName")
    assert display is not None
    assert display.description == "Shown in the UI"
    assert display.required is True
    balance = descriptor.field_named("balance")
    assert balance is not None and (balance.required, balance.nullable) == (False, True)


def test_generic_instantiations_resolve_differently() -> None:
    """Box[int] and Box[str] are different shapes sharing one declared name."""
    resolver = TypeResolver()
    int_box = resolver.resolve(Box[int])
    str_box = resolver.resolve(Box[str])
    assert isinstance(int_box, ObjectDescriptor) and isinstance(str_box, ObjectDescriptor)
    assert int_box.name == str_box.name == "Box"
    assert int_box != str_box
    assert int_box.fields[0].descriptor == PrimitiveDescriptor("integer", "int64")
    assert resolver.resolve(Box[int]) is int_box


def test_pydantic_generic_models_substitute_arguments() -> None:
    """Parametrised pydantic models carry their type arguments."""
    descriptor = _resolve(Page[Item])
    assert isinstance(descriptor, ObjectDescriptor)
    assert descriptor.name == "Page"
    assert len(descriptor.type_args) == 1
    items = descriptor.field_named("items")
    assert items is not None and isinstance(items.descriptor, ArrayDescriptor)
    assert isinstance(items.descriptor.item, ObjectDescriptor)
    assert items.descriptor.item.name == "Item"


def test_unbound_generic_is_rejected() -> None:
    """A generic type used without arguments has no concrete shape."""
    with pytest.raises(ResolutionError, match="unbound"):
        _resolve(Box)


def test_recursive_types_use_forward_references() -> None:
    """A type met again during its own resolution becomes a forward reference."""
    resolver = TypeResolver()
    descriptor = resolver.resolve(Node)
    assert isinstance(descriptor, ObjectDescriptor)
    children = descriptor.field_named("children")
    assert children is not None and isinstance(children.descriptor, ArrayDescriptor)
    forward = children.descriptor.item
    assert isinstance(forward, ForwardRefDescriptor)
    assert forward.name == "Node"
    assert resolver.descriptor_for_key(forward.key) == descriptor


def test_sealed_hierarchy_resolves_to_union() -> None:
    """Every tagged subclass becomes a variant carrying the discriminator."""
    descriptor = _resolve(Shape)
    assert isinstance(descriptor, UnionDescriptor)
    assert descriptor.discriminator == "kind"
    tags = [tag for tag, _ in descriptor.variants]
    assert tags == ["circle", "square"]
    for tag, variant_descriptor in descriptor.variants:
        assert isinstance(variant_descriptor, ObjectDescriptor)
        kind = variant_descriptor.field_named("kind")
        assert kind is not None, f"variant {tag} lacks the discriminator"
        assert kind.descriptor == PrimitiveDescriptor("string", enum=(tag,))
        assert kind.required


def test_variant_resolved_alone_matches_union_member() -> None:
    """A variant resolved on its own is the same descriptor as inside the union."""
    resolver = TypeResolver()
    circle = resolver.resolve(Circle)
    union = resolver.resolve(Shape)
    assert isinstance(union, UnionDescriptor)
    assert dict(union.variants)["circle"] == circle


def test_untagged_subclass_makes_hierarchy_open() -> None:
    """A concrete subclass without a tag cannot be enumerated."""
    with pytest.raises(OpenHierarchyError, match="Untagged"):
        _resolve(OpenShape)


def test_sealed_base_without_variants_is_rejected() -> None:
    """A closed hierarchy needs at least one variant."""
    with pytest.raises(OpenHierarchyError, match="no variants"):
        _resolve(Empty)


def test_untagged_union_is_rejected() -> None:
    """Unions of several types need an explicit discriminator."""
    with pytest.raises(OpenHierarchyError):
        _resolve(Cat | Dog)


def test_discriminated_marker_builds_union() -> None:
    """Explicit tags turn a plain union into a discriminated one."""
    pet = Annotated[Cat | Dog, Discriminated("species", {"cat": Cat, "dog": Dog}, name="Pet")]
    descriptor = _resolve(pet)
    assert isinstance(descriptor, UnionDescriptor)
    assert descriptor.name == "Pet"
    assert descriptor.discriminator == "species"
    cat = dict(descriptor.variants)["cat"]
    assert isinstance(cat, ObjectDescriptor)
    assert [item.name for item in cat.fields] == ["species", "meows"]


def test_discriminated_marker_must_cover_members() -> None:
    """Every union member needs a tag."""
    partial = Annotated[Cat | Dog, Discriminated("species", {"cat": Cat})]
    with pytest.raises(OpenHierarchyError, match="Dog"):
        _resolve(partial)
