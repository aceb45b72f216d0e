"""Immutable, language-neutral descriptors of declared types.

Descriptors compare structurally: two descriptors are equal when their shapes
are equal, whatever Python class they were resolved from.  The ``key`` of a
named descriptor identifies its source type for forward references and is
left out of comparisons.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from .json_types import JSONPrimitive


@dataclass(frozen=True)
class PrimitiveDescriptor:
    """Terminal value with an OpenAPI type and optional format."""

    schema_type: str
    format: Optional[str] = None
    enum: tuple[JSONPrimitive, ...] = ()
    minimum: Optional[int] = None
    maximum: Optional[int] = None


@dataclass(frozen=True)
class ArrayDescriptor:
    """Ordered sequence of one element type."""

    item: TypeDescriptor
    unique_items: bool = False


@dataclass(frozen=True)
class MapDescriptor:
    """Mapping from string keys to one value type."""

    value: TypeDescriptor


@dataclass(frozen=True)
class NullableDescriptor:
    """A value that may also be ``null``."""

    inner: TypeDescriptor


@dataclass(frozen=True)
class FieldDescriptor:
    """One field of an object descriptor."""

    name: str
    descriptor: TypeDescriptor
    required: bool
    nullable: bool
    description: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class ObjectDescriptor:
    """Record type with an ordered field sequence."""

    name: str
    fields: tuple[FieldDescriptor, ...]
    type_args: tuple[TypeDescriptor, ...] = ()
    description: Optional[str] = None
    key: str = field(default="", compare=False)

    def field_named(self, name: str) -> Optional[FieldDescriptor]:
        """Return the field with wire name ``name``, if any."""
        for item in self.fields:
            if item.name == name:
                return item
        return None


@dataclass(frozen=True)
class UnionDescriptor:
    """Closed tagged union, one object variant per discriminator tag."""

    name: str
    discriminator: str
    variants: tuple[tuple[str, TypeDescriptor], ...]
    description: Optional[str] = None
    key: str = field(default="", compare=False)


@dataclass(frozen=True)
class ForwardRefDescriptor:
    """Placeholder for a type whose resolution was still in progress."""

    key: str
    name: str = field(default="", compare=False)


type TypeDescriptor = Union[
    PrimitiveDescriptor,
    ArrayDescriptor,
    MapDescriptor,
    NullableDescriptor,
    ObjectDescriptor,
    UnionDescriptor,
    ForwardRefDescriptor,
]


def strip_nullable(descriptor: TypeDescriptor) -> tuple[TypeDescriptor, bool]:
    """Split a descriptor into its non-null shape and a nullable flag."""
    if isinstance(descriptor, NullableDescriptor):
        return descriptor.inner, True
    return descriptor, False
