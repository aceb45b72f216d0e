"""Tests for example encoding and schema checks."""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated
from uuid import UUID

import pytest
from pydantic import BaseModel, Field

from routes_to_openapi_generator.errors import DocumentValidationError, ExampleValidationError
from routes_to_openapi_generator.markers import Discriminated, sealed, variant
from routes_to_openapi_generator.type_resolver import TypeResolver, class_key, variant_tags
from routes_to_openapi_generator.verify import (
    check_component_schemas,
    encode_example,
    to_json_schema,
    validate_example,
)


class Level(enum.Enum):
    LOW = "low"


@sealed("kind")
class Animal:
    pass


@variant("dog")
@dataclass
class Dog(Animal):
    name: str


class Owner(BaseModel):
    full_name: str = Field(alias="fullName")
    pets: list[Dog]
    since: datetime.date


def test_encode_example_walks_nested_values() -> None:
    """Nested objects keep aliases, variant tags and JSON leaf forms."""
    owner = Owner(fullName="Ada", pets=[Dog("Rex")], since=datetime.date(2024, 1, 2))
    assert encode_example(owner) == {
        "fullName": "Ada",
        "pets": [{"kind": "dog", "name": "Rex"}],
        "since": "2024-01-02",
    }


@dataclass
class Fish:
    fins: int


@dataclass
class Snail:
    speed: float


@dataclass
class Tank:
    fish: list[Annotated[Fish | Snail, Discriminated("species", {"fish": Fish, "snail": Snail})]]


def test_encode_example_tags_discriminated_variants() -> None:
    """Tags collected from the resolved type are added to variant payloads."""
    tags = variant_tags(TypeResolver().resolve(Tank))
    assert tags == {class_key(Fish): ("species", "fish"), class_key(Snail): ("species", "snail")}
    assert encode_example(Tank([Fish(2)]), tags) == {"fish": [{"species": "fish", "fins": 2}]}
    assert encode_example(Fish(2)) == {"fins": 2}


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Level.LOW, "low"),
        (UUID(int=1), "00000000-0000-0000-0000-000000000001"),
        (Decimal("1.5"), "1.5"),
        ({"a": (1, 2)}, {"a": [1, 2]}),
        (None, None),
    ],
    ids=["enum", "uuid", "decimal", "mapping", "none"],
)
def test_encode_example_leaf_values(value: object, expected: object) -> None:
    """Leaf values use their JSON representation."""
    assert encode_example(value) == expected


def test_nullable_becomes_type_union() -> None:
    """OpenAPI nullable markers become JSON-Schema null alternatives."""
    assert to_json_schema({"type": "string", "nullable": True}) == {"type": ["string", "null"]}
    assert to_json_schema({"type": "string", "enum": ["a"], "nullable": True}) == {
        "type": ["string", "null"],
        "enum": ["a", None],
    }
    assert to_json_schema({"nullable": True, "allOf": [{"$ref": "#/x"}]}) == {
        "anyOf": [{"allOf": [{"$ref": "#/x"}]}, {"type": "null"}]
    }


def test_validate_example_resolves_component_references() -> None:
    """References into components are followed during validation."""
    components = {
        "Dog": {
            "type": "object",
            "properties": {"name": {"type": "string"}, "owner": {"type": "string", "nullable": True}},
            "required": ["name"],
        }
    }
    schema = {"type": "array", "items": {"$ref": "#/components/schemas/Dog"}}
    validate_example([{"name": "Rex", "owner": None}], schema=schema, components=components, label="dogs")
    with pytest.raises(ExampleValidationError, match=r"dogs: .*\$\[0\]"):
        validate_example([{"owner": "Ada"}], schema=schema, components=components, label="dogs")


def test_malformed_component_schema_is_rejected() -> None:
    """Component schemas must be valid schemas themselves."""
    check_component_schemas({"Fine": {"type": "object"}})
    with pytest.raises(DocumentValidationError, match="Broken"):
        check_component_schemas({"Broken": {"type": "objekt"}})
