"""Named schema registry with structural deduplication."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from copy import deepcopy
from types import MappingProxyType
from typing import Any, Optional

from .descriptors import (
    ArrayDescriptor,
    ForwardRefDescriptor,
    MapDescriptor,
    NullableDescriptor,
    ObjectDescriptor,
    PrimitiveDescriptor,
    TypeDescriptor,
    UnionDescriptor,
)
from .errors import NamingCollisionError, ResolutionError
from .json_types import COMPONENTS_REF_PREFIX, JSONObject, JSONValue, MutableJSONObject
from .naming import SchemaNamer, default_schema_namer, descriptor_display_name, generic_suffix
from .type_resolver import TypeResolver

logger = logging.getLogger(__name__)

_COMPONENT_NAME_RE = re.compile(r"^[a-zA-Z0-9._-]+$")


class SchemaRegistry:
    """Turn descriptors into named component schemas.

    Registration is idempotent: a descriptor whose source type, or whose shape,
    is already registered returns the existing name and emits nothing new.
    Distinct shapes that would share a candidate name are renamed
    deterministically, first with a suffix derived from their generic
    arguments and then with a counter.
    """

    def __init__(self, resolver: TypeResolver, *, namer: Optional[SchemaNamer] = None) -> None:
        self._resolver = resolver
        self._namer: SchemaNamer = namer or default_schema_namer
        self._names_by_shape: dict[TypeDescriptor, str] = {}
        self._names_by_key: dict[str, str] = {}
        self._shapes: dict[str, TypeDescriptor] = {}
        self._schemas: dict[str, MutableJSONObject] = {}

    @property
    def resolver(self) -> TypeResolver:
        """Resolver feeding this registry."""
        return self._resolver

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def schema(self, name: str) -> JSONObject:
        """Return a copy of the registered schema ``name``."""
        return deepcopy(self._schemas[name])

    def register_type(self, type_ref: Any) -> str:
        """Resolve ``type_ref`` and register it as a named schema."""
        return self.register(self._resolver.resolve(type_ref))

    def register(self, descriptor: TypeDescriptor) -> str:
        """Register a named descriptor and return its schema name.

        Args:
            descriptor (TypeDescriptor): Object, union or forward reference descriptor.

        Returns:
            str: Component schema name bound to the descriptor's shape.
        """
        if isinstance(descriptor, ForwardRefDescriptor):
            bound = self._names_by_key.get(descriptor.key)
            if bound is not None:
                return bound
            return self.register(self._resolver.descriptor_for_key(descriptor.key))
        if not isinstance(descriptor, (ObjectDescriptor, UnionDescriptor)):
            raise ResolutionError(
                f"{descriptor_display_name(descriptor)} is not an object or union type "
                "and has no schema name"
            )

        bound = self._names_by_key.get(descriptor.key) if descriptor.key else None
        if bound is not None:
            return bound
        bound = self._names_by_shape.get(descriptor)
        if bound is not None:
            self._bind_key(descriptor, bound)
            return bound

        name = self._allocate_name(descriptor)
        self._names_by_shape[descriptor] = name
        self._shapes[name] = descriptor
        self._bind_key(descriptor, name)
        # Reserve the name before rendering so self-references resolve to it.
        self._schemas[name] = {}
        if isinstance(descriptor, ObjectDescriptor):
            self._schemas[name] = self._render_object(descriptor)
        else:
            self._schemas[name] = self._render_union(descriptor)
        logger.debug("Registered schema %s", name)
        return name

    def schema_for_type(self, type_ref: Any) -> MutableJSONObject:
        """Resolve ``type_ref`` and return its inline schema or reference."""
        return self.schema_for(self._resolver.resolve(type_ref))

    def schema_for(self, descriptor: TypeDescriptor) -> MutableJSONObject:
        """Return the inline schema of ``descriptor``, using ``$ref`` for named types."""
        if isinstance(descriptor, PrimitiveDescriptor):
            return _render_primitive(descriptor)
        if isinstance(descriptor, ArrayDescriptor):
            schema: MutableJSONObject = {
                "type": "array",
                "items": self.schema_for(descriptor.item),
            }
            if descriptor.unique_items:
                schema["uniqueItems"] = True
            return schema
        if isinstance(descriptor, MapDescriptor):
            return {"type": "object", "additionalProperties": self.schema_for(descriptor.value)}
        if isinstance(descriptor, NullableDescriptor):
            return nullable_schema(self.schema_for(descriptor.inner))
        return {"$ref": COMPONENTS_REF_PREFIX + self.register(descriptor)}

    def snapshot(self) -> Mapping[str, JSONObject]:
        """Immutable copy of every registered schema, keyed by name."""
        return MappingProxyType({name: deepcopy(schema) for name, schema in self._schemas.items()})

    def _bind_key(self, descriptor: ObjectDescriptor | UnionDescriptor, name: str) -> None:
        if descriptor.key:
            self._names_by_key.setdefault(descriptor.key, name)

    def _allocate_name(self, descriptor: TypeDescriptor) -> str:
        candidate = self._namer(descriptor)
        if not isinstance(candidate, str) or not _COMPONENT_NAME_RE.match(candidate):
            raise NamingCollisionError(
                f"Schema namer returned invalid component name {candidate!r} "
                f"for {descriptor_display_name(descriptor)}"
            )
        if candidate not in self._shapes:
            return candidate

        base = candidate + generic_suffix(descriptor)
        if base not in self._shapes:
            return base
        # At most len(self._shapes) names are taken, so one of these is free.
        for index in range(2, len(self._shapes) + 3):
            name = f"{base}{index}"
            if name not in self._shapes:
                return name
        raise NamingCollisionError(
            f"Could not find a free schema name for {descriptor_display_name(descriptor)} "
            f"after {len(self._shapes) + 1} attempts"
        )

    def _render_object(self, descriptor: ObjectDescriptor) -> MutableJSONObject:
        properties: MutableJSONObject = {}
        required: list[JSONValue] = []
        for item in descriptor.fields:
            prop = self.schema_for(item.descriptor)
            if item.nullable:
                prop = nullable_schema(prop)
            if item.description:
                prop = described_schema(prop, item.description)
            properties[item.name] = prop
            if item.required:
                required.append(item.name)

        schema: MutableJSONObject = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        if descriptor.description:
            schema["description"] = descriptor.description
        return schema

    def _render_union(self, descriptor: UnionDescriptor) -> MutableJSONObject:
        one_of: list[JSONValue] = []
        mapping: MutableJSONObject = {}
        for tag, variant_descriptor in descriptor.variants:
            reference = COMPONENTS_REF_PREFIX + self.register(variant_descriptor)
            one_of.append({"$ref": reference})
            mapping[tag] = reference

        schema: MutableJSONObject = {
            "oneOf": one_of,
            "discriminator": {"propertyName": descriptor.discriminator, "mapping": mapping},
        }
        if descriptor.description:
            schema["description"] = descriptor.description
        return schema


def nullable_schema(schema: MutableJSONObject) -> MutableJSONObject:
    """Mark a schema nullable; references are wrapped since ``$ref`` ignores siblings."""
    if "$ref" in schema:
        return {"nullable": True, "allOf": [schema]}
    marked = dict(schema)
    marked["nullable"] = True
    return marked


def described_schema(schema: MutableJSONObject, description: str) -> MutableJSONObject:
    """Attach a description to a schema without placing siblings next to ``$ref``."""
    if "$ref" in schema:
        return {"allOf": [schema], "description": description}
    described = dict(schema)
    described["description"] = description
    return described


def schema_references(node: Any) -> set[str]:
    """Collect component schema names referenced anywhere in ``node``."""
    found: set[str] = set()
    pending: list[Any] = [node]
    while pending:
        current = pending.pop()
        if isinstance(current, Mapping):
            reference = current.get("$ref")
            if isinstance(reference, str) and reference.startswith(COMPONENTS_REF_PREFIX):
                found.add(reference.removeprefix(COMPONENTS_REF_PREFIX))
            elif isinstance(reference, str):
                found.add(reference)
            pending.extend(current.values())
        elif isinstance(current, (list, tuple)):
            pending.extend(current)
    return found


def _render_primitive(descriptor: PrimitiveDescriptor) -> MutableJSONObject:
    schema: MutableJSONObject = {"type": descriptor.schema_type}
    if descriptor.format:
        schema["format"] = descriptor.format
    if descriptor.enum:
        schema["enum"] = list(descriptor.enum)
    if descriptor.minimum is not None:
        schema["minimum"] = descriptor.minimum
    if descriptor.maximum is not None:
        schema["maximum"] = descriptor.maximum
    return schema
