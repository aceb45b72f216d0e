"""Naming helpers for schema names and operation identifiers."""

from __future__ import annotations

import keyword
import re
from collections import Counter
from collections.abc import Callable, Sequence
from typing import Optional

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

type SchemaNamer = Callable[[TypeDescriptor], str]

_IDENTIFIER_SANITIZE_RE = re.compile(r"[^0-9a-zA-Z_]+")
_MULTIPLE_UNDERSCORES_RE = re.compile(r"_+")
_PATH_PARAM_RE = re.compile(r"^\{(?P<name>[^{}]+)\}$")
_SCHEMA_NAME_RE = re.compile(r"[^0-9a-zA-Z_.-]+")

_PRIMITIVE_NAMES: dict[tuple[str, Optional[str]], str] = {
    ("string", None): "String",
    ("string", "byte"): "Bytes",
    ("string", "date-time"): "DateTime",
    ("string", "date"): "Date",
    ("string", "time"): "Time",
    ("string", "uuid"): "Uuid",
    ("boolean", None): "Boolean",
    ("integer", None): "Integer",
    ("integer", "int32"): "Int",
    ("integer", "int64"): "Long",
    ("number", None): "Number",
    ("number", "float"): "Float",
    ("number", "double"): "Double",
}


def sanitize_identifier(raw: str, *, lowercase: bool = True) -> str:
    """Convert arbitrary text into a valid Python identifier."""
    text = raw.lower() if lowercase else raw
    text = _IDENTIFIER_SANITIZE_RE.sub("_", text)
    text = _MULTIPLE_UNDERSCORES_RE.sub("_", text).strip("_")
    if not text:
        text = "root"
    if text[0].isdigit():
        text = f"x_{text}"
    if keyword.iskeyword(text):
        text = f"{text}_"
    return text


def path_to_endpoint_name(path: str) -> str:
    """Create an endpoint name from a templated path (``/users/{id}`` -> ``users__by_id``)."""
    segments = [segment for segment in path.split("/") if segment]
    normalized_segments: list[str] = []
    for segment in segments:
        match = _PATH_PARAM_RE.match(segment)
        if match:
            param_name = sanitize_identifier(match.group("name"))
            normalized_segments.append(f"by_{param_name}")
            continue
        normalized_segments.append(sanitize_identifier(segment))

    endpoint_name = "__".join(segment for segment in normalized_segments if segment)
    return endpoint_name or "root"


def operation_id_for(method: str, path: str) -> str:
    """Generated operation id for a method and path."""
    return f"{method.lower()}_{path_to_endpoint_name(path)}"


def resolve_operation_ids(
    candidates: Sequence[tuple[str, str, Optional[str]]],
) -> tuple[list[str], list[str]]:
    """Pick one operation id per ``(method, path, explicit_id)`` candidate.

    Explicit ids are kept unless two operations declare the same one, in which
    case every conflicting operation falls back to its generated id.

    Returns:
        tuple[list[str], list[str]]: Operation ids in input order and warnings.
    """
    counts = Counter(explicit for _, _, explicit in candidates if explicit)
    conflicting = {name for name, count in counts.items() if count > 1}

    warnings: list[str] = []
    if conflicting:
        joined = ", ".join(sorted(conflicting))
        warnings.append(
            "Conflicting operationId values detected; using path-based ids for conflicts: "
            f"{joined}"
        )

    resolved: list[str] = []
    for method, path, explicit in candidates:
        if explicit and explicit not in conflicting:
            resolved.append(explicit)
        else:
            resolved.append(operation_id_for(method, path))
    return resolved, warnings


def class_name(raw: str) -> str:
    """Convert a name to a PascalCase class-style name, keeping existing capitals."""
    parts = _IDENTIFIER_SANITIZE_RE.sub("_", raw).split("_")
    name = "".join(part[:1].upper() + part[1:] for part in parts if part)
    return name or "Model"


def default_schema_namer(descriptor: TypeDescriptor) -> str:
    """Candidate schema name: the declared type name with generic arguments elided."""
    if isinstance(descriptor, (ObjectDescriptor, UnionDescriptor, ForwardRefDescriptor)):
        return _SCHEMA_NAME_RE.sub("_", class_name(descriptor.name))
    return descriptor_display_name(descriptor)


def descriptor_display_name(descriptor: TypeDescriptor) -> str:
    """Readable name of any descriptor, including its generic arguments."""
    if isinstance(descriptor, PrimitiveDescriptor):
        base = _PRIMITIVE_NAMES.get((descriptor.schema_type, descriptor.format))
        if base is None:
            base = class_name(descriptor.format or descriptor.schema_type)
        return f"{base}Enum" if descriptor.enum else base
    if isinstance(descriptor, ArrayDescriptor):
        suffix = "Set" if descriptor.unique_items else "List"
        return f"{descriptor_display_name(descriptor.item)}{suffix}"
    if isinstance(descriptor, MapDescriptor):
        return f"{descriptor_display_name(descriptor.value)}Map"
    if isinstance(descriptor, NullableDescriptor):
        return descriptor_display_name(descriptor.inner)
    if isinstance(descriptor, ObjectDescriptor):
        return class_name(descriptor.name) + generic_suffix(descriptor)
    return class_name(descriptor.name)


def generic_suffix(descriptor: TypeDescriptor) -> str:
    """Disambiguating suffix built from the generic arguments' own names."""
    if not isinstance(descriptor, ObjectDescriptor) or not descriptor.type_args:
        return ""
    return "Of" + "And".join(descriptor_display_name(arg) for arg in descriptor.type_args)
