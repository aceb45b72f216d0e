"""Route path templates and their binding to parameter types."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from .descriptors import FieldDescriptor, ObjectDescriptor
from .errors import PathTemplateError, UnboundPathParameter
from .markers import PARAMETER_HEADER, PARAMETER_PATH, PARAMETER_QUERY

_PLACEHOLDER_RE = re.compile(r"^\{(?P<name>[A-Za-z_][A-Za-z0-9_.-]*)\}$")


@dataclass(frozen=True)
class PathSegment:
    """One ``/``-separated piece of a path, literal or placeholder."""

    value: str
    is_parameter: bool = False

    def render(self) -> str:
        """Segment as written in the OpenAPI path key."""
        return f"{{{self.value}}}" if self.is_parameter else self.value


@dataclass(frozen=True)
class PathTemplate:
    """Parsed path with its parameter fields split by location."""

    segments: tuple[PathSegment, ...]
    path_parameters: tuple[FieldDescriptor, ...] = ()
    query_parameters: tuple[FieldDescriptor, ...] = ()
    header_parameters: tuple[FieldDescriptor, ...] = ()

    @property
    def path(self) -> str:
        """Normalized path string, always starting with ``/``."""
        return "/" + "/".join(segment.render() for segment in self.segments)

    @property
    def shape(self) -> tuple[Optional[str], ...]:
        """Collision key: literals kept, placeholders reduced to their position."""
        return tuple(None if segment.is_parameter else segment.value for segment in self.segments)

    @property
    def placeholder_names(self) -> tuple[str, ...]:
        """Placeholder names in path order."""
        return tuple(segment.value for segment in self.segments if segment.is_parameter)


def join_paths(*parts: str) -> str:
    """Join route prefixes and paths into one normalized path."""
    pieces: list[str] = []
    for part in parts:
        pieces.extend(piece for piece in part.split("/") if piece)
    return "/" + "/".join(pieces)


def parse_path(path: str) -> tuple[PathSegment, ...]:
    """Split ``path`` into literal and ``{name}`` segments.

    Raises:
        PathTemplateError: For partial placeholders, stray braces or repeated names.
    """
    segments: list[PathSegment] = []
    seen: set[str] = set()
    for raw in (piece for piece in path.split("/") if piece):
        match = _PLACEHOLDER_RE.match(raw)
        if match:
            name = match.group("name")
            if name in seen:
                raise PathTemplateError(f"Path {path!r} repeats placeholder {{{name}}}")
            seen.add(name)
            segments.append(PathSegment(name, is_parameter=True))
            continue
        if "{" in raw or "}" in raw:
            raise PathTemplateError(
                f"Path {path!r} has malformed segment {raw!r}; placeholders must fill a whole segment"
            )
        segments.append(PathSegment(raw))
    return tuple(segments)


def bind(path: str, param_type: Optional[ObjectDescriptor]) -> PathTemplate:
    """Bind the placeholders of ``path`` to the fields of ``param_type``.

    Every placeholder needs a field of the same name.  Fields without a
    placeholder become query parameters, or header parameters when marked
    with ``HeaderParam``; a field explicitly marked ``PathParam`` must have a
    placeholder.

    Args:
        path (str): Route path such as ``/string/{a}``.
        param_type (Optional[ObjectDescriptor]): Resolved parameter type, if any.

    Returns:
        PathTemplate: Parsed template with parameters split by location.
    """
    segments = parse_path(path)
    fields: Iterable[FieldDescriptor] = param_type.fields if param_type is not None else ()
    by_name = {item.name: item for item in fields}
    owner = param_type.name if param_type is not None else "no parameter type"

    path_parameters: list[FieldDescriptor] = []
    for segment in segments:
        if not segment.is_parameter:
            continue
        field = by_name.get(segment.value)
        if field is None:
            raise UnboundPathParameter(
                segment.value,
                f"Path {path!r}: placeholder {{{segment.value}}} has no field in {owner}",
            )
        if field.location in (PARAMETER_QUERY, PARAMETER_HEADER):
            raise PathTemplateError(
                f"Path {path!r}: field {segment.value!r} of {owner} is declared as a "
                f"{field.location} parameter but appears as a placeholder"
            )
        if field.nullable or not field.required:
            raise PathTemplateError(
                f"Path {path!r}: path parameter {segment.value!r} of {owner} must be required"
            )
        path_parameters.append(field)

    placeholders = {segment.value for segment in segments if segment.is_parameter}
    query_parameters: list[FieldDescriptor] = []
    header_parameters: list[FieldDescriptor] = []
    for item in by_name.values():
        if item.name in placeholders:
            continue
        if item.location == PARAMETER_PATH:
            raise UnboundPathParameter(
                item.name,
                f"Path {path!r}: {owner}.{item.name} is a path parameter without a placeholder",
            )
        if item.location == PARAMETER_HEADER:
            header_parameters.append(item)
        else:
            query_parameters.append(item)

    return PathTemplate(
        segments=segments,
        path_parameters=tuple(path_parameters),
        query_parameters=tuple(query_parameters),
        header_parameters=tuple(header_parameters),
    )
