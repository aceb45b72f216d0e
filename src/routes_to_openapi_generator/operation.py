"""Operation records accumulated by modules during route registration."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Optional

from .errors import FrozenOperationError, OperationConflictError
from .json_types import JSONObject, JSONValue, MutableJSONObject
from .path_template import PathTemplate

JSON_MEDIA_TYPE = "application/json"
REQUEST_EXAMPLE_KEY = "request"


class OperationState(enum.Enum):
    """Lifecycle of an operation: declared, accumulating module output, finalized."""

    DECLARED = "declared"
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class Parameter:
    """One path, query or header parameter."""

    name: str
    location: str
    required: bool
    schema: JSONObject
    description: Optional[str] = None

    def to_openapi(self) -> MutableJSONObject:
        """Render as an OpenAPI parameter object."""
        rendered: MutableJSONObject = {
            "name": self.name,
            "in": self.location,
            "required": self.required,
            "schema": dict(self.schema),
        }
        if self.description:
            rendered["description"] = self.description
        return rendered


@dataclass(frozen=True)
class RequestBody:
    """Request body schema of an operation."""

    schema: JSONObject
    description: Optional[str] = None
    required: bool = True
    media_type: str = JSON_MEDIA_TYPE


@dataclass(frozen=True)
class Response:
    """Response for one status code; ``schema`` is ``None`` for empty bodies."""

    status: str
    description: str
    schema: Optional[JSONObject] = None
    media_type: str = JSON_MEDIA_TYPE


class Operation:
    """One HTTP method and path with the metadata contributed by modules.

    Singular fields (summary, description, operation id, deprecation, request
    body) may be written once; a second write raises
    :class:`OperationConflictError` naming both writers.  Collections merge:
    tags and security scopes by set union, responses per status code,
    parameters per name and location.  Once :meth:`finalize` runs every
    mutator raises :class:`FrozenOperationError`.
    """

    def __init__(self, method: str, template: PathTemplate) -> None:
        self._method = method.upper()
        self._template = template
        self._state = OperationState.DECLARED
        self._writers: dict[str, str] = {}
        self._singular: dict[str, Any] = {}
        self._parameters: dict[tuple[str, str], Parameter] = {}
        self._responses: dict[str, Response] = {}
        self._tags: dict[str, None] = {}
        self._security: dict[str, dict[str, None]] = {}
        self._examples: dict[str, JSONValue] = {}

    def __repr__(self) -> str:
        return f"Operation({self.label!r}, state={self._state.value})"

    @property
    def method(self) -> str:
        """Upper-case HTTP method."""
        return self._method

    @property
    def path(self) -> str:
        """Normalized templated path."""
        return self._template.path

    @property
    def label(self) -> str:
        """``METHOD /path`` identification used in messages."""
        return f"{self._method} {self.path}"

    @property
    def template(self) -> PathTemplate:
        """Bound path template."""
        return self._template

    @property
    def state(self) -> OperationState:
        """Current lifecycle state."""
        return self._state

    @property
    def summary(self) -> Optional[str]:
        return self._singular.get("summary")

    @property
    def description(self) -> Optional[str]:
        return self._singular.get("description")

    @property
    def operation_id(self) -> Optional[str]:
        """Explicit operation id, if a module set one."""
        return self._singular.get("operation_id")

    @property
    def deprecated(self) -> bool:
        return bool(self._singular.get("deprecated", False))

    @property
    def request_body(self) -> Optional[RequestBody]:
        return self._singular.get("request_body")

    @property
    def parameters(self) -> tuple[Parameter, ...]:
        return tuple(self._parameters.values())

    @property
    def responses(self) -> Mapping[str, Response]:
        return MappingProxyType(dict(self._responses))

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self._tags)

    @property
    def security(self) -> Mapping[str, tuple[str, ...]]:
        """Security scheme name to required scopes."""
        return MappingProxyType({name: tuple(scopes) for name, scopes in self._security.items()})

    @property
    def examples(self) -> Mapping[str, JSONValue]:
        """Example payloads keyed by status code, or ``request`` for the body."""
        return MappingProxyType(dict(self._examples))

    def set_summary(self, summary: str, *, source: str) -> None:
        self._set_singular("summary", summary, source=source)

    def set_description(self, description: str, *, source: str) -> None:
        self._set_singular("description", description, source=source)

    def set_operation_id(self, operation_id: str, *, source: str) -> None:
        self._set_singular("operation_id", operation_id, source=source)

    def set_deprecated(self, deprecated: bool, *, source: str) -> None:
        self._set_singular("deprecated", deprecated, source=source)

    def set_request_body(self, body: RequestBody, *, source: str) -> None:
        self._set_singular("request_body", body, source=source)

    def add_parameter(self, parameter: Parameter, *, source: str) -> None:
        """Add a parameter; the same name and location may only be added once."""
        self._begin_mutation("add a parameter")
        key = (parameter.name, parameter.location)
        writer_key = f"parameter {parameter.location}:{parameter.name}"
        if key in self._parameters:
            raise OperationConflictError(
                f"{self.label}: {writer_key} already added by {self._writers[writer_key]}; "
                f"{source} added it again"
            )
        self._parameters[key] = parameter
        self._writers[writer_key] = source

    def add_response(self, response: Response, *, source: str) -> None:
        """Merge a response into the status map without touching other codes."""
        self._begin_mutation("add a response")
        writer_key = f"response {response.status}"
        existing = self._responses.get(response.status)
        if existing is not None:
            if existing.schema == response.schema and existing.media_type == response.media_type:
                return
            raise OperationConflictError(
                f"{self.label}: response {response.status} already set by "
                f"{self._writers[writer_key]} with a different schema; {source} conflicts"
            )
        self._responses[response.status] = response
        self._writers[writer_key] = source

    def add_tags(self, tags: Iterable[str]) -> None:
        """Add tag names; repeated names are ignored."""
        self._begin_mutation("add tags")
        for tag in tags:
            self._tags.setdefault(tag, None)

    def add_security(self, scheme: str, scopes: Iterable[str] = ()) -> None:
        """Require ``scheme`` with the union of all scopes added for it."""
        self._begin_mutation("add security")
        bucket = self._security.setdefault(scheme, {})
        for scope in scopes:
            bucket.setdefault(scope, None)

    def add_example(self, key: str, payload: JSONValue, *, source: str) -> None:
        """Attach an example for a status code or for the request body."""
        self._begin_mutation("add an example")
        writer_key = f"example {key}"
        if key in self._examples:
            raise OperationConflictError(
                f"{self.label}: example {key!r} already set by {self._writers[writer_key]}; "
                f"{source} set it again"
            )
        self._examples[key] = payload
        self._writers[writer_key] = source

    def finalize(self) -> None:
        """Freeze the operation; later mutations raise ``FrozenOperationError``."""
        self._state = OperationState.FINALIZED

    def schema_nodes(self) -> Iterator[JSONObject]:
        """Every schema this operation references, for consistency checks."""
        for parameter in self._parameters.values():
            yield parameter.schema
        body = self.request_body
        if body is not None:
            yield body.schema
        for response in self._responses.values():
            if response.schema is not None:
                yield response.schema

    def to_openapi(self, operation_id: str) -> MutableJSONObject:
        """Render as an OpenAPI operation object."""
        rendered: MutableJSONObject = {}
        if self._tags:
            rendered["tags"] = list(self._tags)
        if self.summary:
            rendered["summary"] = self.summary
        if self.description:
            rendered["description"] = self.description
        rendered["operationId"] = operation_id
        if self._parameters:
            rendered["parameters"] = [parameter.to_openapi() for parameter in self.parameters]

        body = self.request_body
        if body is not None:
            rendered_body: MutableJSONObject = {
                "required": body.required,
                "content": {
                    body.media_type: _media(body.schema, self._examples.get(REQUEST_EXAMPLE_KEY))
                },
            }
            if body.description:
                rendered_body["description"] = body.description
            rendered["requestBody"] = rendered_body

        responses: MutableJSONObject = {}
        for status in sorted(self._responses):
            response = self._responses[status]
            rendered_response: MutableJSONObject = {"description": response.description}
            if response.schema is not None:
                rendered_response["content"] = {
                    response.media_type: _media(response.schema, self._examples.get(status))
                }
            responses[status] = rendered_response
        rendered["responses"] = responses

        if self.deprecated:
            rendered["deprecated"] = True
        if self._security:
            rendered["security"] = [
                {scheme: list(scopes)} for scheme, scopes in self._security.items()
            ]
        return rendered

    def _set_singular(self, field_name: str, value: Any, *, source: str) -> None:
        self._begin_mutation(f"set {field_name}")
        previous = self._writers.get(field_name)
        if previous is not None:
            raise OperationConflictError(
                f"{self.label}: {field_name} already set by {previous}; {source} tried to set it again"
            )
        self._writers[field_name] = source
        self._singular[field_name] = value

    def _begin_mutation(self, action: str) -> None:
        if self._state is OperationState.FINALIZED:
            raise FrozenOperationError(f"{self.label}: cannot {action} after the route was registered")
        if self._state is OperationState.DECLARED:
            self._state = OperationState.ACCUMULATING


def _media(schema: JSONObject, example: Optional[JSONValue]) -> MutableJSONObject:
    media: MutableJSONObject = {"schema": dict(schema)}
    if example is not None:
        media["example"] = example
    return media
