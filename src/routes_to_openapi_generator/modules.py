"""Operation modules and the context they configure operations with.

A module contributes one piece of an operation (its parameters, a response,
its tags, ...).  Modules run in declaration order while a route is being
registered; each receives the shared :class:`GeneratorContext`, a
:class:`ModuleProvider` holding the modules already applied to the same
operation, and the :class:`~.operation.Operation` itself.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Optional, Protocol, TypeVar, runtime_checkable

from .config import GeneratorConfig
from .descriptors import FieldDescriptor
from .errors import GenerationError
from .json_types import JSONObject
from .metadata import TagInfo
from .naming import SchemaNamer
from .operation import REQUEST_EXAMPLE_KEY, Operation, Parameter, RequestBody, Response
from .schema_registry import SchemaRegistry, nullable_schema
from .type_resolver import TypeResolver, variant_tags
from .verify import encode_example, validate_example

_ModuleT = TypeVar("_ModuleT")


class GeneratorContext:
    """Process-scoped state shared by every module of one generator."""

    def __init__(self, config: GeneratorConfig, *, schema_namer: Optional[SchemaNamer] = None) -> None:
        self._config = config
        self._resolver = TypeResolver()
        self._registry = SchemaRegistry(self._resolver, namer=schema_namer)
        self._tags: dict[str, TagInfo] = {tag.name: tag for tag in config.tags}

    @property
    def config(self) -> GeneratorConfig:
        return self._config

    @property
    def resolver(self) -> TypeResolver:
        return self._resolver

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def tag_infos(self) -> dict[str, TagInfo]:
        """Known tags; configured descriptions win over later ones."""
        return dict(self._tags)

    def remember_tag(self, tag: TagInfo) -> None:
        """Record a tag description unless one is already known for the name."""
        existing = self._tags.get(tag.name)
        if existing is None or (existing.description is None and tag.description):
            self._tags[tag.name] = tag

    def check_example(self, payload: Any, schema: JSONObject, *, label: str) -> None:
        """Validate ``payload`` against ``schema`` when example validation is on."""
        if not self._config.validate_examples:
            return
        validate_example(payload, schema=schema, components=self._registry.snapshot(), label=label)


class ModuleProvider:
    """The modules applied to one operation so far, in application order."""

    def __init__(self, modules: Iterable[OperationModule] = ()) -> None:
        self._modules: list[OperationModule] = list(modules)

    def __iter__(self) -> Iterator[OperationModule]:
        return iter(self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    def register(self, module: OperationModule) -> None:
        self._modules.append(module)

    def of_type(self, module_type: type[_ModuleT]) -> list[_ModuleT]:
        """Modules applied so far that are instances of ``module_type``."""
        return [module for module in self._modules if isinstance(module, module_type)]

    def source_of(self, module: OperationModule) -> str:
        """Writer label for ``module`` used in conflict messages."""
        return f"{type(module).__name__} (module #{len(self._modules) + 1})"


@runtime_checkable
class OperationModule(Protocol):
    """Anything that contributes to an operation during route registration."""

    def configure(self, context: GeneratorContext, provider: ModuleProvider, operation: Operation) -> None:
        """Apply this module's contribution to ``operation``."""


@dataclass(frozen=True)
class InfoModule:
    """Summary, description, explicit operation id and deprecation flag."""

    summary: Optional[str] = None
    description: Optional[str] = None
    operation_id: Optional[str] = None
    deprecated: bool = False

    def configure(self, context: GeneratorContext, provider: ModuleProvider, operation: Operation) -> None:
        source = provider.source_of(self)
        if self.summary is not None:
            operation.set_summary(self.summary, source=source)
        if self.description is not None:
            operation.set_description(self.description, source=source)
        if self.operation_id is not None:
            operation.set_operation_id(self.operation_id, source=source)
        if self.deprecated:
            operation.set_deprecated(True, source=source)


class ParameterModule:
    """Add one parameter per field bound by the operation's path template."""

    def __repr__(self) -> str:
        return "ParameterModule()"

    def configure(self, context: GeneratorContext, provider: ModuleProvider, operation: Operation) -> None:
        source = provider.source_of(self)
        template = operation.template
        for location, fields in (
            ("path", template.path_parameters),
            ("query", template.query_parameters),
            ("header", template.header_parameters),
        ):
            for item in fields:
                operation.add_parameter(
                    _parameter(context, item, location=location), source=source
                )


@dataclass(frozen=True)
class RequestBodyModule:
    """Register the request body type and attach it with an optional example."""

    body_type: Any
    example: Optional[Any] = None
    description: Optional[str] = None

    def configure(self, context: GeneratorContext, provider: ModuleProvider, operation: Operation) -> None:
        source = provider.source_of(self)
        descriptor = context.resolver.resolve(self.body_type)
        schema = context.registry.schema_for(descriptor)
        operation.set_request_body(RequestBody(schema, description=self.description), source=source)
        if self.example is None:
            return
        payload = encode_example(self.example, variant_tags(descriptor))
        context.check_example(payload, schema, label=f"{operation.label} request body")
        operation.add_example(REQUEST_EXAMPLE_KEY, payload, source=source)


@dataclass(frozen=True)
class ResponseModule:
    """Register a response body type for one status code.

    With no ``response_type`` the status is documented without content.
    """

    response_type: Optional[Any] = None
    status: str = "200"
    example: Optional[Any] = None
    description: Optional[str] = None

    def configure(self, context: GeneratorContext, provider: ModuleProvider, operation: Operation) -> None:
        source = provider.source_of(self)
        status = str(self.status)
        descriptor = context.resolver.resolve(self.response_type) if self.response_type is not None else None
        schema = context.registry.schema_for(descriptor) if descriptor is not None else None
        operation.add_response(
            Response(status, self.description or status_phrase(status), schema), source=source
        )
        if self.example is None:
            return
        if descriptor is None or schema is None:
            raise GenerationError(f"{operation.label}: response {status} has an example but no type")
        payload = encode_example(self.example, variant_tags(descriptor))
        context.check_example(payload, schema, label=f"{operation.label} response {status}")
        operation.add_example(status, payload, source=source)


@dataclass(frozen=True, init=False)
class TagModule:
    """Add tags to an operation; plain names or :class:`TagInfo` with descriptions."""

    tags: tuple[TagInfo, ...]

    def __init__(self, *tags: str | TagInfo) -> None:
        object.__setattr__(
            self, "tags", tuple(tag if isinstance(tag, TagInfo) else TagInfo(name=tag) for tag in tags)
        )

    def configure(self, context: GeneratorContext, provider: ModuleProvider, operation: Operation) -> None:
        for tag in self.tags:
            context.remember_tag(tag)
        operation.add_tags(tag.name for tag in self.tags)


@dataclass(frozen=True, init=False)
class SecurityModule:
    """Require a security scheme with the given scopes."""

    scheme: str
    scopes: tuple[str, ...]

    def __init__(self, scheme: str, scopes: Iterable[str] = ()) -> None:
        object.__setattr__(self, "scheme", scheme)
        object.__setattr__(self, "scopes", tuple(scopes))

    def configure(self, context: GeneratorContext, provider: ModuleProvider, operation: Operation) -> None:
        operation.add_security(self.scheme, self.scopes)


def status_phrase(status: str) -> str:
    """Default response description for a status code."""
    try:
        return HTTPStatus(int(status)).phrase
    except ValueError:
        return "Response"


def _parameter(context: GeneratorContext, item: FieldDescriptor, *, location: str) -> Parameter:
    schema = context.registry.schema_for(item.descriptor)
    if item.nullable:
        schema = nullable_schema(schema)
    return Parameter(
        name=item.name,
        location=location,
        required=location == "path" or item.required,
        schema=schema,
        description=item.description,
    )
