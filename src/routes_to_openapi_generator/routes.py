"""Route declaration: the entry point that drives modules and assembly."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any, Optional

from .assembler import Document, assemble
from .config import GeneratorConfig
from .descriptors import ObjectDescriptor
from .errors import DuplicateRouteError, ResolutionError
from .interop import ExceptionMapping, ExceptionResponsesModule
from .metadata import TagInfo
from .modules import (
    GeneratorContext,
    InfoModule,
    ModuleProvider,
    OperationModule,
    ParameterModule,
    RequestBodyModule,
    ResponseModule,
    TagModule,
)
from .naming import SchemaNamer, descriptor_display_name
from .operation import Operation
from .path_template import bind, join_paths
from .type_resolver import type_label

logger = logging.getLogger(__name__)


class OpenAPIGenerator:
    """Collect route declarations and assemble them into one document.

    Each declaration creates an :class:`Operation`, runs the built-in modules
    derived from its arguments followed by the caller's modules, and
    finalizes it before returning.  The document is assembled on first use
    and cached until another route is declared.
    """

    def __init__(
        self,
        config: Optional[GeneratorConfig] = None,
        *,
        schema_namer: Optional[SchemaNamer] = None,
    ) -> None:
        self._context = GeneratorContext(config or GeneratorConfig(), schema_namer=schema_namer)
        self._operations: list[Operation] = []
        self._routes: dict[tuple[str, tuple[Optional[str], ...]], Operation] = {}
        self._exception_mappings: list[ExceptionMapping] = []
        self._document: Optional[Document] = None

    @property
    def context(self) -> GeneratorContext:
        return self._context

    @property
    def config(self) -> GeneratorConfig:
        return self._context.config

    @property
    def operations(self) -> tuple[Operation, ...]:
        """Registered operations in declaration order."""
        return tuple(self._operations)

    def route(
        self,
        method: str,
        path: str,
        *modules: OperationModule,
        params: Optional[Any] = None,
        body: Optional[Any] = None,
        response: Optional[Any] = None,
        status: Optional[str] = None,
        summary: Optional[str] = None,
        description: Optional[str] = None,
        example: Optional[Any] = None,
        request_example: Optional[Any] = None,
        tags: Iterable[str | TagInfo] = (),
    ) -> Operation:
        """Declare one route and return its finalized operation.

        Args:
            method (str): HTTP method.
            path (str): Path template such as ``/string/{a}``.
            *modules (OperationModule): Extra modules, applied after the built-in ones.
            params (Optional[Any]): Type whose fields are the path, query and header parameters.
            body (Optional[Any]): Request body type.
            response (Optional[Any]): Response body type for ``status``.
            status (Optional[str]): Status code of the main response, ``200`` when omitted.
            summary (Optional[str]): Operation summary.
            description (Optional[str]): Operation description.
            example (Optional[Any]): Example of the main response body.
            request_example (Optional[Any]): Example of the request body.
            tags (Iterable[str | TagInfo]): Tags for the operation.

        Returns:
            Operation: The finalized operation.
        """
        template = bind(path, self._param_descriptor(params, method=method, path=path))
        method = method.upper()
        route_key = (method, template.shape)
        existing = self._routes.get(route_key)
        if existing is not None:
            raise DuplicateRouteError(
                f"{method} {template.path} duplicates the route already declared as {existing.label}"
            )

        operation = Operation(method, template)
        built_in: list[OperationModule] = []
        if summary is not None or description is not None:
            built_in.append(InfoModule(summary=summary, description=description))
        built_in.append(ParameterModule())
        if body is not None:
            built_in.append(RequestBodyModule(body, example=request_example))
        if response is not None or example is not None or status is not None:
            built_in.append(ResponseModule(response, status=str(status or "200"), example=example))
        tags = tuple(tags)
        if tags:
            built_in.append(TagModule(*tags))
        if self._exception_mappings:
            built_in.append(ExceptionResponsesModule(*self._exception_mappings))

        provider = ModuleProvider()
        for module in (*built_in, *modules):
            module.configure(self._context, provider, operation)
            provider.register(module)
        operation.finalize()

        self._routes[route_key] = operation
        self._operations.append(operation)
        self._document = None
        logger.debug("Declared %s with %d modules", operation.label, len(provider))
        return operation

    def get(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("GET", path, *modules, **options)

    def post(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("POST", path, *modules, **options)

    def put(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("PUT", path, *modules, **options)

    def patch(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("PATCH", path, *modules, **options)

    def delete(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("DELETE", path, *modules, **options)

    def group(self, prefix: str, *modules: OperationModule) -> RouteGroup:
        """Routes declared on the group get ``prefix`` and ``modules`` first."""
        return RouteGroup(self, prefix, modules)

    def tag(self, *tags: str | TagInfo) -> RouteGroup:
        """Routes declared on the returned group carry ``tags``."""
        return RouteGroup(self, "", (TagModule(*tags),))

    def add_exception_mapping(self, mapping: ExceptionMapping) -> None:
        """Document ``mapping`` on every route declared from now on."""
        self._exception_mappings.append(mapping)

    def document(self) -> Document:
        """The assembled document, built once per set of declared routes."""
        if self._document is None:
            self._document = assemble(
                self._operations,
                self._context.registry.snapshot(),
                self._context.config,
                tag_infos=self._context.tag_infos,
            )
        return self._document

    def _param_descriptor(self, params: Optional[Any], *, method: str, path: str) -> Optional[ObjectDescriptor]:
        if params is None:
            return None
        descriptor = self._context.resolver.resolve(params)
        if not isinstance(descriptor, ObjectDescriptor):
            raise ResolutionError(
                f"{method.upper()} {path}: parameter type {type_label(params)} resolves to "
                f"{descriptor_display_name(descriptor)}, not an object with fields"
            )
        return descriptor


class RouteGroup:
    """A path prefix and module list shared by the routes declared through it."""

    def __init__(
        self,
        generator: OpenAPIGenerator,
        prefix: str,
        modules: Sequence[OperationModule] = (),
    ) -> None:
        self._generator = generator
        self._prefix = prefix
        self._modules = tuple(modules)

    @property
    def prefix(self) -> str:
        return join_paths(self._prefix)

    def route(self, method: str, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self._generator.route(
            method, join_paths(self._prefix, path), *self._modules, *modules, **options
        )

    def get(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("GET", path, *modules, **options)

    def post(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("POST", path, *modules, **options)

    def put(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("PUT", path, *modules, **options)

    def patch(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("PATCH", path, *modules, **options)

    def delete(self, path: str, *modules: OperationModule, **options: Any) -> Operation:
        return self.route("DELETE", path, *modules, **options)

    def group(self, prefix: str, *modules: OperationModule) -> RouteGroup:
        return RouteGroup(self._generator, join_paths(self._prefix, prefix), (*self._modules, *modules))

    def tag(self, *tags: str | TagInfo) -> RouteGroup:
        return self.group("", TagModule(*tags))
