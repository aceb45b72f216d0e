"""Assemble finalized operations and registered schemas into one document."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from copy import deepcopy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional

import yaml
from openapi_python_client.schema import OpenAPI
from pydantic import ValidationError

from .config import GeneratorConfig
from .errors import AssemblyError, DanglingSchemaReference, DocumentValidationError
from .json_types import JSONObject, MutableJSONObject
from .metadata import Server, TagInfo
from .naming import resolve_operation_ids
from .operation import Operation, OperationState
from .schema_registry import schema_references
from .verify import check_component_schemas

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    """An assembled, validated API description.

    The content is built once and never mutated.  Its top level is a read-only
    view; :meth:`render` returns a new top-level mapping, optionally with a
    per-request server placed first, that shares the nested structures with
    the cached content, so treat it as read-only too.  Use :meth:`to_dict`
    for a copy that is safe to modify.
    """

    content: Mapping[str, object]
    operation_ids: Mapping[tuple[str, str], str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "content", MappingProxyType(dict(self.content)))
        object.__setattr__(self, "operation_ids", MappingProxyType(dict(self.operation_ids)))

    @property
    def paths(self) -> Mapping[str, object]:
        return self.content["paths"]  # type: ignore[return-value]

    @property
    def schemas(self) -> Mapping[str, object]:
        components = self.content.get("components", {})
        return components.get("schemas", {})  # type: ignore[union-attr]

    def render(self, server_override: Optional[Server] = None) -> MutableJSONObject:
        """Return the document payload with ``server_override`` as the first server."""
        rendered: MutableJSONObject = dict(self.content)
        if server_override is None:
            return rendered
        existing = [
            server for server in self.content.get("servers", []) if server.get("url") != server_override.url
        ]
        rendered["servers"] = [server_override.to_openapi(), *existing]
        return rendered

    def to_dict(self) -> MutableJSONObject:
        """Deep copy of the document content, safe to modify."""
        return deepcopy(dict(self.content))

    def to_json(self, server_override: Optional[Server] = None, *, indent: Optional[int] = 2) -> str:
        return json.dumps(self.render(server_override), indent=indent)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)


def assemble(
    operations: Sequence[Operation],
    schemas: Mapping[str, JSONObject],
    config: GeneratorConfig,
    *,
    tag_infos: Optional[Mapping[str, TagInfo]] = None,
) -> Document:
    """Build and validate the document from finalized operations.

    Args:
        operations (Sequence[Operation]): Finalized operations in declaration order.
        schemas (Mapping[str, JSONObject]): Registered component schemas.
        config (GeneratorConfig): Document-wide metadata.
        tag_infos (Optional[Mapping[str, TagInfo]]): Tag descriptions by name.

    Returns:
        Document: The assembled document.

    Raises:
        AssemblyError: When operations are inconsistent or reference unknown schemas.
    """
    _check_operations(operations, config)
    _check_references(operations, schemas)

    operation_ids, warnings = resolve_operation_ids(
        [(operation.method, operation.path, operation.operation_id) for operation in operations]
    )
    for warning in warnings:
        logger.warning(warning)

    paths: MutableJSONObject = {}
    ids_by_route: dict[tuple[str, str], str] = {}
    for operation, operation_id in zip(operations, operation_ids, strict=True):
        path_item = paths.setdefault(operation.path, {})
        path_item[operation.method.lower()] = operation.to_openapi(operation_id)
        ids_by_route[(operation.method, operation.path)] = operation_id

    document: MutableJSONObject = {
        "openapi": config.openapi,
        "info": config.info.to_openapi(),
    }
    if config.servers:
        document["servers"] = [server.to_openapi() for server in config.servers]
    tags = _document_tags(operations, config, tag_infos or {})
    if tags:
        document["tags"] = tags
    document["paths"] = paths

    components: MutableJSONObject = {}
    if schemas:
        components["schemas"] = {name: deepcopy(dict(schemas[name])) for name in sorted(schemas)}
    if config.security_schemes:
        components["securitySchemes"] = {
            name: scheme.to_openapi() for name, scheme in config.security_schemes.items()
        }
    if components:
        document["components"] = components

    validate_document(document)
    logger.info("Assembled document with %d operations and %d schemas", len(operations), len(schemas))
    return Document(content=document, operation_ids=ids_by_route)


def validate_document(document: JSONObject) -> None:
    """Validate a rendered document and its component schemas.

    Raises:
        DocumentValidationError: When the document is not valid OpenAPI.
    """
    try:
        OpenAPI.model_validate(document)
    except ValidationError as exc:
        raise DocumentValidationError(f"Assembled document failed OpenAPI validation: {exc}") from exc
    components = document.get("components")
    if isinstance(components, Mapping):
        check_component_schemas(components.get("schemas", {}))


def _check_operations(operations: Sequence[Operation], config: GeneratorConfig) -> None:
    seen: set[tuple[str, str]] = set()
    for operation in operations:
        identity = (operation.method, operation.path)
        if identity in seen:
            raise AssemblyError(f"{operation.label} is declared more than once")
        seen.add(identity)
        if operation.state is not OperationState.FINALIZED:
            raise AssemblyError(f"{operation.label} was never finalized")
        if not operation.responses:
            raise AssemblyError(f"{operation.label} documents no responses")
        for scheme in operation.security:
            if scheme not in config.security_schemes:
                raise AssemblyError(
                    f"{operation.label} requires security scheme {scheme!r}, "
                    "which is not declared in security_schemes"
                )


def _check_references(operations: Sequence[Operation], schemas: Mapping[str, JSONObject]) -> None:
    for operation in operations:
        for node in operation.schema_nodes():
            for reference in sorted(schema_references(node)):
                if reference not in schemas:
                    raise DanglingSchemaReference(
                        reference,
                        f"{operation.label} references schema {reference!r}, which is not registered",
                    )
    for name, schema in schemas.items():
        for reference in sorted(schema_references(schema)):
            if reference not in schemas:
                raise DanglingSchemaReference(
                    reference, f"Schema {name!r} references schema {reference!r}, which is not registered"
                )


def _document_tags(
    operations: Sequence[Operation],
    config: GeneratorConfig,
    tag_infos: Mapping[str, TagInfo],
) -> list[MutableJSONObject]:
    names: dict[str, None] = {tag.name: None for tag in config.tags}
    for operation in operations:
        for tag in operation.tags:
            names.setdefault(tag, None)
    return [(tag_infos.get(name) or TagInfo(name=name)).to_openapi() for name in names]
