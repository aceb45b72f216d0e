"""Unit tests for document assembly and its consistency checks."""

from __future__ import annotations

import json
from dataclasses import dataclass

import pytest

from routes_to_openapi_generator.assembler import assemble, validate_document
from routes_to_openapi_generator.config import GeneratorConfig
from routes_to_openapi_generator.errors import (
    AssemblyError,
    DanglingSchemaReference,
    DocumentValidationError,
    DuplicateRouteError,
)
from routes_to_openapi_generator.metadata import Info, Server, TagInfo
from routes_to_openapi_generator.modules import InfoModule, ResponseModule, SecurityModule
from routes_to_openapi_generator.operation import Operation, Response
from routes_to_openapi_generator.path_template import bind
from routes_to_openapi_generator.routes import OpenAPIGenerator


@dataclass
class IdParam:
    id: str


@dataclass
class Widget:
    name: str
    size: int


def _generator() -> OpenAPIGenerator:
    generator = OpenAPIGenerator(GeneratorConfig(info=Info(title="Widgets", version="1.0")))
    generator.get("/widgets/{id}", params=IdParam, response=Widget, tags=["widgets"])
    generator.post("/widgets", body=Widget, response=Widget, status="201")
    generator.delete("/widgets/{id}", params=IdParam, status="204")
    return generator


def test_document_has_expected_top_level_layout() -> None:
    """The document carries version, info, tags, paths and components."""
    content = _generator().document().to_dict()
    assert list(content) == ["openapi", "info", "tags", "paths", "components"]
    assert content["openapi"] == "3.0.3"
    assert content["info"] == {"title": "Widgets", "version": "1.0"}
    assert content["tags"] == [{"name": "widgets"}]
    assert sorted(content["paths"]) == ["/widgets", "/widgets/{id}"]
    assert sorted(content["paths"]["/widgets/{id}"]) == ["delete", "get"]
    assert list(content["components"]["schemas"]) == ["Widget"]


def test_round_trip_preserves_routes_schemas_and_statuses() -> None:
    """Serializing and re-parsing keeps routes, schema names and status maps."""
    document = _generator().document()
    parsed = json.loads(document.to_json())

    def _routes(content: dict) -> set[tuple[str, str]]:
        return {(method, path) for path, item in content["paths"].items() for method in item}

    def _statuses(content: dict) -> dict[tuple[str, str], dict[str, object]]:
        return {
            (method, path): {
                status: response.get("content", {}).get("application/json", {}).get("schema")
                for status, response in operation["responses"].items()
            }
            for path, item in content["paths"].items()
            for method, operation in item.items()
        }

    original = document.to_dict()
    assert _routes(parsed) == _routes(original)
    assert set(parsed["components"]["schemas"]) == set(original["components"]["schemas"])
    assert _statuses(parsed) == _statuses(original)
    assert parsed == original


def test_operation_ids_are_generated_from_paths() -> None:
    """Operation ids combine the method and the templated path."""
    document = _generator().document()
    assert document.operation_ids[("GET", "/widgets/{id}")] == "get_widgets__by_id"
    assert document.operation_ids[("POST", "/widgets")] == "post_widgets"


def test_duplicate_explicit_operation_ids_fall_back(caplog: pytest.LogCaptureFixture) -> None:
    """Two routes claiming one operation id both use generated ids."""
    generator = OpenAPIGenerator()
    generator.get("/a", InfoModule(operation_id="same"), response=Widget)
    generator.get("/b", InfoModule(operation_id="same"), response=Widget)
    generator.get("/c", InfoModule(operation_id="unique"), response=Widget)
    with caplog.at_level("WARNING"):
        document = generator.document()
    assert document.operation_ids[("GET", "/a")] == "get_a"
    assert document.operation_ids[("GET", "/b")] == "get_b"
    assert document.operation_ids[("GET", "/c")] == "unique"
    assert "same" in caplog.text


def test_duplicate_route_is_rejected_before_assembly() -> None:
    """Registering GET /foo twice fails at the second declaration."""
    generator = OpenAPIGenerator()
    generator.get("/foo", response=Widget)
    with pytest.raises(DuplicateRouteError, match="GET /foo"):
        generator.group("foo").get("", response=Widget)


def test_duplicate_template_shapes_collide() -> None:
    """Placeholders in the same position collide regardless of their names."""
    generator = OpenAPIGenerator()
    generator.get("/widgets/{id}", params=IdParam, response=Widget)
    with pytest.raises(DuplicateRouteError):
        generator.get("/widgets/{name}", params=Widget, response=Widget)
    generator.put("/widgets/{id}", params=IdParam, body=Widget, response=Widget)


def test_dangling_reference_is_reported() -> None:
    """An operation referencing an unknown schema aborts assembly."""
    operation = Operation("GET", bind("/ghost", None))
    operation.add_response(
        Response("200", "OK", {"$ref": "#/components/schemas/Ghost"}), source="test"
    )
    operation.finalize()
    with pytest.raises(DanglingSchemaReference) as excinfo:
        assemble([operation], {}, GeneratorConfig())
    assert excinfo.value.reference == "Ghost"
    assert "GET /ghost" in str(excinfo.value)


def test_unfinalized_operation_is_rejected() -> None:
    """Only finalized operations can be assembled."""
    operation = Operation("GET", bind("/open", None))
    operation.add_response(Response("200", "OK"), source="test")
    with pytest.raises(AssemblyError, match="never finalized"):
        assemble([operation], {}, GeneratorConfig())


def test_undeclared_security_scheme_is_rejected() -> None:
    """Security requirements must name a configured scheme."""
    generator = OpenAPIGenerator()
    generator.get("/secret", SecurityModule("oauth", ["read"]), response=Widget)
    with pytest.raises(AssemblyError, match="oauth"):
        generator.document()


def test_invalid_document_is_rejected() -> None:
    """The rendered document is validated as OpenAPI."""
    generator = OpenAPIGenerator()
    generator.get("/widgets", response=Widget)
    document = generator.document().to_dict()
    document["paths"]["/widgets"]["get"]["responses"] = "nope"
    with pytest.raises(DocumentValidationError):
        validate_document(document)


def test_render_overlay_does_not_mutate_document() -> None:
    """A per-request server is prepended to a copy, never to the cached document."""
    config = GeneratorConfig(servers=(Server(url="https://api.example.com"),))
    generator = OpenAPIGenerator(config)
    generator.get("/widgets", response=Widget)
    document = generator.document()
    overlay = document.render(Server(url="http://localhost:8080"))
    assert [server["url"] for server in overlay["servers"]] == [
        "http://localhost:8080",
        "https://api.example.com",
    ]
    assert document.render()["servers"] == [{"url": "https://api.example.com"}]
    assert generator.document() is document


def test_document_is_rebuilt_after_new_routes() -> None:
    """Declaring another route invalidates the memoized document."""
    generator = OpenAPIGenerator()
    generator.get("/one", response=Widget)
    first = generator.document()
    generator.get("/two", response=Widget)
    second = generator.document()
    assert first is not second
    assert "/two" in second.paths and "/two" not in first.paths


def test_configured_tags_come_first() -> None:
    """Configured tags keep their order and descriptions."""
    config = GeneratorConfig(tags=(TagInfo(name="zeta", description="Last letter"),))
    generator = OpenAPIGenerator(config)
    generator.get("/a", response=Widget, tags=["alpha", TagInfo(name="beta", description="Second")])
    tags = generator.document().to_dict()["tags"]
    assert tags == [
        {"name": "zeta", "description": "Last letter"},
        {"name": "alpha"},
        {"name": "beta", "description": "Second"},
    ]


def test_responses_can_come_from_modules_alone() -> None:
    """Without response arguments, only the statuses given by modules are documented."""
    generator = OpenAPIGenerator()
    generator.get("/widgets", ResponseModule(list[Widget]))
    generator.post("/widgets", ResponseModule(Widget, status="201"), body=Widget)
    paths = generator.document().to_dict()["paths"]
    listed = paths["/widgets"]["get"]["responses"]
    assert list(listed) == ["200"]
    assert listed["200"]["content"]["application/json"]["schema"] == {
        "type": "array",
        "items": {"$ref": "#/components/schemas/Widget"},
    }
    assert list(paths["/widgets"]["post"]["responses"]) == ["201"]


def test_route_without_any_response_is_rejected() -> None:
    """A route that declares no response at all cannot be assembled."""
    generator = OpenAPIGenerator()
    generator.get("/widgets/{id}", params=IdParam)
    with pytest.raises(AssemblyError, match="GET /widgets/{id} documents no responses"):
        generator.document()


def test_document_content_is_read_only() -> None:
    """The cached content rejects writes; copies from to_dict do not leak back."""
    document = _generator().document()
    with pytest.raises(TypeError):
        document.content["paths"] = {}  # type: ignore[index]
    with pytest.raises(TypeError):
        document.operation_ids[("GET", "/nowhere")] = "nowhere"  # type: ignore[index]
    copied = document.to_dict()
    copied["paths"].clear()
    assert sorted(document.paths) == ["/widgets", "/widgets/{id}"]
    rendered = document.render()
    rendered["info"] = {"title": "Changed", "version": "0"}
    assert document.render()["info"] == {"title": "Widgets", "version": "1.0"}
