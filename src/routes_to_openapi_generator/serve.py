"""WSGI application serving the assembled document."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from typing import Any, Optional
from urllib.parse import urlencode

from werkzeug.routing import Map, Rule
from werkzeug.utils import redirect
from werkzeug.wrappers import Request, Response

from .assembler import Document
from .config import ServeConfig
from .metadata import Server
from .routes import OpenAPIGenerator

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}

type WSGIApp = Callable[[dict[str, Any], Callable[..., Any]], Iterable[bytes]]


def server_url_for(scheme: str, host: str, port: Optional[int] = None) -> str:
    """Base URL of the inbound request; the port is omitted for 80 and 443."""
    if port is None or port in _DEFAULT_PORTS.values():
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def request_server(request: Request) -> Server:
    """Server entry describing the host the request was sent to."""
    host = request.host
    port: Optional[int] = None
    name, _, port_text = host.rpartition(":")
    if name and port_text.isdigit() and not host.endswith("]"):
        host, port = name, int(port_text)
    return Server(url=server_url_for(request.scheme, host, port))


def make_wsgi_app(
    source: OpenAPIGenerator | Document,
    config: Optional[ServeConfig] = None,
) -> WSGIApp:
    """Build a WSGI app serving the document and a redirect to the docs viewer.

    Args:
        source (OpenAPIGenerator | Document): Generator or already assembled document.
        config (Optional[ServeConfig]): Serving paths; defaults to the generator's.

    Returns:
        WSGIApp: Application serving ``GET <json_path>`` and ``GET /``.
    """
    if isinstance(source, OpenAPIGenerator):
        document = source.document()
        serve_config = config or source.config.serve
    else:
        document = source
        serve_config = config or ServeConfig()

    docs_location = f"{serve_config.docs_url}?{urlencode({'url': serve_config.json_path}, safe='/')}"
    url_map = Map(
        [
            Rule(serve_config.json_path, endpoint="document", methods=["GET"]),
            Rule("/", endpoint="docs", methods=["GET"]),
        ]
    )

    def serve_document(request: Request) -> Response:
        payload = document.render(server_override=request_server(request))
        return Response(json.dumps(payload), mimetype="application/json")

    def serve_docs(request: Request) -> Response:
        return redirect(docs_location, code=301)

    handlers: dict[str, Callable[[Request], Response]] = {
        "document": serve_document,
        "docs": serve_docs,
    }

    @Request.application
    def application(request: Request) -> Response:
        # Request.application turns NotFound and MethodNotAllowed into responses.
        endpoint, _ = url_map.bind_to_environ(request.environ).match()
        return handlers[endpoint](request)

    logger.info("Serving document at %s with docs redirect to %s", serve_config.json_path, docs_location)
    return application
