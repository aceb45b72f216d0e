"""Generate OpenAPI documents from declared routes and Python types."""

from __future__ import annotations

from .assembler import Document, assemble
from .cli import main
from .config import GeneratorConfig, ServeConfig, load_generator_config
from .interop import ExceptionMapping, ExceptionResponsesModule
from .markers import (
    Description,
    Discriminated,
    Float32,
    Float64,
    HeaderParam,
    Int32,
    Int64,
    PathParam,
    QueryParam,
    UInt32,
    sealed,
    variant,
)
from .metadata import Contact, Info, SecurityScheme, Server, TagInfo
from .modules import (
    GeneratorContext,
    InfoModule,
    ModuleProvider,
    OperationModule,
    ParameterModule,
    RequestBodyModule,
    ResponseModule,
    SecurityModule,
    TagModule,
)
from .routes import OpenAPIGenerator, RouteGroup
from .serve import make_wsgi_app

__all__ = [
    "Contact",
    "Description",
    "Discriminated",
    "Document",
    "ExceptionMapping",
    "ExceptionResponsesModule",
    "Float32",
    "Float64",
    "GeneratorConfig",
    "GeneratorContext",
    "HeaderParam",
    "Info",
    "InfoModule",
    "Int32",
    "Int64",
    "ModuleProvider",
    "OpenAPIGenerator",
    "OperationModule",
    "ParameterModule",
    "PathParam",
    "QueryParam",
    "RequestBodyModule",
    "ResponseModule",
    "RouteGroup",
    "SecurityModule",
    "SecurityScheme",
    "Server",
    "ServeConfig",
    "TagInfo",
    "TagModule",
    "UInt32",
    "assemble",
    "load_generator_config",
    "main",
    "make_wsgi_app",
    "sealed",
    "variant",
]
