"""Exception-to-response mappings documented as error responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .modules import GeneratorContext, ModuleProvider, ResponseModule
from .operation import Operation


@dataclass(frozen=True)
class ExceptionMapping:
    """An exception type the server maps to ``status`` with a ``body_type`` payload.

    Only the body schema is documented; the mapping itself is executed by the
    server's error handling, never here.
    """

    exception_type: type[BaseException]
    status: str
    body_type: Optional[Any] = None
    example: Optional[Any] = None
    description: Optional[str] = None

    def response_module(self) -> ResponseModule:
        return ResponseModule(
            self.body_type,
            status=str(self.status),
            example=self.example,
            description=self.description,
        )


@dataclass(frozen=True, init=False)
class ExceptionResponsesModule:
    """Document the responses produced by a set of exception mappings."""

    mappings: tuple[ExceptionMapping, ...]

    def __init__(self, *mappings: ExceptionMapping) -> None:
        object.__setattr__(self, "mappings", mappings)

    def configure(self, context: GeneratorContext, provider: ModuleProvider, operation: Operation) -> None:
        for mapping in self.mappings:
            mapping.response_module().configure(context, provider, operation)
