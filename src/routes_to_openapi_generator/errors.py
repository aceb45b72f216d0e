"""Build-time error taxonomy.

Every error raised while declaring routes, resolving types, registering
schemas or assembling the document derives from :class:`GenerationError`.
None of them is recoverable at request time: a document is either built
completely or not at all.
"""

from __future__ import annotations


class GenerationError(RuntimeError):
    """Base class for failures that abort document generation."""


class ResolutionError(GenerationError):
    """Raised when a declared type cannot be turned into a schema."""


class UnsupportedKeyTypeError(ResolutionError):
    """Raised for mappings whose key type does not serialize to a JSON string."""


class OpenHierarchyError(ResolutionError):
    """Raised when a polymorphic type does not enumerate a closed set of variants."""


class NamingCollisionError(GenerationError):
    """Raised when schema name disambiguation cannot find a free name."""


class PathTemplateError(GenerationError):
    """Raised for malformed route path templates."""


class UnboundPathParameter(PathTemplateError):
    """Raised when a path placeholder and a parameter field do not match up."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class DuplicateRouteError(GenerationError):
    """Raised when the same method and path template is declared twice."""


class FrozenOperationError(GenerationError):
    """Raised when an operation is mutated after its route was registered."""


class OperationConflictError(GenerationError):
    """Raised when two modules write the same singular operation field."""


class AssemblyError(GenerationError):
    """Raised when the assembled document is internally inconsistent."""


class DanglingSchemaReference(AssemblyError):
    """Raised when an operation references a schema the registry does not hold."""

    def __init__(self, reference: str, message: str) -> None:
        super().__init__(message)
        self.reference = reference


class DocumentValidationError(AssemblyError):
    """Raised when the rendered document is not a valid OpenAPI description."""


class ExampleValidationError(GenerationError):
    """Raised when an example payload does not match its schema."""
