"""Declarative markers attached to declared types with ``Annotated`` or decorators."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Annotated, Optional, TypeVar

_ClassT = TypeVar("_ClassT", bound=type)

SEALED_ATTRIBUTE = "__openapi_discriminator__"
VARIANT_ATTRIBUTE = "__openapi_variant_tag__"

PARAMETER_PATH = "path"
PARAMETER_QUERY = "query"
PARAMETER_HEADER = "header"


@dataclass(frozen=True)
class NumberFormat:
    """Explicit numeric kind for an ``int`` or ``float`` annotation."""

    schema_type: str
    format: Optional[str] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None


@dataclass(frozen=True)
class Description:
    """Human readable description for a field."""

    text: str


@dataclass(frozen=True)
class ParameterLocation:
    """Where a parameter field is carried in the request."""

    location: str
    description: Optional[str] = None


class PathParam(ParameterLocation):
    """Mark a field as a path parameter."""

    def __init__(self, description: Optional[str] = None) -> None:
        super().__init__(PARAMETER_PATH, description)


class QueryParam(ParameterLocation):
    """Mark a field as a query parameter."""

    def __init__(self, description: Optional[str] = None) -> None:
        super().__init__(PARAMETER_QUERY, description)


class HeaderParam(ParameterLocation):
    """Mark a field as a header parameter."""

    def __init__(self, description: Optional[str] = None) -> None:
        super().__init__(PARAMETER_HEADER, description)


@dataclass(frozen=True, init=False)
class Discriminated:
    """Closed tagged union over explicitly listed variant classes.

    Use as ``Annotated[A | B, Discriminated("kind", {"a": A, "b": B})]``.
    """

    property_name: str
    variants: tuple[tuple[str, type], ...]
    name: Optional[str]

    def __init__(
        self,
        property_name: str,
        variants: Mapping[str, type],
        *,
        name: Optional[str] = None,
    ) -> None:
        object.__setattr__(self, "property_name", property_name)
        object.__setattr__(self, "variants", tuple(variants.items()))
        object.__setattr__(self, "name", name)


def sealed(discriminator: str) -> Callable[[_ClassT], _ClassT]:
    """Declare a base class as a closed hierarchy tagged by ``discriminator``."""

    def _decorator(cls: _ClassT) -> _ClassT:
        setattr(cls, SEALED_ATTRIBUTE, discriminator)
        return cls

    return _decorator


def variant(tag: str) -> Callable[[_ClassT], _ClassT]:
    """Declare the wire tag of a concrete subclass of a sealed base."""

    def _decorator(cls: _ClassT) -> _ClassT:
        setattr(cls, VARIANT_ATTRIBUTE, tag)
        return cls

    return _decorator


def variant_tag(cls: type) -> Optional[str]:
    """Return the tag declared directly on ``cls`` (never an inherited one)."""
    tag = cls.__dict__.get(VARIANT_ATTRIBUTE)
    return tag if isinstance(tag, str) else None


def sealed_discriminator(cls: type) -> Optional[str]:
    """Return the discriminator declared directly on ``cls``."""
    discriminator = cls.__dict__.get(SEALED_ATTRIBUTE)
    return discriminator if isinstance(discriminator, str) else None


def variant_discriminator(cls: type) -> Optional[tuple[str, str]]:
    """Return ``(discriminator, tag)`` when ``cls`` is a tagged variant of a sealed base."""
    tag = variant_tag(cls)
    if tag is None:
        return None
    for ancestor in cls.__mro__[1:]:
        discriminator = sealed_discriminator(ancestor)
        if discriminator is not None:
            return discriminator, tag
    return None


Int32 = Annotated[int, NumberFormat("integer", "int32")]
Int64 = Annotated[int, NumberFormat("integer", "int64")]
UInt32 = Annotated[int, NumberFormat("integer", "int64", minimum=0, maximum=2**32 - 1)]
Float32 = Annotated[float, NumberFormat("number", "float")]
Float64 = Annotated[float, NumberFormat("number", "double")]
