"""Resolve declared Python types into immutable type descriptors."""

from __future__ import annotations

import collections.abc
import dataclasses
import datetime
import enum
import inspect
import logging
import types
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import (
    Annotated,
    Any,
    Literal,
    Optional,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel

from .descriptors import (
    ArrayDescriptor,
    FieldDescriptor,
    ForwardRefDescriptor,
    MapDescriptor,
    NullableDescriptor,
    ObjectDescriptor,
    PrimitiveDescriptor,
    TypeDescriptor,
    UnionDescriptor,
    strip_nullable,
)
from .errors import OpenHierarchyError, ResolutionError, UnsupportedKeyTypeError
from .json_types import JSONPrimitive
from .markers import (
    Description,
    Discriminated,
    NumberFormat,
    ParameterLocation,
    sealed_discriminator,
    variant_discriminator,
    variant_tag,
)

logger = logging.getLogger(__name__)

_NONE_TYPE = type(None)
_MarkerT = TypeVar("_MarkerT")

_PRIMITIVES: dict[type, PrimitiveDescriptor] = {
    str: PrimitiveDescriptor("string"),
    bool: PrimitiveDescriptor("boolean"),
    int: PrimitiveDescriptor("integer", "int64"),
    float: PrimitiveDescriptor("number", "double"),
    Decimal: PrimitiveDescriptor("number"),
    bytes: PrimitiveDescriptor("string", "byte"),
    datetime.datetime: PrimitiveDescriptor("string", "date-time"),
    datetime.date: PrimitiveDescriptor("string", "date"),
    datetime.time: PrimitiveDescriptor("string", "time"),
    uuid.UUID: PrimitiveDescriptor("string", "uuid"),
}

_SEQUENCE_ORIGINS: frozenset[Any] = frozenset(
    {list, collections.abc.Sequence, collections.abc.MutableSequence, collections.abc.Iterable}
)
_SET_ORIGINS: frozenset[Any] = frozenset(
    {set, frozenset, collections.abc.Set, collections.abc.MutableSet}
)
_MAPPING_ORIGINS: frozenset[Any] = frozenset(
    {dict, collections.abc.Mapping, collections.abc.MutableMapping}
)


@dataclass(frozen=True)
class _DeclaredField:
    name: str
    annotation: Any
    required: bool
    description: Optional[str]


class TypeResolver:
    """Resolve declared types into memoized, structurally comparable descriptors.

    Object and union descriptors are cached by the identity of their source
    type (generic instantiations included), so each declared type resolves to
    exactly one descriptor for the lifetime of the resolver.  A type that is
    met again while its own resolution is still running yields a
    :class:`ForwardRefDescriptor`, which the schema registry later turns into
    a named reference.
    """

    def __init__(self) -> None:
        self._cache: dict[Any, TypeDescriptor] = {}
        self._in_progress: dict[str, str] = {}
        self._completed: dict[str, TypeDescriptor] = {}

    def resolve(self, type_ref: Any) -> TypeDescriptor:
        """Resolve ``type_ref`` into a descriptor.

        Args:
            type_ref (Any): Class, typing construct or ``Annotated`` alias.

        Returns:
            TypeDescriptor: Descriptor for the declared shape.
        """
        try:
            cached = self._cache.get(type_ref)
        except TypeError:
            return self._resolve(type_ref, path=type_label(type_ref))
        if cached is not None:
            return cached
        descriptor = self._resolve(type_ref, path=type_label(type_ref))
        self._cache[type_ref] = descriptor
        return descriptor

    def descriptor_for_key(self, key: str) -> TypeDescriptor:
        """Return the completed descriptor for a forward reference key."""
        descriptor = self._completed.get(key)
        if descriptor is None:
            raise ResolutionError(
                f"Forward reference to {key} never completed; the type graph has no resolvable root"
            )
        return descriptor

    def _resolve(self, type_ref: Any, *, path: str) -> TypeDescriptor:
        base, metadata = split_annotated(type_ref)

        discriminated = _first_marker(metadata, Discriminated)
        if discriminated is not None:
            return self._resolve_discriminated(base, discriminated, path=path)
        number_format = _first_marker(metadata, NumberFormat)
        if number_format is not None:
            return _number_descriptor(base, number_format, path=path)

        if base is Any or base is object:
            raise ResolutionError(f"{path}: {type_label(base)} is not a declared structural type")
        if isinstance(base, TypeVar):
            raise ResolutionError(f"{path}: type parameter {base.__name__} is not bound")

        origin = get_origin(base)
        args = get_args(base)
        if origin is Union or origin is types.UnionType:
            return self._resolve_union(args, path=path)
        if origin is Literal:
            return _literal_descriptor(args, path=path)
        if origin in _SEQUENCE_ORIGINS or origin in _SET_ORIGINS or origin is tuple:
            return self._resolve_sequence(origin, args, path=path)
        if origin in _MAPPING_ORIGINS:
            return self._resolve_mapping(args, path=path)
        if base in _SEQUENCE_ORIGINS or base in _SET_ORIGINS or base in _MAPPING_ORIGINS:
            raise ResolutionError(f"{path}: container {type_label(base)} needs type arguments")
        if base is tuple:
            raise ResolutionError(f"{path}: container tuple needs type arguments")

        if isinstance(base, type):
            primitive = _PRIMITIVES.get(base)
            if primitive is not None:
                return primitive
            if issubclass(base, enum.Enum):
                return _enum_descriptor(base, path=path)
            if sealed_discriminator(base) is not None:
                return self._resolve_sealed(base, path=path)

        if _is_model_type(base) or _is_dataclass_type(base):
            return self._resolve_object(base, path=path)

        raise ResolutionError(f"{path}: unsupported type {type_label(base)}")

    def _resolve_union(self, args: tuple[Any, ...], *, path: str) -> TypeDescriptor:
        members = [arg for arg in args if arg is not _NONE_TYPE]
        nullable = len(members) != len(args)
        if len(members) != 1:
            labels = ", ".join(type_label(member) for member in members)
            raise OpenHierarchyError(
                f"{path}: union of {labels} has no discriminator; "
                "declare a @sealed base or use Discriminated(...)"
            )
        inner = self._resolve(members[0], path=path)
        if nullable and not isinstance(inner, NullableDescriptor):
            return NullableDescriptor(inner)
        return inner

    def _resolve_sequence(
        self,
        origin: Any,
        args: tuple[Any, ...],
        *,
        path: str,
    ) -> ArrayDescriptor:
        if origin is tuple:
            if len(args) != 2 or args[1] is not Ellipsis:
                raise ResolutionError(
                    f"{path}: fixed-length tuples are not supported, use tuple[X, ...]"
                )
            args = args[:1]
        if len(args) != 1:
            raise ResolutionError(f"{path}: sequence {type_label(origin)} needs one item type")
        item = self._resolve(args[0], path=f"{path}[]")
        return ArrayDescriptor(item=item, unique_items=origin in _SET_ORIGINS)

    def _resolve_mapping(self, args: tuple[Any, ...], *, path: str) -> MapDescriptor:
        if len(args) != 2:
            raise ResolutionError(f"{path}: mapping needs key and value types")
        key_type, value_type = args
        key_base, _ = split_annotated(key_type)
        if key_base is not str and not (
            isinstance(key_base, type) and issubclass(key_base, enum.Enum) and issubclass(key_base, str)
        ):
            raise UnsupportedKeyTypeError(
                f"{path}: mapping key type {type_label(key_type)} is not a string type"
            )
        return MapDescriptor(value=self._resolve(value_type, path=f"{path}{{}}"))

    def _resolve_sealed(self, base: type, *, path: str) -> TypeDescriptor:
        key = qualified_name(base)
        reused = self._reuse(key, base.__name__)
        if reused is not None:
            return reused

        discriminator = sealed_discriminator(base)
        if discriminator is None:
            raise OpenHierarchyError(f"{path}: {base.__name__} is not a sealed base")

        self._in_progress[key] = base.__name__
        try:
            tagged = _enumerate_variants(base, path=path)
            variants = tuple(
                (tag, self._resolve_object(cls, path=f"{path}<{tag}>")) for tag, cls in tagged
            )
        finally:
            self._in_progress.pop(key, None)

        descriptor = UnionDescriptor(
            name=base.__name__,
            discriminator=discriminator,
            variants=variants,
            description=class_description(base),
            key=key,
        )
        self._completed[key] = descriptor
        logger.debug("Resolved sealed hierarchy %s with %d variants", key, len(variants))
        return descriptor

    def _resolve_discriminated(
        self,
        base: Any,
        marker: Discriminated,
        *,
        path: str,
    ) -> TypeDescriptor:
        origin = get_origin(base)
        members = list(get_args(base)) if origin is Union or origin is types.UnionType else [base]
        nullable = _NONE_TYPE in members
        members = [member for member in members if member is not _NONE_TYPE]
        variant_classes = [cls for _, cls in marker.variants]

        if not variant_classes:
            raise OpenHierarchyError(f"{path}: Discriminated declares no variants")
        if len(set(variant_classes)) != len(variant_classes):
            raise OpenHierarchyError(f"{path}: Discriminated lists a variant class twice")
        for cls in variant_classes:
            if not any(_covers(member, cls) for member in members):
                raise OpenHierarchyError(
                    f"{path}: variant {cls.__name__} is not part of {type_label(base)}"
                )
        for member in members:
            if not any(_covers(member, cls) for cls in variant_classes):
                raise OpenHierarchyError(
                    f"{path}: member {type_label(member)} has no discriminator tag"
                )

        name = marker.name or "Or".join(cls.__name__ for cls in variant_classes)
        key = f"discriminated:{marker.property_name}:" + ",".join(
            f"{tag}={qualified_name(cls)}" for tag, cls in marker.variants
        )
        reused = self._reuse(key, name)
        if reused is not None:
            return NullableDescriptor(reused) if nullable else reused

        self._in_progress[key] = name
        try:
            variants = tuple(
                (
                    tag,
                    self._resolve_object(
                        cls,
                        path=f"{path}<{tag}>",
                        tag_override=(marker.property_name, tag),
                    ),
                )
                for tag, cls in marker.variants
            )
        finally:
            self._in_progress.pop(key, None)

        descriptor = UnionDescriptor(
            name=name,
            discriminator=marker.property_name,
            variants=variants,
            key=key,
        )
        self._completed[key] = descriptor
        return NullableDescriptor(descriptor) if nullable else descriptor

    def _resolve_object(
        self,
        type_ref: Any,
        *,
        path: str,
        tag_override: Optional[tuple[str, str]] = None,
    ) -> TypeDescriptor:
        """Resolve a dataclass or pydantic model into an object descriptor.

        A ``tag_override`` adds the discriminator of a ``Discriminated`` union
        and is part of the key, so a class used both on its own and as such a
        variant yields two shapes.  The registry names whichever registers
        second with a counter, for example ``Cat`` and ``Cat2``.
        """
        origin, args = _generic_parts(type_ref, path=path)
        key = qualified_name(origin)
        if args:
            key += "[" + ", ".join(type_label(arg) for arg in args) + "]"
        if tag_override is not None:
            key += f"#{tag_override[0]}={tag_override[1]}"

        name = origin.__name__
        reused = self._reuse(key, name)
        if reused is not None:
            return reused

        self._in_progress[key] = name
        try:
            type_args = tuple(
                self._resolve(arg, path=f"{path}[{type_label(arg)}]") for arg in args
            )
            if _is_model_type(type_ref):
                declared = _model_fields(type_ref)
            else:
                declared = _dataclass_fields(origin, args, path=path)
            fields = [self._resolve_field(item, path=path) for item in declared]
        finally:
            self._in_progress.pop(key, None)

        tag = tag_override if tag_override is not None else variant_discriminator(origin)
        if tag is not None and not any(item.name == tag[0] for item in fields):
            fields.insert(
                0,
                FieldDescriptor(
                    name=tag[0],
                    descriptor=PrimitiveDescriptor("string", enum=(tag[1],)),
                    required=True,
                    nullable=False,
                ),
            )

        descriptor = ObjectDescriptor(
            name=name,
            fields=tuple(fields),
            type_args=type_args,
            description=class_description(origin),
            key=key,
        )
        self._completed[key] = descriptor
        logger.debug("Resolved %s with %d fields", key, len(fields))
        return descriptor

    def _resolve_field(self, declared: _DeclaredField, *, path: str) -> FieldDescriptor:
        location: Optional[ParameterLocation] = None
        description = declared.description
        for marker in field_markers(declared.annotation):
            if isinstance(marker, ParameterLocation) and location is None:
                location = marker
                description = description or marker.description
            elif isinstance(marker, Description):
                description = description or marker.text

        descriptor = self._resolve(declared.annotation, path=f"{path}.{declared.name}")
        inner, nullable = strip_nullable(descriptor)
        return FieldDescriptor(
            name=declared.name,
            descriptor=inner,
            required=declared.required,
            nullable=nullable,
            description=description,
            location=location.location if location is not None else None,
        )

    def _reuse(self, key: str, name: str) -> Optional[TypeDescriptor]:
        completed = self._completed.get(key)
        if completed is not None:
            return completed
        if key in self._in_progress:
            return ForwardRefDescriptor(key=key, name=name)
        return None


def split_annotated(type_ref: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split ``Annotated[T, *meta]`` into ``T`` and its metadata."""
    if get_origin(type_ref) is Annotated:
        base, *metadata = get_args(type_ref)
        return base, tuple(metadata)
    return type_ref, ()


def field_markers(annotation: Any) -> tuple[Any, ...]:
    """Collect ``Annotated`` metadata on a field, looking through ``Optional``."""
    base, metadata = split_annotated(annotation)
    origin = get_origin(base)
    if origin is Union or origin is types.UnionType:
        nested: list[Any] = list(metadata)
        for member in get_args(base):
            nested.extend(split_annotated(member)[1])
        return tuple(nested)
    return metadata


def type_label(type_ref: Any) -> str:
    """Return a readable label for a type in error messages and keys."""
    if isinstance(type_ref, type):
        return type_ref.__name__
    return repr(type_ref).replace("typing.", "")


def qualified_name(cls: Any) -> str:
    """Return the module-qualified name of a class."""
    return f"{cls.__module__}.{cls.__qualname__}"


def class_key(cls: Any) -> str:
    """Return the key under which instances of ``cls`` are looked up in :func:`variant_tags`."""
    return qualified_name(cls).split("[", 1)[0]


def variant_tags(descriptor: TypeDescriptor) -> dict[str, tuple[str, str]]:
    """Collect the discriminator of every union variant reachable from ``descriptor``.

    Returns:
        dict[str, tuple[str, str]]: ``(property, tag)`` by :func:`class_key` of the variant class.
    """
    tags: dict[str, tuple[str, str]] = {}
    seen: set[int] = set()
    pending: list[TypeDescriptor] = [descriptor]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, NullableDescriptor):
            pending.append(current.inner)
        elif isinstance(current, ArrayDescriptor):
            pending.append(current.item)
        elif isinstance(current, MapDescriptor):
            pending.append(current.value)
        elif isinstance(current, ObjectDescriptor):
            pending.extend(item.descriptor for item in current.fields)
        elif isinstance(current, UnionDescriptor):
            for tag, variant_descriptor in current.variants:
                if isinstance(variant_descriptor, ObjectDescriptor):
                    source = variant_descriptor.key.split("#", 1)[0].split("[", 1)[0]
                    tags.setdefault(source, (current.discriminator, tag))
                pending.append(variant_descriptor)
    return tags


def class_description(cls: Any) -> Optional[str]:
    """Return the cleaned docstring declared on ``cls`` itself."""
    doc = cls.__dict__.get("__doc__") if isinstance(cls, type) else None
    if not isinstance(doc, str) or not doc.strip():
        return None
    if dataclasses.is_dataclass(cls) and doc.startswith(f"{cls.__name__}("):
        # Auto-generated dataclass signature, not a description.
        return None
    return inspect.cleandoc(doc)


def _first_marker(metadata: tuple[Any, ...], marker_type: type[_MarkerT]) -> Optional[_MarkerT]:
    for item in metadata:
        if isinstance(item, marker_type):
            return item
    return None


def _is_model_type(type_ref: Any) -> bool:
    return isinstance(type_ref, type) and issubclass(type_ref, BaseModel)


def _is_dataclass_type(type_ref: Any) -> bool:
    target = get_origin(type_ref) or type_ref
    return isinstance(target, type) and dataclasses.is_dataclass(target)


def _generic_parts(type_ref: Any, *, path: str) -> tuple[type, tuple[Any, ...]]:
    if _is_model_type(type_ref):
        metadata = getattr(type_ref, "__pydantic_generic_metadata__", None) or {}
        origin = metadata.get("origin") or type_ref
        args = tuple(metadata.get("args") or ())
        parameters = tuple(metadata.get("parameters") or ())
        if parameters:
            names = ", ".join(str(parameter) for parameter in parameters)
            raise ResolutionError(f"{path}: generic model {origin.__name__} has unbound parameters {names}")
        return origin, args

    origin = get_origin(type_ref) or type_ref
    args = get_args(type_ref)
    parameters = getattr(origin, "__parameters__", ())
    if parameters and not args:
        names = ", ".join(str(parameter) for parameter in parameters)
        raise ResolutionError(f"{path}: generic type {origin.__name__} has unbound parameters {names}")
    return origin, args


def _model_fields(model: type[BaseModel]) -> list[_DeclaredField]:
    declared: list[_DeclaredField] = []
    for field_name, info in model.model_fields.items():
        if info.exclude:
            continue
        annotation: Any = info.annotation
        if info.metadata:
            annotation = Annotated[(annotation, *info.metadata)]
        declared.append(
            _DeclaredField(
                name=info.serialization_alias or info.alias or field_name,
                annotation=annotation,
                required=info.is_required(),
                description=info.description,
            )
        )
    return declared


def _dataclass_fields(origin: type, args: tuple[Any, ...], *, path: str) -> list[_DeclaredField]:
    try:
        hints = get_type_hints(origin, include_extras=True)
    except NameError as exc:
        raise ResolutionError(f"{path}: cannot evaluate annotations of {origin.__name__}: {exc}") from exc

    substitutions = dict(zip(getattr(origin, "__parameters__", ()), args))
    declared: list[_DeclaredField] = []
    for item in dataclasses.fields(origin):
        description = item.metadata.get("description")
        declared.append(
            _DeclaredField(
                name=item.name,
                annotation=_substitute(hints.get(item.name, item.type), substitutions),
                required=(
                    item.default is dataclasses.MISSING
                    and item.default_factory is dataclasses.MISSING
                ),
                description=description if isinstance(description, str) else None,
            )
        )
    return declared


def _substitute(annotation: Any, substitutions: dict[Any, Any]) -> Any:
    if not substitutions:
        return annotation
    if isinstance(annotation, TypeVar):
        return substitutions.get(annotation, annotation)
    parameters = getattr(annotation, "__parameters__", ())
    if parameters:
        return annotation[tuple(substitutions.get(parameter, parameter) for parameter in parameters)]
    return annotation


def _number_descriptor(base: Any, number_format: NumberFormat, *, path: str) -> PrimitiveDescriptor:
    if base not in (int, float):
        raise ResolutionError(f"{path}: NumberFormat applies to int or float, not {type_label(base)}")
    if base is float and number_format.schema_type == "integer":
        raise ResolutionError(f"{path}: float cannot carry an integer format")
    return PrimitiveDescriptor(
        number_format.schema_type,
        number_format.format,
        minimum=number_format.minimum,
        maximum=number_format.maximum,
    )


def _enum_descriptor(cls: type[enum.Enum], *, path: str) -> PrimitiveDescriptor:
    values = tuple(member.value for member in cls)
    return PrimitiveDescriptor(_literal_type(values, path=path), enum=values)


def _literal_descriptor(args: tuple[Any, ...], *, path: str) -> TypeDescriptor:
    values = tuple(arg.value if isinstance(arg, enum.Enum) else arg for arg in args)
    non_null = tuple(value for value in values if value is not None)
    if not non_null:
        raise ResolutionError(f"{path}: Literal needs at least one non-null value")
    primitive = PrimitiveDescriptor(_literal_type(non_null, path=path), enum=non_null)
    if len(non_null) != len(values):
        return NullableDescriptor(primitive)
    return primitive


def _literal_type(values: tuple[JSONPrimitive, ...], *, path: str) -> str:
    if all(isinstance(value, bool) for value in values):
        return "boolean"
    if all(isinstance(value, str) for value in values):
        return "string"
    if all(isinstance(value, int) and not isinstance(value, bool) for value in values):
        return "integer"
    if all(isinstance(value, (int, float)) and not isinstance(value, bool) for value in values):
        return "number"
    raise ResolutionError(f"{path}: enumerated values {values!r} do not share one JSON type")


def _enumerate_variants(base: type, *, path: str) -> list[tuple[str, type]]:
    tagged: list[tuple[str, type]] = []
    seen_tags: dict[str, type] = {}
    pending = list(base.__subclasses__())
    while pending:
        cls = pending.pop(0)
        children = cls.__subclasses__()
        tag = variant_tag(cls)
        if tag is None:
            if not children:
                raise OpenHierarchyError(
                    f"{path}: subclass {cls.__name__} of sealed {base.__name__} has no @variant tag"
                )
            pending.extend(children)
            continue
        if tag in seen_tags:
            raise OpenHierarchyError(
                f"{path}: tag {tag!r} is used by both {seen_tags[tag].__name__} and {cls.__name__}"
            )
        seen_tags[tag] = cls
        tagged.append((tag, cls))
        pending.extend(children)
    if not tagged:
        raise OpenHierarchyError(f"{path}: sealed {base.__name__} declares no variants")
    return tagged


def _covers(member: Any, cls: type) -> bool:
    member_base, _ = split_annotated(member)
    return isinstance(member_base, type) and issubclass(cls, member_base)

