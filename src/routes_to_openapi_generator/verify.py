"""Build-time checks of example payloads and component schemas."""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Mapping
from typing import Any, Optional

from jsonschema import Draft4Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from pydantic import BaseModel, TypeAdapter

from .errors import DocumentValidationError, ExampleValidationError
from .json_types import JSONObject, JSONValue, MutableJSONObject
from .markers import variant_discriminator
from .type_resolver import class_key


def encode_example(value: Any, tags: Optional[Mapping[str, tuple[str, str]]] = None) -> JSONValue:
    """Encode an example value into its JSON wire form.

    Dataclass and pydantic instances are walked field by field so that nested
    variants of sealed hierarchies keep their own fields and carry their
    discriminator tag.  Variants of ``Discriminated`` unions are tagged from
    ``tags``, as collected by :func:`variant_tags`.  Leaf values go through
    pydantic's JSON mode.
    """
    if value is None or (isinstance(value, (str, int, float, bool)) and not isinstance(value, enum.Enum)):
        return value
    if isinstance(value, BaseModel):
        payload: MutableJSONObject = {
            info.serialization_alias or info.alias or name: encode_example(getattr(value, name), tags)
            for name, info in type(value).model_fields.items()
            if not info.exclude
        }
        return _tagged(type(value), payload, tags)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        payload = {
            item.name: encode_example(getattr(value, item.name), tags) for item in dataclasses.fields(value)
        }
        return _tagged(type(value), payload, tags)
    if isinstance(value, Mapping):
        return {str(encode_example(key, tags)): encode_example(item, tags) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [encode_example(item, tags) for item in value]
    encoded: JSONValue = TypeAdapter(type(value)).dump_python(value, mode="json")
    return encoded


def to_json_schema(node: Any) -> Any:
    """Convert OpenAPI 3.0 ``nullable`` markers into JSON-Schema type unions."""
    if isinstance(node, list):
        return [to_json_schema(item) for item in node]
    if not isinstance(node, dict):
        return node

    normalized = {key: to_json_schema(value) for key, value in node.items()}
    nullable = normalized.pop("nullable", None)
    if nullable is not True:
        return normalized

    schema_type = normalized.get("type")
    if isinstance(schema_type, str):
        normalized["type"] = [schema_type, "null"]
        enum_values = normalized.get("enum")
        if isinstance(enum_values, list) and None not in enum_values:
            normalized["enum"] = [*enum_values, None]
        return normalized
    return {"anyOf": [normalized, {"type": "null"}]}


def validate_example(
    payload: JSONValue,
    *,
    schema: JSONObject,
    components: Mapping[str, JSONObject],
    label: str,
) -> None:
    """Check an example payload against its schema.

    Raises:
        ExampleValidationError: When the payload does not satisfy the schema.
    """
    root: MutableJSONObject = dict(to_json_schema(dict(schema)))
    root["components"] = {
        "schemas": {name: to_json_schema(dict(value)) for name, value in components.items()}
    }
    validator_cls = validator_for(root, default=Draft4Validator)
    validator = validator_cls(root)
    errors = sorted(validator.iter_errors(payload), key=lambda error: list(error.absolute_path))
    if errors:
        first = errors[0]
        location = "$" + "".join(f"[{part!r}]" for part in first.absolute_path)
        raise ExampleValidationError(
            f"{label}: example does not match its schema at {location}: {first.message}"
        )


def check_component_schemas(schemas: Mapping[str, JSONObject]) -> None:
    """Check every component schema is itself a well-formed schema.

    Raises:
        DocumentValidationError: On the first malformed schema.
    """
    for name, schema in schemas.items():
        normalized = to_json_schema(dict(schema))
        try:
            validator_for(normalized, default=Draft4Validator).check_schema(normalized)
        except SchemaError as exc:
            raise DocumentValidationError(f"Component schema {name} is malformed: {exc.message}") from exc


def _tagged(
    cls: type, payload: MutableJSONObject, tags: Optional[Mapping[str, tuple[str, str]]]
) -> MutableJSONObject:
    tag = tags.get(class_key(cls)) if tags else None
    if tag is None:
        tag = variant_discriminator(cls)
    if tag is None or tag[0] in payload:
        return payload
    return {tag[0]: tag[1], **payload}
