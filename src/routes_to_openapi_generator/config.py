"""Generator configuration and its YAML loader."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .json_types import JSONValue
from .metadata import Info, SecurityScheme, Server, TagInfo

DEFAULT_OPENAPI_VERSION = "3.0.3"


class ConfigLoadError(RuntimeError):
    """Raised when a generator configuration file cannot be loaded."""


class ServeConfig(BaseModel):
    """Paths used when serving the document over HTTP."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    json_path: str = "/openapi.json"
    docs_url: str = "/swagger-ui/index.html"


class GeneratorConfig(BaseModel):
    """Document-wide settings for one generator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    openapi: str = DEFAULT_OPENAPI_VERSION
    info: Info = Field(default_factory=lambda: Info(title="API", version="0.1.0"))
    servers: tuple[Server, ...] = ()
    tags: tuple[TagInfo, ...] = ()
    security_schemes: dict[str, SecurityScheme] = Field(default_factory=dict)
    validate_examples: bool = True
    serve: ServeConfig = Field(default_factory=ServeConfig)

    @field_validator("openapi")
    @classmethod
    def _check_openapi_version(cls, value: str) -> str:
        # Schemas use the 3.0 ``nullable`` keyword, which 3.1 removed.
        parts = value.strip().split(".")
        if len(parts) < 2 or parts[0] != "3" or parts[1] != "0":
            raise ValueError(f"Unsupported OpenAPI version {value}; only 3.0.x is emitted")
        return value.strip()


def load_generator_config(path: Path) -> GeneratorConfig:
    """Load and validate a generator configuration from YAML."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigLoadError(f"Failed to read configuration file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Failed to parse YAML in {path}: {exc}") from exc

    payload_value: JSONValue = payload if payload is not None else {}
    if not isinstance(payload_value, dict):
        raise ConfigLoadError(
            f"Configuration must deserialize to a mapping, got {type(payload_value)!r}"
        )

    try:
        return GeneratorConfig.model_validate(payload_value)
    except ValidationError as exc:
        raise ConfigLoadError(f"Configuration validation failed for {path}: {exc}") from exc
