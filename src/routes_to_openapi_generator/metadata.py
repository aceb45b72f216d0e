"""Document-level metadata: info, servers, tags and security schemes."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .json_types import MutableJSONObject


class _Metadata(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def to_openapi(self) -> MutableJSONObject:
        """Render as the matching OpenAPI object."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Contact(_Metadata):
    """Contact details published in the info block."""

    name: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None


class Info(_Metadata):
    """The document info block."""

    title: str
    version: str
    description: Optional[str] = None
    contact: Optional[Contact] = None


class Server(_Metadata):
    """A server the API is reachable at."""

    url: str
    description: Optional[str] = None


class TagInfo(_Metadata):
    """A tag with an optional description."""

    name: str
    description: Optional[str] = None


class SecurityScheme(_Metadata):
    """An OpenAPI security scheme; field names follow the OpenAPI spelling on the wire."""

    type: str
    description: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = Field(default=None, alias="in")
    scheme: Optional[str] = None
    bearer_format: Optional[str] = Field(default=None, alias="bearerFormat")
    flows: Optional[dict[str, Any]] = None
    open_id_connect_url: Optional[str] = Field(default=None, alias="openIdConnectUrl")
