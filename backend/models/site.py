"""Site and API definition models."""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from engine.kernel.paths import stringify

# Directory-safe site and API names
NAME_PATTERN = r"^[A-Za-z0-9_.\-]+$"

_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_params(params: Any) -> dict[str, str]:
    """
    Coerce the shapes editors send for query params into a flat string map.

    Accepts an object, a list of [key, value] pairs, or a list of
    {key|name|param|k, value|v} objects. Keys are trimmed and blank keys
    dropped; null values become "" and objects become JSON text. Any other
    input yields an empty map.
    """
    out: dict[str, str] = {}
    if isinstance(params, dict):
        for key, value in params.items():
            key = str(key).strip()
            if key:
                out[key] = stringify(value)
        return out

    if isinstance(params, list):
        for item in params:
            if isinstance(item, (list, tuple)) and len(item) >= 2:
                key, value = str(item[0]).strip(), item[1]
            elif isinstance(item, dict):
                raw_key = item.get("key") or item.get("name") or item.get("param") or item.get("k")
                if not raw_key:
                    continue
                key = str(raw_key).strip()
                value = item.get("value") or item.get("v") or ""
            else:
                continue
            if key:
                out[key] = stringify(value)
    return out


class FieldMapping(BaseModel):
    """Default value for one request field, sent in the body, query or headers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    request_field: str
    location: Literal["body", "query", "header"] = "body"
    value: Any = None


class MappingConfig(BaseModel):
    """How a write API's request is shaped."""

    model_config = _camel

    content_type: str = "application/json"
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    raw_body_template: str | None = None


class ApiDefinition(BaseModel):
    """A stored HTTP call, identified by name within its site."""

    model_config = _camel

    name: str
    url: str
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, str] = Field(default_factory=dict)
    body_template: Any = None
    mapping_config: MappingConfig | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: Any) -> str:
        return str(v or "GET").upper()

    @field_validator("headers", "params", mode="before")
    @classmethod
    def _flatten(cls, v: Any) -> dict[str, str]:
        return normalize_params(v)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class Site(BaseModel):
    """A prototype website and its registered APIs."""

    model_config = _camel

    name: str
    apis: list[ApiDefinition] = Field(default_factory=list)

    def get_api(self, name: str) -> ApiDefinition | None:
        return next((a for a in self.apis if a.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateSiteRequest(BaseModel):
    """What the client sends to create a site."""

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1, max_length=100, pattern=NAME_PATTERN)

    @field_validator("name")
    @classmethod
    def _not_dots(cls, v: str) -> str:
        if v in (".", ".."):
            raise ValueError("name must not be '.' or '..'")
        return v


class CreateApiRequest(BaseModel):
    """What the client sends to register an API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    url: str = Field(min_length=1)
    method: str | None = None
    headers: Any = None
    params: Any = None
    body_template: Any = None
    mapping_config: MappingConfig | None = None


class UpdateApiRequest(BaseModel):
    """
    What the client sends to edit an API. Only fields present are applied.
    A new `name` renames the API and every binding that references it.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    url: str | None = None
    method: str | None = None
    headers: Any = None
    params: Any = None
    body_template: Any = None
    mapping_config: MappingConfig | None = None


class ExecuteRequest(BaseModel):
    """Per-call overrides for executing an API."""

    headers: dict[str, Any] = Field(default_factory=dict)
    params: dict[str, Any] = Field(default_factory=dict)
    body: Any = None


class SavePageRequest(BaseModel):
    """What the editor sends to save a page."""

    model_config = {"extra": "forbid"}

    path: str = Field(min_length=1)
    content: str


class PreviewRequest(BaseModel):
    """Template to preview, optionally against caller-supplied data."""

    model_config = {"extra": "forbid"}

    html: str
    page: str | None = None
    data: dict[str, Any] | None = None
    engine: Literal["auto", "builtin", "mustache"] = "auto"


class ComponentRequest(BaseModel):
    """What the editor sends to generate a component snippet for an API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    page: str | None = None
    api_name: str = Field(min_length=1)
    method: str | None = None
    sample: Any = None
    fields: list[str] | None = None
    api_path: str | None = None


def is_safe_name(name: str) -> bool:
    """Directory-safe name check shared by routes that take a name in the URL."""
    return bool(re.match(NAME_PATTERN, name)) and name not in (".", "..")
