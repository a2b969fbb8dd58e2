"""Binding request models (placeholders, actions, page components)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_request = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CreatePlaceholderRequest(BaseModel):
    """Bind a named {{placeholder}} to a path inside one API's response."""

    model_config = _request

    placeholder: str = Field(min_length=1)
    api_name: str = Field(min_length=1)
    json_path: str = Field(min_length=1)
    pages: list[str] = Field(default_factory=list)


class CreateActionRequest(BaseModel):
    """Wire clicks on `selector` to an API call."""

    model_config = _request

    selector: str = Field(min_length=1)
    api_name: str = Field(min_length=1)
    method: str | None = None
    fields: list[str] = Field(default_factory=list)
    page: str | None = None


class UpsertComponentRequest(BaseModel):
    """
    Record the API a page component targets. One record per (page, apiName);
    fields left out keep their stored values.
    """

    model_config = _request

    page: str = Field(min_length=1)
    api_name: str = Field(min_length=1)
    method: str | None = None
    field_mappings: dict[str, str] | None = None
    submit_selector: str | None = None


class BindingDiagnostics(BaseModel):
    """Bindings of a site that reference APIs the site no longer has."""

    site: str
    dangling: list[dict[str, Any]]
