"""
AppBuilder Kernel — Shared Types

Data classes used across the resolver, renderer, action injector and preview.
These are the contracts between the kernel and the service layer.

Bindings are one tagged union with a shared `api_name`:
- PlaceholderBinding — named {{placeholder}} → (api, jsonPath), optionally page-scoped
- ActionBinding      — CSS selector click → POST to the api's execute endpoint
- ComponentBinding   — form/component inserted on a page → api + field selectors

The persisted JSON keeps camelCase keys (apiName, jsonPath, fieldMappings, ...);
from_dict/to_dict translate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

META_KEY = "__meta__"

BINDING_KINDS: set[str] = {"placeholder", "action", "component"}

# Warning codes emitted by the renderer
WARNING_CODES: set[str] = {
    "unresolved_path",
    "each_not_array",
    "dangling_api",
    "template_syntax",
    "render_failed",
}


# ---------------------------------------------------------------------------
# Bindings
# ---------------------------------------------------------------------------


@dataclass
class PlaceholderBinding:
    """Binds {{placeholder}} to a dotted path inside one API's response."""

    placeholder: str
    api_name: str
    json_path: str
    pages: list[str] = field(default_factory=list)
    kind: Literal["placeholder"] = "placeholder"

    def applies_to(self, page: str | None) -> bool:
        """Global when pages is empty, otherwise only on the listed pages."""
        if not self.pages:
            return True
        return page in self.pages

    def to_dict(self) -> dict[str, Any]:
        return {
            "placeholder": self.placeholder,
            "apiName": self.api_name,
            "jsonPath": self.json_path,
            "pages": list(self.pages),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PlaceholderBinding:
        return cls(
            placeholder=d["placeholder"],
            api_name=d["apiName"],
            json_path=d.get("jsonPath", ""),
            pages=list(d.get("pages") or []),
        )


@dataclass
class ActionBinding:
    """Click on elements matching `selector` POSTs form values to an API."""

    id: str
    selector: str
    api_name: str
    method: str = "POST"
    fields: list[str] = field(default_factory=list)
    page: str | None = None
    kind: Literal["action"] = "action"

    def applies_to(self, page: str | None) -> bool:
        return not self.page or self.page == page

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "selector": self.selector,
            "apiName": self.api_name,
            "method": self.method,
            "fields": list(self.fields),
            "page": self.page,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ActionBinding:
        return cls(
            id=d.get("id", ""),
            selector=d.get("selector", ""),
            api_name=d["apiName"],
            method=d.get("method") or "POST",
            fields=list(d.get("fields") or []),
            page=d.get("page") or None,
        )


@dataclass
class ComponentBinding:
    """Records which API a component inserted on a page targets."""

    id: str
    page: str
    api_name: str
    method: str = "POST"
    field_mappings: dict[str, str] = field(default_factory=dict)
    submit_selector: str | None = None
    kind: Literal["component"] = "component"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "page": self.page,
            "apiName": self.api_name,
            "method": self.method,
            "fieldMappings": dict(self.field_mappings),
            "submitSelector": self.submit_selector,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ComponentBinding:
        return cls(
            id=d.get("id", ""),
            page=d["page"],
            api_name=d["apiName"],
            method=d.get("method") or "POST",
            field_mappings=dict(d.get("fieldMappings") or {}),
            submit_selector=d.get("submitSelector"),
        )


Binding = PlaceholderBinding | ActionBinding | ComponentBinding


# ---------------------------------------------------------------------------
# Render input / output
# ---------------------------------------------------------------------------


@dataclass
class Warning:
    """A non-fatal issue encountered while rendering."""

    code: str
    message: str
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            d["details"] = self.details
        return d


@dataclass
class RenderContext:
    """
    Everything the renderer needs besides the template.

    data      — aggregated API data, keyed by API name, plus __meta__
    mappings  — placeholder bindings for the site
    actions   — action bindings for the site
    page      — relative path of the page being rendered (for page scoping)
    site_name — used by the action injector to build execute URLs
    """

    data: dict[str, Any] = field(default_factory=dict)
    mappings: list[PlaceholderBinding] = field(default_factory=list)
    actions: list[ActionBinding] = field(default_factory=list)
    page: str | None = None
    site_name: str = ""


@dataclass
class RenderResult:
    """Rendered HTML plus the diagnostics collected along the way."""

    html: str
    warnings: list[Warning] = field(default_factory=list)
    engine: str = "builtin"

    def to_dict(self) -> dict[str, Any]:
        return {
            "html": self.html,
            "engine": self.engine,
            "warnings": [w.to_dict() for w in self.warnings],
        }
