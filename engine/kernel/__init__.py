"""
AppBuilder Kernel — the pure template engine.

Components:
  paths       — dotted-path resolution + JS-compatible stringification
  renderer    — each-block expansion, placeholder substitution, render()
  actions     — click-wiring script for action bindings
  preview     — editor preview (builtin → mustache → raw)
  generators  — component snippets for APIs
  bindings    — one site's bindings with rename and dangling checks

No IO anywhere in this package.
"""

from engine.kernel.actions import inject_actions
from engine.kernel.bindings import SiteBindings
from engine.kernel.generators import (
    derive_component_binding,
    generate_form_component,
    generate_get_component,
)
from engine.kernel.paths import resolve, stringify
from engine.kernel.preview import render_preview
from engine.kernel.renderer import (
    TemplateSyntaxError,
    expand_each,
    render,
    substitute,
    validate_template,
)
from engine.kernel.types import (
    ActionBinding,
    Binding,
    ComponentBinding,
    PlaceholderBinding,
    RenderContext,
    RenderResult,
    Warning,
)

__all__ = [
    "resolve",
    "stringify",
    "render",
    "expand_each",
    "substitute",
    "validate_template",
    "TemplateSyntaxError",
    "inject_actions",
    "render_preview",
    "generate_get_component",
    "generate_form_component",
    "derive_component_binding",
    "SiteBindings",
    "ActionBinding",
    "Binding",
    "ComponentBinding",
    "PlaceholderBinding",
    "RenderContext",
    "RenderResult",
    "Warning",
]
