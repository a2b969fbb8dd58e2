"""
AppBuilder Kernel — Preview Renderer

Live preview for the editor. The builtin renderer is the same code that serves
pages, so a preview and the served page cannot drift apart. Fallback order:

  builtin   engine.kernel.renderer.render
  mustache  chevron, when the builtin renderer rejects the template
  raw       the template unchanged, when both fail

Previews never carry the action wiring script.
"""

from __future__ import annotations

from typing import Any

import chevron

from engine.kernel.paths import resolve
from engine.kernel.renderer import TemplateSyntaxError, render
from engine.kernel.types import PlaceholderBinding, RenderContext, RenderResult, Warning

ENGINES: tuple[str, ...] = ("auto", "builtin", "mustache")


def render_preview(
    template: str,
    data: dict[str, Any] | None = None,
    mappings: list[PlaceholderBinding] | None = None,
    page: str | None = None,
    engine: str = "auto",
) -> RenderResult:
    """
    Render a template for preview.

    engine="auto" tries builtin, then mustache, then returns the raw template.
    engine="builtin" raises TemplateSyntaxError instead of falling back.
    engine="mustache" skips the builtin renderer.
    """
    if engine not in ENGINES:
        raise ValueError(f"Unknown preview engine: {engine}")

    data = data or {}
    warnings: list[Warning] = []

    if engine in ("auto", "builtin"):
        try:
            return render(template, RenderContext(data=data, mappings=mappings or [], page=page))
        except TemplateSyntaxError as e:
            if engine == "builtin":
                raise
            warnings.append(Warning(code="template_syntax", message=str(e), details={"line": e.line}))

    try:
        html = chevron.render(template, mustache_context(data, mappings or [], page))
        return RenderResult(html=html, warnings=warnings, engine="mustache")
    except Exception as e:
        warnings.append(Warning(code="render_failed", message=f"Mustache render failed: {e}"))

    return RenderResult(html=template, warnings=warnings, engine="raw")


def mustache_context(
    data: dict[str, Any],
    mappings: list[PlaceholderBinding],
    page: str | None,
) -> dict[str, Any]:
    """Aggregated data plus the values of in-scope placeholder bindings."""
    context = dict(data)
    for binding in mappings:
        if not binding.applies_to(page):
            continue
        context[binding.placeholder] = resolve(data.get(binding.api_name), binding.json_path)
    return context
