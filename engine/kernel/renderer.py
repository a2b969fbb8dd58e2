"""
AppBuilder Kernel — Template Renderer

Pure function: (html, RenderContext) → RenderResult
No IO. Deterministic: same input → same output, always.

Pipeline, in this order:
  1. validate      — each-blocks must be flat and balanced
  2. expand_each   — {{#each path}}...{{/each}} over arrays in the data
  3. substitute    — named placeholder bindings, then direct {{dotted.path}}
  4. inject_actions (engine.kernel.actions) — click wiring script

Template grammar (kept bit-compatible with existing pages):
  {{path.to.value}}            value from the aggregated data
  {{#each path}}...{{/each}}   loop; no nesting
  inside a loop body:
    {{this}}                   the current item
    {{this.field}}             field of the current item
    {{@index}}                 0-based position
    {{field}}                  item field if present, else resolved against
                               the outer data by the later passes

Unresolvable paths render as "" and are reported as warnings on the result.
The only thing that raises is a malformed each-block.
"""

from __future__ import annotations

import re
from typing import Any

from engine.kernel.actions import inject_actions
from engine.kernel.paths import resolve, stringify
from engine.kernel.types import (
    PlaceholderBinding,
    RenderContext,
    RenderResult,
    Warning,
)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

EACH_BLOCK_RE = re.compile(r"\{\{#each\s+([^}]+)\}\}([\s\S]*?)\{\{/each\}\}")
EACH_TAG_RE = re.compile(r"\{\{#each\s+[^}]+\}\}|\{\{/each\}\}")
ITEM_TOKEN_RE = re.compile(r"\{\{\s*(@index|[\w$.\-]+)\s*\}\}", re.ASCII)
PLACEHOLDER_RE = re.compile(r"\{\{\s*([\w$.\-]+)\s*\}\}", re.ASCII)


class TemplateSyntaxError(Exception):
    """Each-block markup is nested, unclosed, or has a stray close tag."""

    def __init__(self, message: str, line: int | None = None):
        self.line = line
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render(html: str, context: RenderContext | None = None) -> RenderResult:
    """
    Render a page template against aggregated API data and bindings.
    Pure function. No side effects. No IO.

    Raises TemplateSyntaxError for nested or unbalanced each-blocks.
    """
    ctx = context or RenderContext()
    warnings: list[Warning] = []

    out = html
    if "{{" in out:
        validate_template(out)
        out = expand_each(out, ctx.data, warnings)
        out = substitute(out, ctx.data, ctx.mappings, ctx.page, warnings)

    out = inject_actions(out, ctx.actions, ctx.site_name, ctx.page)
    return RenderResult(html=out, warnings=warnings)


def validate_template(html: str) -> None:
    """
    Check that each-blocks are flat and balanced.

    Raises TemplateSyntaxError on the first nested {{#each}}, unclosed
    {{#each}}, or {{/each}} without an opener.
    """
    open_at: int | None = None
    for m in EACH_TAG_RE.finditer(html):
        is_open = m.group(0).startswith("{{#each")
        if is_open:
            if open_at is not None:
                raise TemplateSyntaxError(
                    "Nested {{#each}} blocks are not supported",
                    line=_line_of(html, m.start()),
                )
            open_at = m.start()
        else:
            if open_at is None:
                raise TemplateSyntaxError(
                    "{{/each}} without a matching {{#each}}",
                    line=_line_of(html, m.start()),
                )
            open_at = None

    if open_at is not None:
        raise TemplateSyntaxError("Unclosed {{#each}} block", line=_line_of(html, open_at))


def expand_each(
    html: str,
    data: dict[str, Any],
    warnings: list[Warning] | None = None,
) -> str:
    """
    Expand every {{#each path}}...{{/each}} region.

    The path resolves against `data`; anything but a list replaces the whole
    block with "". Per-item expansions are concatenated in list order.
    Does not validate nesting: callers that need that run validate_template.
    """

    def replace_block(m: re.Match) -> str:
        path = m.group(1).strip()
        body = m.group(2)
        items = resolve(data, path)
        if not isinstance(items, list):
            _warn(
                warnings,
                "each_not_array",
                f"{{{{#each {path}}}}} did not resolve to an array",
                {"path": path},
            )
            return ""
        return "".join(_expand_item(body, item, index) for index, item in enumerate(items))

    return EACH_BLOCK_RE.sub(replace_block, html)


def substitute(
    html: str,
    data: dict[str, Any],
    mappings: list[PlaceholderBinding] | None = None,
    page: str | None = None,
    warnings: list[Warning] | None = None,
) -> str:
    """
    Replace placeholder tokens after each-expansion.

    1. Every binding in scope for `page` replaces {{ placeholder }} with
       resolve(data[apiName], jsonPath).
    2. Remaining {{dotted.path}} tokens resolve directly against `data`.

    A second call on the output is a no-op unless substituted values
    themselves contain {{...}}.
    """
    out = html
    for binding in mappings or []:
        if not binding.applies_to(page):
            continue
        out = _apply_binding(out, binding, data, warnings)

    def replace_direct(m: re.Match) -> str:
        path = m.group(1)
        value = resolve(data, path)
        if value is None:
            _warn(
                warnings,
                "unresolved_path",
                f"{{{{{path}}}}} did not resolve",
                {"path": path},
            )
        return stringify(value)

    return PLACEHOLDER_RE.sub(replace_direct, out)


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _expand_item(body: str, item: Any, index: int) -> str:
    """Expand one loop body for one item."""

    def replace_token(m: re.Match) -> str:
        key = m.group(1)
        if key == "@index":
            return str(index)
        if key == "this":
            return stringify(item)
        if key.startswith("this."):
            return stringify(resolve(item, key[5:]))
        value = resolve(item, key)
        if value is None:
            # Left in place: the outer passes resolve it against the page data.
            return m.group(0)
        return stringify(value)

    return ITEM_TOKEN_RE.sub(replace_token, body)


def _apply_binding(
    html: str,
    binding: PlaceholderBinding,
    data: dict[str, Any],
    warnings: list[Warning] | None,
) -> str:
    if not isinstance(data, dict) or binding.api_name not in data:
        _warn(
            warnings,
            "dangling_api",
            f"Placeholder '{binding.placeholder}' references unknown API '{binding.api_name}'",
            {"placeholder": binding.placeholder, "api_name": binding.api_name},
        )
        source = None
    else:
        source = data[binding.api_name]

    value = resolve(source, binding.json_path)
    pattern = re.compile(r"\{\{\s*" + re.escape(binding.placeholder) + r"\s*\}\}")
    text = stringify(value)
    out, count = pattern.subn(lambda _m: text, html)

    if count and value is None and source is not None:
        _warn(
            warnings,
            "unresolved_path",
            f"Placeholder '{binding.placeholder}' path '{binding.json_path}' did not resolve",
            {
                "placeholder": binding.placeholder,
                "api_name": binding.api_name,
                "path": binding.json_path,
            },
        )
    return out


def _warn(
    warnings: list[Warning] | None,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> None:
    if warnings is None:
        return
    for existing in warnings:
        if existing.code == code and existing.message == message:
            return
    warnings.append(Warning(code=code, message=message, details=details))


def _line_of(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1
