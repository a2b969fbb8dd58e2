"""
AppBuilder Kernel — Component Generators

Builds HTML snippets that the editor drops into a page for an API:

  generate_get_component   each-block listing the fields of a sample response
  generate_form_component  form with one input per request field, posting to
                           the API's execute endpoint
  derive_component_binding reads a form snippet back into a ComponentBinding

Pure functions. The generated placeholders follow the renderer grammar, so
every path they emit resolves against the sample they were built from.
"""

from __future__ import annotations

import json
import uuid
from html import escape
from typing import Any

from bs4 import BeautifulSoup, Tag

from engine.kernel.types import ComponentBinding

# Depth limits for walking sample responses
INNER_ARRAY_DEPTH = 4
LEAF_PATH_DEPTH = 4


# ---------------------------------------------------------------------------
# Sample inspection
# ---------------------------------------------------------------------------


def collect_paths(obj: dict[str, Any], prefix: str = "", depth: int = 3) -> list[str]:
    """
    Dotted paths to the primitive leaves of `obj`.

    Nested objects are descended while depth allows; arrays of objects are
    described through their first element ("tags.0.label"). Anything past the
    depth limit is reported as a single path.
    """
    out: list[str] = []
    for key, value in obj.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, list):
            if value and isinstance(value[0], dict) and depth > 1:
                out.extend(collect_paths(value[0], f"{path}.0", depth - 1))
            else:
                out.append(path)
        elif isinstance(value, dict):
            if depth > 1:
                out.extend(collect_paths(value, path, depth - 1))
            else:
                out.append(path)
        else:
            out.append(path)
    return out


def find_inner_array(obj: Any, depth: int = INNER_ARRAY_DEPTH) -> tuple[str, list[Any]] | None:
    """First array found inside an object (depth-first), as (dotted path, array)."""
    if not isinstance(obj, dict) or depth <= 0:
        return None
    for key, value in obj.items():
        if isinstance(value, list):
            return key, value
        if isinstance(value, dict):
            found = find_inner_array(value, depth - 1)
            if found:
                return f"{key}.{found[0]}", found[1]
    return None


def parse_sample(sample: Any) -> Any:
    """Samples arrive as JSON text from the editor; anything unparsable is kept as-is."""
    if isinstance(sample, str):
        try:
            return json.loads(sample)
        except ValueError:
            return sample
    return sample


# ---------------------------------------------------------------------------
# GET components
# ---------------------------------------------------------------------------


def generate_get_component(
    api_name: str,
    sample: Any = None,
    fields: list[str] | None = None,
    api_path: str | None = None,
) -> str:
    """
    Each-block snippet for displaying an API response.

    Loops over `api_path` (or `api_name`); when the sample is an object that
    wraps an array, loops over that inner array instead. Object items emit
    one {{this.<path>}} per leaf, primitive items emit {{this}}, and a lone
    object emits one {{<api>.<key>}} per key.
    """
    loop_var = api_path or api_name or "items"
    data = parse_sample(sample)

    if isinstance(data, dict):
        inner = find_inner_array(data)
        if inner:
            loop_var = f"{loop_var}.{inner[0]}"
            data = inner[1]

    wanted = [f for f in fields or [] if isinstance(f, str) and f]
    primitive_items = isinstance(data, list) and data and not isinstance(data[0], dict)
    if wanted and (not data or primitive_items):
        return _loop_snippet(loop_var, wanted)

    if isinstance(data, list) and data:
        first = data[0]
        if isinstance(first, dict):
            return _loop_snippet(loop_var, collect_paths(first, "", LEAF_PATH_DEPTH))
        return _each_this(loop_var)

    if isinstance(data, dict):
        lines = [f"  {{{{{loop_var}.{key}}}}}" for key in data]
        return '<div class="object-item">\n' + "\n".join(lines) + "\n</div>"

    return _each_this(loop_var)


def _loop_snippet(loop_var: str, paths: list[str]) -> str:
    lines = [f"{{{{#each {loop_var}}}}}", "  <!-- LOOP_START -->", '  <div class="loop-item">']
    lines.extend(f"    {{{{this.{p}}}}}" for p in paths)
    lines.extend(["  </div>", "  <!-- LOOP_END -->", "{{/each}}"])
    return "\n".join(lines)


def _each_this(loop_var: str) -> str:
    return f"{{{{#each {loop_var}}}}}\n  {{{{this}}}}\n{{{{/each}}}}"


# ---------------------------------------------------------------------------
# Form components
# ---------------------------------------------------------------------------


def input_type_for(value: Any) -> str:
    """HTML input type suggested by a sample value."""
    if isinstance(value, bool):
        return "checkbox"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str) and "@" in value:
        return "email"
    return "text"


def generate_form_component(
    api_name: str,
    method: str = "POST",
    sample: Any = None,
    site_name: str = "",
    form_id: str | None = None,
) -> str:
    """
    Form snippet for a write API.

    One labelled input per top-level key of the sample body. The inline script
    submits {"body": {field: value}} to the site's execute endpoint.
    """
    method = (method or "POST").upper()
    form_id = form_id or f"abform_{uuid.uuid4().hex[:10]}"
    data = parse_sample(sample)

    parts = [
        f'<form id="{escape(form_id)}" data-ab-api="{escape(api_name)}" data-ab-method="{escape(method)}">'
    ]
    if isinstance(data, dict):
        for name, value in data.items():
            parts.append(_form_field(form_id, str(name), value))
    parts.append('<button type="submit">Submit</button> <button type="reset">Reset</button>')
    parts.append("</form>")
    parts.append(_form_script(form_id, api_name, site_name))
    return "\n".join(parts)


def _form_field(form_id: str, name: str, value: Any) -> str:
    kind = input_type_for(value)
    field_id = f"{form_id}_field_" + "".join(c if c.isalnum() else "_" for c in name)
    attrs = f'type="{kind}" id="{escape(field_id)}" name="{escape(name)}" data-field="{escape(name)}"'
    if kind == "checkbox":
        checked = " checked" if value else ""
        return f"<label><input {attrs}{checked}> {escape(name)}</label>"
    placeholder = "" if value is None else str(value)
    return f'<label>{escape(name)}: <input {attrs} placeholder="{escape(placeholder)}"></label>'


def _form_script(form_id: str, api_name: str, site_name: str) -> str:
    return (
        "<script>(function () {\n"
        f"  var form = document.getElementById({_js(form_id)});\n"
        "  if (!form) return;\n"
        "  form.addEventListener('submit', function (ev) {\n"
        "    ev.preventDefault();\n"
        "    var body = {};\n"
        "    form.querySelectorAll('[data-field]').forEach(function (inp) {\n"
        "      body[inp.getAttribute('data-field')] = inp.type === 'checkbox' ? inp.checked : inp.value;\n"
        "    });\n"
        f"    var url = '/api/sites/' + encodeURIComponent({_js(site_name)})\n"
        f"      + '/endpoints/' + encodeURIComponent({_js(api_name)}) + '/execute';\n"
        "    fetch(url, {\n"
        "      method: 'POST',\n"
        "      headers: { 'Content-Type': 'application/json' },\n"
        "      body: JSON.stringify({ body: body })\n"
        "    }).catch(function (err) { if (window.console) console.error(err); });\n"
        "  });\n"
        "})();</script>"
    )


def _js(value: Any) -> str:
    return json.dumps(value).replace("<", "\\u003c")


# ---------------------------------------------------------------------------
# Binding derivation
# ---------------------------------------------------------------------------


# Named form controls, in document order
FIELD_SELECTOR = "input[name], textarea[name], select[name]"
# A button without a type attribute submits its form
SUBMIT_SELECTOR = 'input[type="submit"], button[type="submit"], button:not([type])'


def submit_selector_for(element: Tag) -> str:
    """CSS selector for a submit control: #id, then .first-class, then tag[type]."""
    if element.get("id"):
        return f"#{element['id']}"
    classes = element.get("class") or []
    if classes:
        return f".{classes[0]}"
    selector = element.name
    if element.get("type"):
        selector += f'[type="{element["type"]}"]'
    return selector


def derive_component_binding(page: str, api_name: str, method: str, html: str) -> ComponentBinding:
    """
    Read a component snippet into a ComponentBinding.

    field_mappings maps each named input to '[name="<name>"]'. The id is left
    empty for the repository to assign.
    """
    soup = BeautifulSoup(html, "html.parser")
    names = [
        el["name"]
        for el in soup.select(FIELD_SELECTOR)
        if el["name"] and not (el.name == "input" and el.get("type") == "submit")
    ]
    submit = soup.select_one(SUBMIT_SELECTOR)

    return ComponentBinding(
        id="",
        page=page,
        api_name=api_name,
        method=(method or "POST").upper(),
        field_mappings={name: f'[name="{name}"]' for name in names},
        submit_selector=submit_selector_for(submit) if submit is not None else None,
    )
