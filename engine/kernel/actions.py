"""
AppBuilder Kernel — Action Binding Injector

Appends one <script> block that wires click handlers for the page's action
bindings. Each handler collects values from inputs named after the action's
fields (by name, then data-field, then id) and POSTs {"body": {...}} to

    /api/sites/<site>/endpoints/<api>/execute

Elements are marked once bound, so a page that ends up with the script twice
still fires one request per click.
"""

from __future__ import annotations

import json
import re

from engine.kernel.types import ActionBinding

BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)

_SCRIPT_HEAD = "\n<script>/* AppBuilder action bindings */\n(function (actions, siteName) {\n"

_SCRIPT_TAIL = """  function fieldValue(name) {
    var el = document.querySelector('[name="' + name + '"]')
      || document.querySelector('[data-field="' + name + '"]')
      || document.getElementById(name);
    return el ? (el.value || el.textContent || '') : '';
  }
  actions.forEach(function (action) {
    var els;
    try { els = document.querySelectorAll(action.selector || ''); } catch (e) { return; }
    els.forEach(function (el) {
      if (el.__ab_action_bound) return;
      el.__ab_action_bound = true;
      el.addEventListener('click', function (ev) {
        ev.preventDefault();
        var body = {};
        (action.fields || []).forEach(function (f) { body[f] = fieldValue(f); });
        var url = '/api/sites/' + encodeURIComponent(siteName)
          + '/endpoints/' + encodeURIComponent(action.apiName) + '/execute';
        fetch(url, {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify({ body: body })
        }).catch(function (err) { if (window.console) console.error(err); });
      });
    });
  });
})("""


def inject_actions(
    html: str,
    actions: list[ActionBinding] | None,
    site_name: str,
    page: str | None,
) -> str:
    """
    Add the action wiring script for actions scoped to `page`.

    Actions without a page apply everywhere. The script goes right before the
    last </body>, or at the end when the document has none. Returns `html`
    unchanged when no action applies.
    """
    scoped = [a for a in actions or [] if a.applies_to(page)]
    if not scoped:
        return html

    script = build_action_script(scoped, site_name)

    closes = list(BODY_CLOSE_RE.finditer(html))
    if not closes:
        return html + script
    at = closes[-1].start()
    return html[:at] + script + html[at:]


def build_action_script(actions: list[ActionBinding], site_name: str) -> str:
    """The <script> element for a list of actions, safe to embed in HTML."""
    payload = _embed_json([a.to_dict() for a in actions])
    site = _embed_json(site_name)
    return _SCRIPT_HEAD + _SCRIPT_TAIL + payload + ", " + site + ");</script>\n"


def _embed_json(value: object) -> str:
    # "<" escaped so a value can never close the script element
    return json.dumps(value).replace("<", "\\u003c")
