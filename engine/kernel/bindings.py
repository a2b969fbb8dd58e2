"""
AppBuilder Kernel — Site Bindings

One site's bindings, held as the three typed lists that are persisted
under mappings.json → sites[<name>]:

  {"actions": [...], "mappings": [...], "pageMappings": [...]}

Every binding kind shares `api_name`, so rename cascades, per-API lookups
and dangling-reference checks walk all() once instead of three lists.

Records that cannot be loaded are kept verbatim in `unreadable` and written
back at their original positions, so editing one binding never deletes
another.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from engine.kernel.types import ActionBinding, Binding, ComponentBinding, PlaceholderBinding

logger = logging.getLogger(__name__)

# Persisted list key → binding type
LIST_KINDS: dict[str, type] = {
    "actions": ActionBinding,
    "mappings": PlaceholderBinding,
    "pageMappings": ComponentBinding,
}


@dataclass
class SiteBindings:
    mappings: list[PlaceholderBinding] = field(default_factory=list)
    actions: list[ActionBinding] = field(default_factory=list)
    components: list[ComponentBinding] = field(default_factory=list)
    # list key → [(original index, raw record)]
    unreadable: dict[str, list[tuple[int, Any]]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> SiteBindings:
        """Load persisted bindings. Records without an apiName are kept aside as-is."""
        d = d or {}
        lists: dict[str, list] = {}
        unreadable: dict[str, list[tuple[int, Any]]] = {}
        for key, kind in LIST_KINDS.items():
            lists[key], skipped = _load(d.get(key), kind)
            if skipped:
                unreadable[key] = skipped
        return cls(
            mappings=lists["mappings"],
            actions=lists["actions"],
            components=lists["pageMappings"],
            unreadable=unreadable,
        )

    def to_dict(self) -> dict[str, Any]:
        typed = {"actions": self.actions, "mappings": self.mappings, "pageMappings": self.components}
        out: dict[str, Any] = {}
        for key, items in typed.items():
            records = [b.to_dict() for b in items]
            for index, raw in self.unreadable.get(key, []):
                records.insert(min(index, len(records)), raw)
            out[key] = records
        return out

    def all(self) -> list[Binding]:
        return [*self.actions, *self.mappings, *self.components]

    def for_api(self, api_name: str) -> list[Binding]:
        return [b for b in self.all() if b.api_name == api_name]

    def rename_api(self, old: str, new: str) -> int:
        """
        Point every binding on `old` at `new`, unreadable records included.
        Returns how many loaded bindings changed.
        """
        changed = 0
        for b in self.all():
            if b.api_name == old:
                b.api_name = new
                changed += 1
        for skipped in self.unreadable.values():
            for _, raw in skipped:
                if isinstance(raw, dict) and raw.get("apiName") == old:
                    raw["apiName"] = new
        return changed

    def dangling(self, api_names: set[str] | list[str]) -> list[Binding]:
        """Bindings whose API is not in `api_names`."""
        known = set(api_names)
        return [b for b in self.all() if b.api_name not in known]

    def pages_for_api(self, api_name: str) -> list[str]:
        """Pages that reference `api_name` through any binding, first-seen order."""
        pages: list[str] = []
        for b in self.for_api(api_name):
            if isinstance(b, PlaceholderBinding):
                candidates = b.pages
            else:
                candidates = [b.page] if b.page else []
            for page in candidates:
                if page not in pages:
                    pages.append(page)
        return pages

    def components_for_page(self, page: str) -> list[ComponentBinding]:
        return [c for c in self.components if c.page == page]

    def component_for(self, page: str, api_name: str) -> ComponentBinding | None:
        return next(
            (c for c in self.components if c.page == page and c.api_name == api_name),
            None,
        )


def _load(items: Any, kind: type) -> tuple[list, list[tuple[int, Any]]]:
    loaded = []
    skipped: list[tuple[int, Any]] = []
    if not isinstance(items, list):
        return loaded, skipped
    for index, item in enumerate(items):
        if not isinstance(item, dict) or not item.get("apiName"):
            logger.warning("Keeping unreadable %s record as-is: %r", kind.__name__, item)
            skipped.append((index, item))
            continue
        try:
            loaded.append(kind.from_dict(item))
        except KeyError as e:
            logger.warning("Keeping %s record missing %s as-is", kind.__name__, e)
            skipped.append((index, item))
    return loaded, skipped
