"""Repository for placeholder, action and page-component bindings."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from backend.models.binding import (
    CreateActionRequest,
    CreatePlaceholderRequest,
    UpsertComponentRequest,
)
from backend.storage import DocumentStore, get_store
from engine.kernel.bindings import SiteBindings
from engine.kernel.types import ActionBinding, Binding, ComponentBinding, PlaceholderBinding

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if n == 0:
            return out


def new_binding_id(prefix: str, taken: set[str]) -> str:
    """`<prefix>_<base36 milliseconds>`, bumped past any id already taken."""
    ms = int(time.time() * 1000)
    while f"{prefix}_{_base36(ms)}" in taken:
        ms += 1
    return f"{prefix}_{_base36(ms)}"


class BindingRepo:
    """All binding document operations."""

    def __init__(self, store: DocumentStore | None = None) -> None:
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store or get_store()

    @asynccontextmanager
    async def _edit(self, site: str) -> AsyncIterator[SiteBindings]:
        async with self.store.edit("mappings") as doc:
            sites = doc.setdefault("sites", {})
            record = sites.get(site)
            bindings = SiteBindings.from_dict(record)
            yield bindings
            kept = record if isinstance(record, dict) else {}
            sites[site] = {**kept, **bindings.to_dict()}

    async def get(self, site: str) -> SiteBindings:
        """Bindings for a site. A site with no record has none."""
        doc = await self.store.read("mappings")
        return SiteBindings.from_dict((doc.get("sites") or {}).get(site))

    async def has_site(self, site: str) -> bool:
        doc = await self.store.read("mappings")
        return site in (doc.get("sites") or {})

    async def ensure_site(self, site: str) -> None:
        """Create an empty binding record for a site if it has none."""
        async with self._edit(site):
            pass

    async def add_placeholder(self, site: str, req: CreatePlaceholderRequest) -> PlaceholderBinding:
        binding = PlaceholderBinding(
            placeholder=req.placeholder,
            api_name=req.api_name,
            json_path=req.json_path,
            pages=list(req.pages),
        )
        async with self._edit(site) as bindings:
            bindings.mappings.append(binding)
        return binding

    async def add_action(self, site: str, req: CreateActionRequest) -> ActionBinding:
        async with self._edit(site) as bindings:
            binding = ActionBinding(
                id=new_binding_id("action", {a.id for a in bindings.actions}),
                selector=req.selector,
                api_name=req.api_name,
                method=(req.method or "POST").upper(),
                fields=list(req.fields),
                page=req.page or None,
            )
            bindings.actions.append(binding)
        return binding

    async def upsert_component(self, site: str, req: UpsertComponentRequest) -> ComponentBinding:
        """
        Create or update the component binding for (page, apiName).

        On update only the fields present in the request change.
        """
        async with self._edit(site) as bindings:
            existing = bindings.component_for(req.page, req.api_name)
            if existing is not None:
                if req.method is not None:
                    existing.method = req.method.upper()
                if req.field_mappings is not None:
                    existing.field_mappings = dict(req.field_mappings)
                if "submit_selector" in req.model_fields_set:
                    existing.submit_selector = req.submit_selector
                return existing

            binding = ComponentBinding(
                id=new_binding_id("pm", {c.id for c in bindings.components}),
                page=req.page,
                api_name=req.api_name,
                method=(req.method or "POST").upper(),
                field_mappings=dict(req.field_mappings or {}),
                submit_selector=req.submit_selector or None,
            )
            bindings.components.append(binding)
        return binding

    async def rename_api(self, site: str, old: str, new: str) -> int:
        """Cascade an API rename through every binding kind of a site."""
        if not await self.has_site(site):
            return 0
        async with self._edit(site) as bindings:
            return bindings.rename_api(old, new)

    async def dangling(self, site: str, api_names: set[str]) -> list[Binding]:
        bindings = await self.get(site)
        return bindings.dangling(api_names)
