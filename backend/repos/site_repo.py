"""Repository for sites and their API definitions."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from backend.models.site import (
    ApiDefinition,
    CreateApiRequest,
    Site,
    UpdateApiRequest,
)
from backend.repos.binding_repo import BindingRepo
from backend.services import site_files
from backend.storage import DocumentStore, get_store

logger = logging.getLogger(__name__)


class SiteNotFound(Exception):
    """No site record with that name."""


class ApiNotFound(Exception):
    """The site has no API with that name."""


class NameConflict(Exception):
    """A site or API with that name already exists."""


def _load_sites(doc: dict[str, Any]) -> list[Site | Any]:
    """
    Site records in document order. Records that fail validation stay in
    the list as raw values so that writing the document back keeps them.
    """
    entries: list[Site | Any] = []
    for raw in doc.get("sites") or []:
        try:
            entries.append(Site.model_validate(raw))
        except ValidationError as e:
            logger.warning("Keeping unreadable site record %r as-is: %s", _raw_name(raw), e)
            entries.append(raw)
    return entries


def _raw_name(raw: Any) -> Any:
    return raw.get("name") if isinstance(raw, dict) else raw


def _parsed(entries: list[Site | Any]) -> list[Site]:
    return [e for e in entries if isinstance(e, Site)]


def _names(entries: list[Site | Any]) -> set[str]:
    return {e.name if isinstance(e, Site) else _raw_name(e) for e in entries}


def _dump(entries: list[Site | Any]) -> list[Any]:
    return [e.to_dict() if isinstance(e, Site) else e for e in entries]


def _find(entries: list[Site | Any], name: str) -> Site:
    for site in _parsed(entries):
        if site.name == name:
            return site
    raise SiteNotFound(name)


class SiteRepo:
    """All site and API document operations."""

    def __init__(self, store: DocumentStore | None = None, bindings: BindingRepo | None = None) -> None:
        self._store = store
        self._bindings = bindings

    @property
    def store(self) -> DocumentStore:
        return self._store or get_store()

    @property
    def bindings(self) -> BindingRepo:
        return self._bindings or BindingRepo(self._store)

    async def list_all(self) -> list[Site]:
        """
        All sites. Folders under WEBSITES_DIR without a record get an
        empty one, and the document is saved when that happens.
        """
        doc = await self.store.read("sites")
        sites = _load_sites(doc)
        known = _names(sites)
        missing = [f for f in site_files.discover_site_folders() if f not in known]
        if not missing:
            return _parsed(sites)

        async with self.store.edit("sites") as doc:
            sites = _load_sites(doc)
            known = _names(sites)
            for folder in missing:
                if folder not in known:
                    logger.info("Discovered site folder %s", folder)
                    sites.append(Site(name=folder))
            doc["sites"] = _dump(sites)
        return _parsed(sites)

    async def get(self, name: str) -> Site | None:
        doc = await self.store.read("sites")
        try:
            return _find(_load_sites(doc), name)
        except SiteNotFound:
            return None

    async def create(self, name: str) -> Site:
        """
        Create a site record, its empty binding record and its folder.

        Raises:
            NameConflict: If the site already exists
        """
        async with self.store.edit("sites") as doc:
            sites = _load_sites(doc)
            if name in _names(sites):
                raise NameConflict(f"Site exists: {name}")
            site = Site(name=name)
            await self.bindings.ensure_site(name)
            site_files.ensure_site_folder(name)
            sites.append(site)
            doc["sites"] = _dump(sites)
        logger.info("Created site %s", name)
        return site

    async def add_api(self, site_name: str, req: CreateApiRequest) -> ApiDefinition:
        """
        Register an API on a site.

        Raises:
            SiteNotFound: If the site does not exist
            NameConflict: If the site already has an API with that name
        """
        async with self.store.edit("sites") as doc:
            sites = _load_sites(doc)
            site = _find(sites, site_name)
            if site.get_api(req.name):
                raise NameConflict(f"API exists: {req.name}")
            api = ApiDefinition(
                name=req.name,
                url=req.url,
                method=req.method or "GET",
                headers=req.headers,
                params=req.params,
                body_template=req.body_template,
                mapping_config=req.mapping_config,
            )
            site.apis.append(api)
            doc["sites"] = _dump(sites)
        return api

    async def update_api(self, site_name: str, api_name: str, req: UpdateApiRequest) -> ApiDefinition:
        """
        Apply the fields present in `req` to an API.

        A new name is checked for conflicts and cascaded through every
        binding of the site once the sites document has been saved, so a
        failed save leaves the bindings untouched.

        Raises:
            SiteNotFound, ApiNotFound, NameConflict
        """
        async with self.store.edit("sites") as doc:
            sites = _load_sites(doc)
            site = _find(sites, site_name)
            api = site.get_api(api_name)
            if api is None:
                raise ApiNotFound(api_name)

            data = api.to_dict()
            changes = req.model_dump(include=req.model_fields_set, by_alias=True)
            new_name = changes.pop("name", None)
            if new_name is not None and new_name != api_name:
                if site.get_api(new_name):
                    raise NameConflict(f"API exists: {new_name}")
                data["name"] = new_name
            if changes.get("method") is None:
                changes.pop("method", None)
            data.update(changes)

            updated = ApiDefinition.model_validate(data)
            site.apis[site.apis.index(api)] = updated
            doc["sites"] = _dump(sites)

        if updated.name != api_name:
            moved = await self.bindings.rename_api(site_name, api_name, updated.name)
            logger.info("Renamed API %s -> %s on %s (%d bindings)", api_name, updated.name, site_name, moved)
        return updated

    async def delete_api(self, site_name: str, api_name: str) -> None:
        """
        Remove an API. Bindings that reference it are kept and show up in
        binding diagnostics.

        Raises:
            SiteNotFound, ApiNotFound
        """
        async with self.store.edit("sites") as doc:
            sites = _load_sites(doc)
            site = _find(sites, site_name)
            api = site.get_api(api_name)
            if api is None:
                raise ApiNotFound(api_name)
            site.apis.remove(api)
            doc["sites"] = _dump(sites)
