"""Binding routes: placeholders, actions, page components, diagnostics."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, status

from backend.models.binding import (
    BindingDiagnostics,
    CreateActionRequest,
    CreatePlaceholderRequest,
    UpsertComponentRequest,
)
from backend.repos.binding_repo import BindingRepo
from backend.repos.site_repo import SiteRepo

router = APIRouter(prefix="/api/sites", tags=["bindings"])
binding_repo = BindingRepo()
site_repo = SiteRepo()


@router.get("/{site_name}/mappings")
async def get_bindings(site_name: str) -> dict[str, Any]:
    """All bindings of a site in their persisted shape."""
    return (await binding_repo.get(site_name)).to_dict()


@router.post("/{site_name}/mappings")
async def add_placeholder(site_name: str, req: CreatePlaceholderRequest) -> dict[str, Any]:
    """Bind a named {{placeholder}} to a path inside an API response."""
    binding = await binding_repo.add_placeholder(site_name, req)
    return binding.to_dict()


@router.post("/{site_name}/actions")
async def add_action(site_name: str, req: CreateActionRequest) -> dict[str, Any]:
    """Wire clicks on a selector to an API call."""
    binding = await binding_repo.add_action(site_name, req)
    return binding.to_dict()


@router.post("/{site_name}/page-mappings")
async def upsert_component(site_name: str, req: UpsertComponentRequest) -> dict[str, Any]:
    """Create or update the component binding for (page, apiName)."""
    binding = await binding_repo.upsert_component(site_name, req)
    return {"success": True, "mapping": binding.to_dict()}


@router.get("/{site_name}/pages/{page_name}/mappings")
async def get_page_components(site_name: str, page_name: str) -> list[dict[str, Any]]:
    if not await binding_repo.has_site(site_name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    bindings = await binding_repo.get(site_name)
    return [c.to_dict() for c in bindings.components_for_page(page_name)]


@router.get("/{site_name}/pages/{page_name}/api/{api_name}/mapping")
async def get_page_component(site_name: str, page_name: str, api_name: str) -> dict[str, Any]:
    if not await binding_repo.has_site(site_name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    component = (await binding_repo.get(site_name)).component_for(page_name, api_name)
    if component is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mapping not found")
    return component.to_dict()


@router.get("/{site_name}/api/{api_name}/pages")
async def get_pages_for_api(site_name: str, api_name: str) -> list[str]:
    """Pages that reference an API through any binding."""
    if await site_repo.get(site_name) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    return (await binding_repo.get(site_name)).pages_for_api(api_name)


@router.get("/{site_name}/bindings/diagnostics")
async def get_diagnostics(site_name: str) -> BindingDiagnostics:
    """Bindings that reference APIs the site no longer has."""
    site = await site_repo.get(site_name)
    if site is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    dangling = await binding_repo.dangling(site_name, {a.name for a in site.apis})
    return BindingDiagnostics(
        site=site_name,
        dangling=[{"kind": b.kind, **b.to_dict()} for b in dangling],
    )
