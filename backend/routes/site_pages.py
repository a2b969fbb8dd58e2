"""Page editing routes: listing, tree, raw content, save, preview, components."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import HTMLResponse, PlainTextResponse

from backend.models.binding import UpsertComponentRequest
from backend.models.site import ComponentRequest, PreviewRequest, SavePageRequest
from backend.repos.binding_repo import BindingRepo
from backend.repos.site_repo import SiteRepo
from backend.services import site_files, site_renderer
from backend.services.site_files import InvalidPath, PageNotFound
from engine.kernel.generators import (
    derive_component_binding,
    generate_form_component,
    generate_get_component,
)
from engine.kernel.renderer import TemplateSyntaxError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sites", tags=["pages"])
site_repo = SiteRepo()
binding_repo = BindingRepo()

READ_METHODS = {"GET", "HEAD"}


def _bad_path(e: InvalidPath) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{site_name}/pages")
async def list_pages(site_name: str) -> list[str]:
    """Every .html/.htm page of the site, as sorted relative paths."""
    try:
        return site_files.list_pages(site_name)
    except InvalidPath as e:
        raise _bad_path(e)
    except PageNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")


@router.get("/{site_name}/tree")
async def get_tree(site_name: str) -> list[dict[str, Any]]:
    try:
        return site_files.read_tree(site_name)
    except InvalidPath as e:
        raise _bad_path(e)
    except PageNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")


@router.get("/{site_name}/pages/content", response_class=PlainTextResponse)
async def get_page_content(site_name: str, path: str = Query(default="index.html")) -> str:
    """Raw page source, unprocessed."""
    try:
        return site_files.read_page(site_name, path)
    except InvalidPath as e:
        raise _bad_path(e)
    except PageNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")


@router.get("/{site_name}/pages/{page_name}", response_class=HTMLResponse)
async def get_page(site_name: str, page_name: str) -> str:
    """Raw page source by top-level file name."""
    try:
        return site_files.read_page(site_name, page_name)
    except InvalidPath as e:
        raise _bad_path(e)
    except PageNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")


@router.post("/{site_name}/pages/save")
async def save_page(site_name: str, req: SavePageRequest) -> dict[str, Any]:
    try:
        rel = site_files.save_page(site_name, req.path, req.content)
    except InvalidPath as e:
        raise _bad_path(e)
    return {"ok": True, "path": rel}


@router.post("/{site_name}/preview")
async def preview(site_name: str, req: PreviewRequest) -> dict[str, Any]:
    """
    Render editor HTML with the shared renderer.

    Returns {html, engine, warnings}. engine is "builtin" unless the template
    had to fall back to mustache or raw.
    """
    if await site_repo.get(site_name) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    try:
        result = await site_renderer.preview_page(site_name, req.html, req.page, req.data, req.engine)
    except TemplateSyntaxError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return result.to_dict()


@router.post("/{site_name}/components")
async def generate_component(site_name: str, req: ComponentRequest) -> dict[str, Any]:
    """
    Generate a snippet for an API.

    Read methods get an each-block listing the sample's fields. Write methods
    get a form; when a page is given the derived component binding is
    upserted for (page, apiName).
    """
    site = await site_repo.get(site_name)
    if site is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    api = site.get_api(req.api_name)
    method = (req.method or (api.method if api else "GET")).upper()

    if method in READ_METHODS:
        html = generate_get_component(req.api_name, req.sample, req.fields, req.api_path)
        return {"html": html, "kind": "list", "binding": None}

    sample = req.sample if req.sample is not None else (api.body_template if api else None)
    html = generate_form_component(req.api_name, method, sample, site_name)
    binding = None
    if req.page:
        derived = derive_component_binding(req.page, req.api_name, method, html)
        binding = await binding_repo.upsert_component(
            site_name,
            UpsertComponentRequest(
                page=derived.page,
                api_name=derived.api_name,
                method=derived.method,
                field_mappings=derived.field_mappings,
                submit_selector=derived.submit_selector,
            ),
        )
    return {"html": html, "kind": "form", "binding": binding.to_dict() if binding else None}
