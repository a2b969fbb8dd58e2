"""Site and API routes: CRUD, single execution, aggregated data."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from backend.models.site import (
    CreateApiRequest,
    CreateSiteRequest,
    ExecuteRequest,
    Site,
    UpdateApiRequest,
)
from backend.repos.site_repo import ApiNotFound, NameConflict, SiteNotFound, SiteRepo
from backend.services import aggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sites", tags=["sites"])
site_repo = SiteRepo()


async def _get_site(site_name: str) -> Site:
    site = await site_repo.get(site_name)
    if site is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    return site


@router.get("")
async def list_sites() -> list[dict[str, Any]]:
    """List sites, registering any new folders under the websites directory."""
    return [s.to_dict() for s in await site_repo.list_all()]


@router.post("")
async def create_site(req: CreateSiteRequest) -> dict[str, Any]:
    """Create a site record, its binding record and its folder."""
    try:
        site = await site_repo.create(req.name)
    except NameConflict:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Site exists")
    return site.to_dict()


@router.get("/{site_name}")
async def get_site(site_name: str) -> dict[str, Any]:
    return (await _get_site(site_name)).to_dict()


# ---------------------------------------------------------------------------
# APIs
# ---------------------------------------------------------------------------


@router.post("/{site_name}/apis")
async def add_api(site_name: str, req: CreateApiRequest) -> dict[str, Any]:
    """Register an API on a site."""
    try:
        api = await site_repo.add_api(site_name, req)
    except SiteNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    except NameConflict:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="API name exists")
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()])
    return api.to_dict()


@router.put("/{site_name}/apis/{api_name}")
async def update_api(site_name: str, api_name: str, req: UpdateApiRequest) -> dict[str, Any]:
    """Update an API. Renaming cascades through the site's bindings."""
    try:
        api = await site_repo.update_api(site_name, api_name, req)
    except SiteNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    except ApiNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API not found")
    except NameConflict:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="API name exists")
    return api.to_dict()


@router.delete("/{site_name}/apis/{api_name}")
async def delete_api(site_name: str, api_name: str) -> dict[str, bool]:
    try:
        await site_repo.delete_api(site_name, api_name)
    except SiteNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    except ApiNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API not found")
    return {"ok": True}


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@router.post("/{site_name}/endpoints/{api_name}/execute")
async def execute_api(site_name: str, api_name: str, req: ExecuteRequest | None = None) -> Any:
    """
    Execute one API server-side with optional {headers, params, body} overrides.

    Returns {status, data, headers}. Upstream failures return 500 with the
    upstream status and body when there was a response.
    """
    site = await _get_site(site_name)
    api = site.get_api(api_name)
    if api is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API not found")

    try:
        return await aggregator.execute_api(api, req)
    except aggregator.ExecutionError as e:
        logger.error("Executing %s/%s failed: %s", site_name, api_name, e)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=e.to_dict())


@router.get("/{site_name}/data")
async def get_site_data(site_name: str) -> dict[str, Any]:
    """Aggregated data of every API of the site, keyed by API name, plus __meta__."""
    site = await _get_site(site_name)
    return await aggregator.fetch_all(site.apis)
