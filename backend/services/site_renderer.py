"""
Serve-time render pipeline for site pages.

read page → load site + bindings → fetch_all → render (each, placeholders,
actions). Render warnings are logged here so template authors can find
unresolved paths and dangling bindings in the server log.
"""

from __future__ import annotations

import logging
from typing import Any

from backend.repos.binding_repo import BindingRepo
from backend.repos.site_repo import SiteRepo
from backend.services import aggregator, site_files
from engine.kernel.preview import render_preview
from engine.kernel.renderer import render
from engine.kernel.types import RenderContext, RenderResult

logger = logging.getLogger(__name__)

site_repo = SiteRepo()
binding_repo = BindingRepo()


async def render_site_page(site_name: str, rel_path: str | None) -> RenderResult:
    """
    Render one HTML page of a site with live API data.

    A site folder with no metadata record is served raw (engine "raw").

    Raises:
        PageNotFound: If the site folder or page does not exist
        InvalidPath: If the path could escape the site folder
        TemplateSyntaxError: If the page has malformed each-blocks
    """
    path, rel = site_files.resolve_file(site_name, rel_path)
    html = site_files.read_text(path)

    site = await site_repo.get(site_name)
    if site is None:
        return RenderResult(html=html, engine="raw")

    bindings = await binding_repo.get(site_name)
    data = await aggregator.fetch_all(site.apis)
    ctx = RenderContext(
        data=data,
        mappings=bindings.mappings,
        actions=bindings.actions,
        page=rel,
        site_name=site_name,
    )
    result = render(html, ctx)
    _log_warnings(site_name, rel, result)
    return result


async def preview_page(
    site_name: str,
    html: str,
    page: str | None = None,
    data: dict[str, Any] | None = None,
    engine: str = "auto",
) -> RenderResult:
    """
    Render editor HTML for preview with the site's placeholder bindings.
    Uses `data` when given, otherwise fetches the site's APIs.
    """
    site = await site_repo.get(site_name)
    apis = site.apis if site is not None else []
    bindings = await binding_repo.get(site_name)
    if data is None:
        data = await aggregator.fetch_all(apis)
    result = render_preview(html, data, bindings.mappings, page=page, engine=engine)
    _log_warnings(site_name, page or "<preview>", result)
    return result


def _log_warnings(site_name: str, page: str, result: RenderResult) -> None:
    for w in result.warnings:
        logger.warning("%s/%s [%s] %s", site_name, page, w.code, w.message)
