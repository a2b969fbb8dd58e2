"""
Site serving.

  /site/{site}/{path}     HTML rendered with live API data, other files as-is
  /website/{site}/{path}  raw files, no processing
  /                       active prototype index, production index, or a site list
  /api/websites-index     WEBSITES_DIR/index.html, or a generated prototype list
  /{path}                 active prototype or production folder (fallback_router,
                          included after every other route)
"""

from __future__ import annotations

import logging
from html import escape
from pathlib import Path
from urllib.parse import quote

from fastapi import APIRouter
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, RedirectResponse, Response

from backend.config import settings
from backend.models.app_config import AppConfig
from backend.repos.config_repo import ConfigRepo
from backend.repos.site_repo import SiteRepo
from backend.services import site_files, site_renderer
from backend.services.site_files import InvalidPath, PageNotFound
from engine.kernel.renderer import TemplateSyntaxError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["serving"])
fallback_router = APIRouter(tags=["serving"])

config_repo = ConfigRepo()
site_repo = SiteRepo()


def production_dir(cfg: AppConfig) -> Path:
    return Path(settings.PRODUCTION_ROOT) / (cfg.production_folder or "production")


async def serve_site_file(site_name: str, rel_path: str | None) -> Response:
    """Render an HTML page of a site, or send any other file unchanged."""
    try:
        path, rel = site_files.resolve_file(site_name, rel_path)
    except InvalidPath:
        return PlainTextResponse("Invalid path", status_code=400)
    except PageNotFound:
        return PlainTextResponse("Not found", status_code=404)

    if not site_files.is_html(path):
        return FileResponse(path)

    try:
        result = await site_renderer.render_site_page(site_name, rel)
    except TemplateSyntaxError as e:
        logger.error("Template error in %s/%s: %s", site_name, rel, e)
        return HTMLResponse(
            f"<h1>Template error</h1><pre>{escape(str(e))}</pre>",
            status_code=500,
        )
    return HTMLResponse(result.html)


@router.get("/site/{site_name}")
async def site_root_redirect(site_name: str) -> RedirectResponse:
    """Trailing slash so relative links in the page resolve inside the site."""
    return RedirectResponse(f"/site/{quote(site_name)}/")


@router.get("/site/{site_name}/{rel_path:path}")
async def serve_site(site_name: str, rel_path: str) -> Response:
    return await serve_site_file(site_name, rel_path)


@router.get("/website/{site_name}/{rel_path:path}")
async def serve_raw(site_name: str, rel_path: str) -> Response:
    """Site files with no processing."""
    try:
        path, _ = site_files.resolve_file(site_name, rel_path)
    except InvalidPath:
        return PlainTextResponse("Invalid path", status_code=400)
    except PageNotFound:
        return PlainTextResponse("Not found", status_code=404)
    return FileResponse(path)


@router.get("/")
async def serve_root() -> Response:
    """
    Serve the active prototype's index (rendered), else the production
    folder's index, else a list of sites.
    """
    cfg = await config_repo.get()

    if cfg.active_prototype:
        try:
            site_files.resolve_file(cfg.active_prototype, site_files.INDEX_PAGE)
        except (InvalidPath, PageNotFound):
            logger.warning("Active prototype %s has no index page", cfg.active_prototype)
        else:
            return await serve_site_file(cfg.active_prototype, site_files.INDEX_PAGE)

    prod_index = production_dir(cfg) / site_files.INDEX_PAGE
    if prod_index.is_file():
        return FileResponse(prod_index)

    sites = await site_repo.list_all()
    items = "".join(
        f'<li><a href="/site/{quote(s.name)}/">{escape(s.name)}</a></li>' for s in sites
    )
    return HTMLResponse(f"<h2>AppBuilder Prototype</h2><p>Sites:</p><ul>{items}</ul>")


@router.get("/api/websites-index", response_class=HTMLResponse)
async def websites_index() -> str:
    """
    WEBSITES_DIR/index.html as-is when present, otherwise a generated list of
    prototype folders with rendered and raw links.
    """
    index = site_files.websites_root() / site_files.INDEX_PAGE
    if index.is_file():
        return site_files.read_text(index)

    items = "".join(
        f'<li><a href="/site/{quote(name)}/">{escape(name)}</a> '
        f'<a href="/website/{quote(name)}/">(raw)</a></li>'
        for name in site_files.discover_site_folders()
    )
    return (
        '<!doctype html><html><head><meta charset="utf-8"><title>Prototypes</title></head>'
        f"<body><h1>Available Prototypes</h1><ul>{items}</ul></body></html>"
    )


@fallback_router.get("/{rel_path:path}")
async def serve_fallback(rel_path: str) -> Response:
    """Any other path: the active prototype when set, else the production folder."""
    cfg = await config_repo.get()

    if cfg.active_prototype:
        return await serve_site_file(cfg.active_prototype, rel_path)

    try:
        path = site_files.safe_join(production_dir(cfg), rel_path)
    except InvalidPath:
        return PlainTextResponse("Invalid path", status_code=400)
    if path.is_dir():
        path = path / site_files.INDEX_PAGE
    if not path.is_file():
        return PlainTextResponse("Not found", status_code=404)
    return FileResponse(path)
