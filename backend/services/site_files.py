"""
Website folder access: page listing, directory tree, raw content, saves.

Every site lives in WEBSITES_DIR/<site>/. Relative paths coming from
requests are checked here and nowhere else.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any

from backend.config import settings
from backend.models.site import is_safe_name

logger = logging.getLogger(__name__)

HTML_SUFFIXES = (".html", ".htm")
INDEX_PAGE = "index.html"


class PageNotFound(Exception):
    """The site folder or the requested file does not exist."""


class InvalidPath(ValueError):
    """A site name or relative path that could escape the websites folder."""


def websites_root() -> Path:
    return Path(settings.WEBSITES_DIR)


def is_html(path: str | Path) -> bool:
    return str(path).lower().endswith(HTML_SUFFIXES)


def site_folder(site: str) -> Path:
    if not is_safe_name(site):
        raise InvalidPath(f"Invalid site name: {site!r}")
    return websites_root() / site


def check_relative(rel_path: str) -> str:
    """
    Normalize a request path to POSIX form and reject anything that could
    leave its base folder: '..' anywhere, absolute paths, drive letters.
    """
    rel = (rel_path or "").replace("\\", "/")
    if ".." in rel or PurePosixPath(rel).is_absolute() or (len(rel) > 1 and rel[1] == ":"):
        raise InvalidPath(f"Invalid path: {rel_path!r}")
    return rel


def safe_join(base: Path, rel_path: str) -> Path:
    rel = check_relative(rel_path)
    path = base / rel
    if not path.resolve().is_relative_to(base.resolve()):
        raise InvalidPath(f"Invalid path: {rel_path!r}")
    return path


def discover_site_folders() -> list[str]:
    """Site-named folders under WEBSITES_DIR, sorted."""
    root = websites_root()
    if not root.is_dir():
        return []
    return sorted(p.name for p in root.iterdir() if p.is_dir() and is_safe_name(p.name))


def ensure_site_folder(site: str) -> Path:
    folder = site_folder(site)
    folder.mkdir(parents=True, exist_ok=True)
    return folder


def _existing_folder(site: str) -> Path:
    folder = site_folder(site)
    if not folder.is_dir():
        raise PageNotFound(f"Site folder not found: {site}")
    return folder


def list_pages(site: str) -> list[str]:
    """Relative POSIX paths of every .html/.htm file in the site, sorted."""
    folder = _existing_folder(site)
    pages = [
        p.relative_to(folder).as_posix()
        for p in folder.rglob("*")
        if p.is_file() and is_html(p.name)
    ]
    return sorted(pages)


def read_tree(site: str) -> list[dict[str, Any]]:
    """Folder tree: {name, path, type: dir|file, children}; dir paths end in '/'."""
    folder = _existing_folder(site)
    return _tree(folder, folder)


def _tree(directory: Path, base: Path) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        rel = entry.relative_to(base).as_posix()
        if entry.is_dir():
            items.append({"name": entry.name, "path": rel + "/", "type": "dir", "children": _tree(entry, base)})
        else:
            items.append({"name": entry.name, "path": rel, "type": "file"})
    return items


def resolve_file(site: str, rel_path: str | None) -> tuple[Path, str]:
    """
    Locate a file inside a site folder.

    An empty path or a directory maps to its index.html. Returns the file
    and its normalized relative path.

    Raises:
        InvalidPath: If the path could escape the site folder
        PageNotFound: If the site folder or file does not exist
    """
    folder = _existing_folder(site)
    rel = check_relative(rel_path or "").strip("/")
    path = safe_join(folder, rel) if rel else folder
    if path.is_dir():
        rel = f"{rel}/{INDEX_PAGE}" if rel else INDEX_PAGE
        path = folder / rel
    if not path.is_file():
        raise PageNotFound(f"Not found: {site}/{rel}")
    return path, rel


def read_text(path: Path) -> str:
    """Page text decoded as UTF-8, with undecodable bytes replaced by U+FFFD."""
    return path.read_text(encoding="utf-8", errors="replace")


def read_page(site: str, rel_path: str | None) -> str:
    path, _ = resolve_file(site, rel_path)
    return read_text(path)


def save_page(site: str, rel_path: str, content: str) -> str:
    """Write a page, creating intermediate folders. Returns the relative path."""
    folder = site_folder(site)
    rel = check_relative(rel_path).strip("/")
    if not rel:
        raise InvalidPath("Path required")
    path = safe_join(folder, rel)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info("Saved page %s/%s (%d bytes)", site, rel, len(content))
    return rel
