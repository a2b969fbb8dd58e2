"""
Document storage for site, binding and config metadata.

Three JSON documents, each read and written whole:

  sites     {"sites": [{name, apis}]}                     api-repo.json
  mappings  {"sites": {name: {actions, mappings, pageMappings}}}  mappings.json
  config    {"productionFolder", "activePrototype"}       app-config.json

All document access goes through the store returned by get_store().
Read-modify-write cycles use `async with store.edit(name) as doc:` so that
concurrent edits of the same document are serialized.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import shutil
import tempfile
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from backend.config import settings
from backend.services.jsonbin import JsonBinClient, JsonBinError

logger = logging.getLogger(__name__)

DOCUMENTS: dict[str, str] = {
    "sites": "api-repo.json",
    "mappings": "mappings.json",
    "config": "app-config.json",
}

_DEFAULTS: dict[str, dict[str, Any]] = {
    "sites": {"sites": []},
    "mappings": {"sites": {}},
    "config": {"productionFolder": "production", "activePrototype": None},
}


class StorageError(Exception):
    """A document could not be read or persisted."""


def default_document(name: str) -> dict[str, Any]:
    """Fresh copy of the empty form of a document."""
    if name not in _DEFAULTS:
        raise StorageError(f"Unknown document: {name}")
    return copy.deepcopy(_DEFAULTS[name])


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


class DocumentStore:
    """
    Abstract document store.
    Implement with files, JSONBin, or in-memory for tests.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, name: str) -> asyncio.Lock:
        """Get or create a per-document lock for serializing writes."""
        if name not in self._locks:
            self._locks[name] = asyncio.Lock()
        return self._locks[name]

    def handles(self, name: str) -> bool:
        """Whether this store holds `name`."""
        return name in DOCUMENTS

    async def read(self, name: str) -> dict[str, Any]:
        """Fetch a document. Missing documents read as their default."""
        raise NotImplementedError

    async def write(self, name: str, doc: dict[str, Any]) -> None:
        """Replace a document."""
        raise NotImplementedError

    @asynccontextmanager
    async def edit(self, name: str) -> AsyncIterator[dict[str, Any]]:
        """
        Read-modify-write under the document's lock.

        The yielded document is written back when the block exits normally;
        an exception inside the block discards the changes.
        """
        async with self._get_lock(name):
            doc = await self.read(name)
            yield doc
            await self.write(name, doc)


class MemoryStore(DocumentStore):
    """In-memory store for testing."""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        super().__init__()
        self.documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})

    async def read(self, name: str) -> dict[str, Any]:
        if name not in self.documents:
            return default_document(name)
        return copy.deepcopy(self.documents[name])

    async def write(self, name: str, doc: dict[str, Any]) -> None:
        if name not in DOCUMENTS:
            raise StorageError(f"Unknown document: {name}")
        self.documents[name] = copy.deepcopy(doc)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class FileStore(DocumentStore):
    """JSON files under one directory, written atomically."""

    def __init__(self, data_dir: str | Path) -> None:
        super().__init__()
        self.data_dir = Path(data_dir)

    def path_for(self, name: str) -> Path:
        if name not in DOCUMENTS:
            raise StorageError(f"Unknown document: {name}")
        return self.data_dir / DOCUMENTS[name]

    async def read(self, name: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_sync, name)

    async def write(self, name: str, doc: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write_sync, name, doc)

    def _read_sync(self, name: str) -> dict[str, Any]:
        path = self.path_for(name)
        if not path.exists():
            return default_document(name)

        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e

        try:
            doc = json.loads(raw) if raw.strip() else default_document(name)
        except ValueError:
            doc = None

        if isinstance(doc, dict):
            return doc

        # Corrupted: keep a copy for inspection, start over from the default.
        backup = path.with_name(f"{path.name}.backup.{int(time.time())}")
        logger.warning("Corrupted %s, backed up to %s", path, backup)
        try:
            shutil.copyfile(path, backup)
        except OSError as e:
            raise StorageError(f"Could not back up corrupted {path}: {e}") from e
        doc = default_document(name)
        self._write_sync(name, doc)
        return doc

    def _write_sync(self, name: str, doc: dict[str, Any]) -> None:
        path = self.path_for(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(doc, f, indent=2)
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e


# ---------------------------------------------------------------------------
# JSONBin
# ---------------------------------------------------------------------------


class JsonBinStore(DocumentStore):
    """One JSONBin bin per document."""

    def __init__(self, client: JsonBinClient, bins: dict[str, str]) -> None:
        super().__init__()
        self.client = client
        self.bins = dict(bins)

    def handles(self, name: str) -> bool:
        return name in self.bins

    def _bin(self, name: str) -> str:
        if name not in self.bins:
            raise StorageError(f"No JSONBin bin configured for {name}")
        return self.bins[name]

    async def read(self, name: str) -> dict[str, Any]:
        try:
            record = await self.client.read_bin(self._bin(name))
        except JsonBinError as e:
            raise StorageError(str(e)) from e
        if not isinstance(record, dict):
            return default_document(name)
        return copy.deepcopy(record)

    async def write(self, name: str, doc: dict[str, Any]) -> None:
        try:
            await self.client.update_bin(self._bin(name), doc)
        except JsonBinError as e:
            raise StorageError(str(e)) from e


class FallbackStore(DocumentStore):
    """
    Routes each document to `primary` when it holds it, else `fallback`.

    Primary read failures fall back to the secondary copy; write failures
    propagate.
    """

    def __init__(self, primary: DocumentStore, fallback: DocumentStore) -> None:
        super().__init__()
        self.primary = primary
        self.fallback = fallback

    async def read(self, name: str) -> dict[str, Any]:
        if not self.primary.handles(name):
            return await self.fallback.read(name)
        try:
            return await self.primary.read(name)
        except StorageError as e:
            logger.warning("Primary read of %s failed, using fallback: %s", name, e)
            return await self.fallback.read(name)

    async def write(self, name: str, doc: dict[str, Any]) -> None:
        if self.primary.handles(name):
            await self.primary.write(name, doc)
        else:
            await self.fallback.write(name, doc)


# ---------------------------------------------------------------------------
# Process-wide store
# ---------------------------------------------------------------------------

_store: DocumentStore | None = None


def build_store() -> DocumentStore:
    """Store described by the environment: files, optionally fronted by JSONBin."""
    files = FileStore(settings.DATA_DIR)
    if not settings.JSONBIN_ENABLED or not settings.JSONBIN_BINS:
        return files

    client = JsonBinClient(
        master_key=settings.JSONBIN_MASTER_KEY,
        access_key=settings.JSONBIN_ACCESS_KEY or None,
        base_url=settings.JSONBIN_BASE_URL,
        cache_ttl=settings.JSONBIN_CACHE_TTL,
    )
    logger.info("JSONBin storage enabled for: %s", ", ".join(sorted(settings.JSONBIN_BINS)))
    return FallbackStore(JsonBinStore(client, settings.JSONBIN_BINS), files)


def init_store() -> DocumentStore:
    """
    Initialize the process-wide store.
    Called once at application startup.
    """
    global _store
    _store = build_store()
    return _store


def use_store(store: DocumentStore | None) -> None:
    """Install a specific store (tests), or None to rebuild on next use."""
    global _store
    _store = store


def get_store() -> DocumentStore:
    if _store is None:
        return init_store()
    return _store
