"""
Pytest configuration and fixtures for AppBuilder backend tests.

Every test gets an in-memory document store and its own websites,
data and production folders under tmp_path. Outbound API calls go to
an httpx.MockTransport through the `upstream` fixture.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from backend import storage
from backend.config import settings
from backend.main import app
from backend.services import aggregator
from backend.storage import MemoryStore


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Point every configured folder into tmp_path."""
    websites = tmp_path / "websites"
    websites.mkdir()
    monkeypatch.setattr(settings, "WEBSITES_DIR", str(websites))
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "PRODUCTION_ROOT", str(tmp_path))
    monkeypatch.setattr(settings, "JSONBIN_MASTER_KEY", "")
    return tmp_path


@pytest.fixture(autouse=True)
def store():
    """Fresh in-memory store installed as the process-wide store."""
    memory = MemoryStore()
    storage.use_store(memory)
    yield memory
    storage.use_store(None)


@pytest.fixture
def websites(workspace):
    return workspace / "websites"


@pytest.fixture
def make_site(websites):
    """Write files into a site folder: make_site("demo", {"index.html": "..."})."""

    def _make(name: str, files: dict[str, str | bytes] | None = None):
        folder = websites / name
        folder.mkdir(parents=True, exist_ok=True)
        for rel, content in (files or {}).items():
            path = folder / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return folder

    return _make


@pytest.fixture
async def client():
    """Async HTTP client against the ASGI app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


class Upstream:
    """Canned responses for outbound API calls, keyed by (method, url without query)."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        status: int = 200,
        json_body: Any = None,
        text: str | None = None,
        exc: type[Exception] | None = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if exc is not None:
                raise exc("upstream unavailable", request=request)
            if text is not None:
                return httpx.Response(status, text=text)
            return httpx.Response(status, json=json_body)

        self.routes[(method.upper(), url)] = respond

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url).split("?")[0])
        if key not in self.routes:
            return httpx.Response(404, json={"message": "no such route"})
        return self.routes[key](request)

    def client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), follow_redirects=True)

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def upstream(monkeypatch):
    """Route every client made by the aggregator to canned responses."""
    fake = Upstream()
    monkeypatch.setattr(aggregator, "make_client", fake.client)
    return fake
