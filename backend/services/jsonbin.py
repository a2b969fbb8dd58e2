"""HTTP client for JSONBin.io, used as document storage on read-only filesystems."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class JsonBinError(Exception):
    """A JSONBin request failed or returned an unusable response."""


class JsonBinClient:
    """HTTP client for the JSONBin.io v3 API.

    Reads are cached in memory for `cache_ttl` seconds; writes and deletes
    invalidate the cached copy of that bin.
    """

    def __init__(
        self,
        master_key: str,
        access_key: str | None = None,
        base_url: str = "https://api.jsonbin.io/v3",
        cache_ttl: float = 30.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._master_key = master_key
        self._access_key = access_key
        self._base_url = base_url.rstrip("/")
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._transport = transport
        self._cache: dict[str, tuple[float, Any]] = {}

    def _headers(self, json_body: bool = False) -> dict[str, str]:
        headers = {"X-Master-Key": self._master_key}
        if self._access_key:
            headers["X-Access-Key"] = self._access_key
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def read_bin(self, bin_id: str, use_cache: bool = True) -> Any:
        """
        Read the latest record stored in a bin.

        Args:
            bin_id: Bin to read
            use_cache: Serve from the in-memory cache while it is fresh

        Returns:
            The stored JSON document

        Raises:
            JsonBinError: If the bin does not exist or the request fails
        """
        if not bin_id:
            raise JsonBinError("Bin ID is required")

        if use_cache:
            cached = self._cache.get(bin_id)
            if cached and time.monotonic() - cached[0] < self._cache_ttl:
                return cached[1]

        try:
            async with self._client() as client:
                response = await client.get(f"{self._base_url}/b/{bin_id}/latest", headers=self._headers())
        except httpx.HTTPError as e:
            raise JsonBinError(f"JSONBin read failed: {e}") from e

        if response.status_code == 404:
            raise JsonBinError(f"Bin not found: {bin_id}")
        if response.is_error:
            raise JsonBinError(f"JSONBin read failed: {_message(response)}")

        record = response.json().get("record")
        self._cache[bin_id] = (time.monotonic(), record)
        return record

    async def update_bin(self, bin_id: str, data: Any) -> dict[str, Any]:
        """
        Replace the record stored in a bin.

        Returns:
            The metadata JSONBin reports for the new version

        Raises:
            JsonBinError: If the request fails
        """
        if not bin_id:
            raise JsonBinError("Bin ID is required")

        try:
            async with self._client() as client:
                response = await client.put(
                    f"{self._base_url}/b/{bin_id}",
                    json=data,
                    headers=self._headers(json_body=True),
                )
        except httpx.HTTPError as e:
            raise JsonBinError(f"JSONBin update failed: {e}") from e

        self._cache.pop(bin_id, None)
        if response.is_error:
            raise JsonBinError(f"JSONBin update failed: {_message(response)}")
        return response.json().get("metadata", {})

    async def create_bin(self, data: Any, name: str | None = None) -> str:
        """Create a bin holding `data`. Returns the new bin id."""
        headers = self._headers(json_body=True)
        if name:
            headers["X-Bin-Name"] = name

        try:
            async with self._client() as client:
                response = await client.post(f"{self._base_url}/b", json=data, headers=headers)
        except httpx.HTTPError as e:
            raise JsonBinError(f"JSONBin create failed: {e}") from e

        if response.is_error:
            raise JsonBinError(f"JSONBin create failed: {_message(response)}")
        return response.json()["metadata"]["id"]

    async def delete_bin(self, bin_id: str) -> None:
        """Delete a bin."""
        if not bin_id:
            raise JsonBinError("Bin ID is required")

        try:
            async with self._client() as client:
                response = await client.delete(f"{self._base_url}/b/{bin_id}", headers=self._headers())
        except httpx.HTTPError as e:
            raise JsonBinError(f"JSONBin delete failed: {e}") from e

        self._cache.pop(bin_id, None)
        if response.is_error:
            raise JsonBinError(f"JSONBin delete failed: {_message(response)}")

    def clear_cache(self) -> None:
        self._cache.clear()


def _message(response: httpx.Response) -> str:
    try:
        return response.json().get("message") or f"HTTP {response.status_code}"
    except ValueError:
        return f"HTTP {response.status_code}"
