"""
Aggregation fetcher and single-API execution.

fetch_all() runs every API of a site concurrently (bounded by
API_MAX_CONCURRENCY, each call limited to API_TIMEOUT_SECONDS) and returns
the data context the renderer consumes:

  {"__meta__": {name: {method, status, url}}, name: body, ...}

A failing API never aborts the others: its slot holds {"_error": message}
and its meta status is "error".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from backend.config import settings
from backend.models.site import ApiDefinition, ExecuteRequest
from engine.kernel.paths import stringify
from engine.kernel.types import META_KEY

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class ExecutionError(Exception):
    """An executed API call failed. Carries the upstream status and body when there was one."""

    def __init__(self, message: str, status: int | None = None, data: Any = None):
        super().__init__(message)
        self.status = status
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"error": str(self)}
        if self.status is not None:
            d["response"] = {"status": self.status, "data": self.data}
        return d


def make_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Outbound client for API calls."""
    return httpx.AsyncClient(
        timeout=timeout if timeout is not None else settings.API_TIMEOUT_SECONDS,
        follow_redirects=True,
    )


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


def build_request(api: ApiDefinition, override: ExecuteRequest | None = None) -> dict[str, Any]:
    """
    httpx.request() keyword arguments for one call of `api`.

    Precedence, lowest first: field-mapping defaults, the stored definition,
    per-call overrides. The body is the override body if given, else the
    stored body template, else the body field-mapping defaults. Object bodies
    are sent as JSON, or as a form when the mapping's content type says so.
    """
    headers: dict[str, str] = {}
    params: dict[str, str] = {}
    body_defaults: dict[str, Any] = {}

    cfg = api.mapping_config
    if cfg is not None:
        for fm in cfg.field_mappings:
            if fm.value is None:
                continue
            if fm.location == "query":
                params[fm.request_field] = stringify(fm.value)
            elif fm.location == "header":
                headers[fm.request_field] = stringify(fm.value)
            else:
                body_defaults[fm.request_field] = fm.value

    headers.update(api.headers)
    params.update(api.params)

    body: Any = None
    if override is not None:
        headers.update({str(k): stringify(v) for k, v in override.headers.items()})
        params.update({str(k): stringify(v) for k, v in override.params.items()})
        body = override.body
    if body is None and api.body_template not in (None, ""):
        body = api.body_template
    if isinstance(body, dict) and body_defaults:
        body = {**body_defaults, **body}
    elif body is None and body_defaults:
        body = dict(body_defaults)

    kwargs: dict[str, Any] = {
        "method": api.method.upper(),
        "url": api.url,
        "headers": headers,
        "params": params,
    }
    if body is None:
        return kwargs

    content_type = cfg.content_type if cfg is not None else "application/json"
    if isinstance(body, dict) and content_type == FORM_CONTENT_TYPE:
        kwargs["data"] = {str(k): stringify(v) for k, v in body.items()}
    elif isinstance(body, str):
        kwargs["content"] = body
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = content_type
    else:
        kwargs["json"] = body
    return kwargs


def response_data(response: httpx.Response) -> Any:
    """Parsed JSON body, or the text when it isn't JSON."""
    if not response.content:
        return ""
    try:
        return response.json()
    except ValueError:
        return response.text


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


async def fetch_all(
    apis: list[ApiDefinition],
    client: httpx.AsyncClient | None = None,
    max_concurrency: int | None = None,
) -> dict[str, Any]:
    """
    Execute every API and assemble the aggregated data context.

    Args:
        apis: API definitions of one site
        client: Client to use; a fresh one from make_client() otherwise
        max_concurrency: Cap on in-flight calls (default API_MAX_CONCURRENCY)

    Returns:
        {"__meta__": {...}, <api name>: <response body or {"_error": ...}>, ...}
    """
    data: dict[str, Any] = {META_KEY: {}}
    if not apis:
        return data

    semaphore = asyncio.Semaphore(max_concurrency or settings.API_MAX_CONCURRENCY)

    async def run(c: httpx.AsyncClient) -> list[tuple[Any, int | str]]:
        return await asyncio.gather(*(_fetch_one(c, semaphore, api) for api in apis))

    if client is not None:
        results = await run(client)
    else:
        async with make_client() as c:
            results = await run(c)

    for api, (payload, status) in zip(apis, results):
        data[api.name] = payload
        data[META_KEY][api.name] = {"method": api.method.upper(), "status": status, "url": api.url}
    return data


async def _fetch_one(
    client: httpx.AsyncClient,
    semaphore: asyncio.Semaphore,
    api: ApiDefinition,
) -> tuple[Any, int | str]:
    async with semaphore:
        try:
            response = await client.request(**build_request(api))
        except httpx.TimeoutException:
            logger.warning("API %s timed out (%s)", api.name, api.url)
            return {"_error": f"Timed out after {settings.API_TIMEOUT_SECONDS}s"}, "error"
        except Exception as e:
            logger.warning("API %s failed (%s): %s", api.name, api.url, e)
            return {"_error": str(e) or type(e).__name__}, "error"

    if not response.is_success:
        logger.warning("API %s returned %d (%s)", api.name, response.status_code, api.url)
        return {"_error": f"Request failed with status code {response.status_code}"}, "error"
    return response_data(response), response.status_code


# ---------------------------------------------------------------------------
# Single execution
# ---------------------------------------------------------------------------


async def execute_api(
    api: ApiDefinition,
    override: ExecuteRequest | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """
    Execute one API with optional per-call overrides.

    Returns:
        {"status": int, "data": parsed body, "headers": {...}}

    Raises:
        ExecutionError: On transport failure, timeout, or a non-2xx response
    """
    kwargs = build_request(api, override)
    logger.info("Executing %s %s for API %s", kwargs["method"], api.url, api.name)

    try:
        if client is not None:
            response = await client.request(**kwargs)
        else:
            async with make_client() as c:
                response = await c.request(**kwargs)
    except httpx.TimeoutException as e:
        raise ExecutionError(f"Timed out after {settings.API_TIMEOUT_SECONDS}s") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ExecutionError(str(e) or type(e).__name__) from e

    data = response_data(response)
    if not response.is_success:
        raise ExecutionError(
            f"Request failed with status code {response.status_code}",
            status=response.status_code,
            data=data,
        )
    return {"status": response.status_code, "data": data, "headers": dict(response.headers)}
