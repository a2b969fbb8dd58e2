"""
Request logging: one line per request, `METHOD path -> status Nms`.

Also home to configure_logging(), called once at startup.
"""

from __future__ import annotations

import logging
import sys
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from backend.config import settings

logger = logging.getLogger("backend.requests")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def configure_logging() -> None:
    """Root logger from LOG_LEVEL, on stderr and optionally LOG_FILE."""
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())

    formatter = logging.Formatter(LOG_FORMAT)
    if not any(getattr(h, "_appbuilder", False) for h in root.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(formatter)
        stream._appbuilder = True  # type: ignore[attr-defined]
        root.addHandler(stream)

        if settings.LOG_FILE:
            try:
                file_handler = logging.FileHandler(settings.LOG_FILE, encoding="utf-8")
            except OSError as e:
                # Read-only deployments: keep logging to stderr only
                logger.warning("File logging disabled, cannot open %s: %s", settings.LOG_FILE, e)
            else:
                file_handler.setFormatter(formatter)
                file_handler._appbuilder = True  # type: ignore[attr-defined]
                root.addHandler(file_handler)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            ms = int((time.perf_counter() - start) * 1000)
            logger.exception("%s %s -> 500 %dms", request.method, request.url.path, ms)
            raise
        ms = int((time.perf_counter() - start) * 1000)
        logger.info("%s %s -> %d %dms", request.method, request.url.path, response.status_code, ms)
        return response
