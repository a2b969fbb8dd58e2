"""
AppBuilder FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend import storage
from backend.config import settings
from backend.middleware.request_log import RequestLogMiddleware, configure_logging
from backend.routes import app_config as config_routes
from backend.routes import bindings as binding_routes
from backend.routes import serving as serving_routes
from backend.routes import site_pages as page_routes
from backend.routes import sites as site_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup logic:
    - Configure logging
    - Initialize the document store (files, or JSONBin when configured)
    """
    configure_logging()
    storage.init_store()
    logger.info("AppBuilder started (%s), websites in %s", settings.ENVIRONMENT, settings.WEBSITES_DIR)

    yield

    logger.info("AppBuilder stopped")


app = FastAPI(
    title="AppBuilder",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(RequestLogMiddleware)

# Register routes
app.include_router(site_routes.router)
app.include_router(page_routes.router)
app.include_router(binding_routes.router)
app.include_router(config_routes.router)
app.include_router(serving_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}


# Catch-all — must be after all other routes
app.include_router(serving_routes.fallback_router)
