"""Config and client log routes."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status

from backend.models.app_config import UpdateConfigRequest
from backend.models.client_log import ClientLogRequest
from backend.repos.config_repo import ConfigRepo
from backend.storage import StorageError

logger = logging.getLogger(__name__)
client_logger = logging.getLogger("backend.client")

router = APIRouter(prefix="/api", tags=["config"])
config_repo = ConfigRepo()


@router.get("/config")
async def get_config() -> dict[str, Any]:
    return (await config_repo.get()).to_dict()


@router.post("/config")
async def update_config(req: UpdateConfigRequest) -> dict[str, Any]:
    """Partial update of productionFolder / activePrototype."""
    try:
        cfg = await config_repo.update(req)
    except StorageError as e:
        logger.error("Could not persist config: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not persist config (read-only filesystem?)",
        )
    return cfg.to_dict()


@router.post("/logs")
async def client_log(req: ClientLogRequest) -> dict[str, bool]:
    """Forward a browser log line to the server log."""
    message = req.message
    if req.meta is not None:
        message = f"{message} | meta: {json.dumps(req.meta, default=str)}"

    if req.level == "error":
        client_logger.error(message)
    elif req.level == "warn":
        client_logger.warning(message)
    else:
        client_logger.info(message)
    return {"ok": True}
