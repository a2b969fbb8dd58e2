"""Browser log entries forwarded to the server log."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ClientLogRequest(BaseModel):
    """What the admin pages send to POST /api/logs."""

    level: str = "info"
    message: str = ""
    meta: Any = None
