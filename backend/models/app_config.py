"""Serving configuration: which site answers at /."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AppConfig(BaseModel):
    """Persisted config document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    production_folder: str = "production"
    active_prototype: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class UpdateConfigRequest(BaseModel):
    """Partial config update. Fields left out keep their stored values."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    production_folder: str | None = None
    active_prototype: str | None = None
