"""Repository for the serving config document."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from backend.models.app_config import AppConfig, UpdateConfigRequest
from backend.storage import DocumentStore, get_store

logger = logging.getLogger(__name__)


class ConfigRepo:
    """Read and update the config document."""

    def __init__(self, store: DocumentStore | None = None) -> None:
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store or get_store()

    async def get(self) -> AppConfig:
        doc = await self.store.read("config")
        try:
            return AppConfig.model_validate(doc)
        except ValidationError as e:
            logger.warning("Invalid config document, using defaults: %s", e)
            return AppConfig()

    async def update(self, req: UpdateConfigRequest) -> AppConfig:
        """
        Apply the fields present in `req`.

        Raises:
            StorageError: If the document cannot be persisted
        """
        async with self.store.edit("config") as doc:
            doc.update(req.model_dump(include=req.model_fields_set, by_alias=True))
            cfg = AppConfig.model_validate(doc)
            doc.clear()
            doc.update(cfg.to_dict())
        return cfg
