"""
AppBuilder configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Local storage
    DATA_DIR: str = os.environ.get("DATA_DIR", "data")
    WEBSITES_DIR: str = os.environ.get("WEBSITES_DIR", "websites")
    PRODUCTION_ROOT: str = os.environ.get("PRODUCTION_ROOT", ".")

    # JSONBin.io remote storage (read-only filesystems)
    JSONBIN_MASTER_KEY: str = os.environ.get("JSONBIN_MASTER_KEY", "")
    JSONBIN_ACCESS_KEY: str = os.environ.get("JSONBIN_ACCESS_KEY", "")
    JSONBIN_BASE_URL: str = os.environ.get("JSONBIN_BASE_URL", "https://api.jsonbin.io/v3")
    JSONBIN_DB_BIN_ID: str = os.environ.get("JSONBIN_DB_BIN_ID", "")
    JSONBIN_MAPPINGS_BIN_ID: str = os.environ.get("JSONBIN_MAPPINGS_BIN_ID", "")
    JSONBIN_CONFIG_BIN_ID: str = os.environ.get("JSONBIN_CONFIG_BIN_ID", "")
    JSONBIN_CACHE_TTL: float = float(os.environ.get("JSONBIN_CACHE_TTL", "30"))

    # Outbound API calls
    API_TIMEOUT_SECONDS: float = float(os.environ.get("API_TIMEOUT_SECONDS", "15"))
    API_MAX_CONCURRENCY: int = int(os.environ.get("API_MAX_CONCURRENCY", "8"))

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.environ.get("LOG_FILE", "")

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    @property
    def JSONBIN_ENABLED(self) -> bool:
        return bool(self.JSONBIN_MASTER_KEY)

    @property
    def JSONBIN_BINS(self) -> dict[str, str]:
        """Bin id per document name. Documents without a bin stay on disk."""
        bins = {
            "sites": self.JSONBIN_DB_BIN_ID,
            "mappings": self.JSONBIN_MAPPINGS_BIN_ID,
            "config": self.JSONBIN_CONFIG_BIN_ID,
        }
        return {name: bin_id for name, bin_id in bins.items() if bin_id}


# Singleton instance
settings = Settings()

if settings.API_MAX_CONCURRENCY < 1:
    raise RuntimeError("API_MAX_CONCURRENCY must be at least 1")
if settings.API_TIMEOUT_SECONDS <= 0:
    raise RuntimeError("API_TIMEOUT_SECONDS must be positive")
