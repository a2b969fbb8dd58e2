"""
Pydantic models for AppBuilder.

All data shapes defined here. No imports from storage, repos, or routes.
"""

from backend.models.app_config import AppConfig, UpdateConfigRequest
from backend.models.binding import (
    BindingDiagnostics,
    CreateActionRequest,
    CreatePlaceholderRequest,
    UpsertComponentRequest,
)
from backend.models.client_log import ClientLogRequest
from backend.models.site import (
    ApiDefinition,
    ComponentRequest,
    CreateApiRequest,
    CreateSiteRequest,
    ExecuteRequest,
    FieldMapping,
    MappingConfig,
    PreviewRequest,
    SavePageRequest,
    Site,
    UpdateApiRequest,
    normalize_params,
)

__all__ = [
    # Site models
    "Site",
    "ApiDefinition",
    "MappingConfig",
    "FieldMapping",
    "CreateSiteRequest",
    "CreateApiRequest",
    "UpdateApiRequest",
    "ExecuteRequest",
    "SavePageRequest",
    "PreviewRequest",
    "ComponentRequest",
    "normalize_params",
    # Binding models
    "CreatePlaceholderRequest",
    "CreateActionRequest",
    "UpsertComponentRequest",
    "BindingDiagnostics",
    # Config models
    "AppConfig",
    "UpdateConfigRequest",
    # Client logs
    "ClientLogRequest",
]
