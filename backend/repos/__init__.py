"""
Repository layer for AppBuilder.

All document access lives here and ONLY here. No storage access outside this module.
"""

from backend.repos.binding_repo import BindingRepo
from backend.repos.config_repo import ConfigRepo
from backend.repos.site_repo import ApiNotFound, NameConflict, SiteNotFound, SiteRepo

__all__ = [
    "SiteRepo",
    "BindingRepo",
    "ConfigRepo",
    "SiteNotFound",
    "ApiNotFound",
    "NameConflict",
]
