"""Configuration package."""

from estate_ledger.config.settings import (
    AppSettings,
    CacheSettings,
    LegacySettings,
    ReportSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "LegacySettings",
    "ReportSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
