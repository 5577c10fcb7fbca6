"""
Configuration Management for Estate Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Each concern gets its own settings class with its own env prefix, so a
deployment can override the store location without touching report rules.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Durable entity store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ESTATE_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///estate_ledger.db",
        description="SQLAlchemy async URL of the local store"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )

    @field_validator('database_url')
    @classmethod
    def require_async_driver(cls, v: str) -> str:
        """The store is driven from asyncio, so the URL needs an async driver."""
        if v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v


class LegacySettings(BaseSettings):
    """Location of the legacy flat documents imported on first start."""

    model_config = SettingsConfigDict(
        env_prefix="ESTATE_LEGACY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database_document: str = Field(
        default="uns_db_v6_0.json",
        description="Flat JSON document with properties, tenants, employees, config"
    )
    reports_document: str = Field(
        default="uns_reports_v1.json",
        description="Sibling JSON document holding {snapshots: [...]}"
    )


class CacheSettings(BaseSettings):
    """Write-through cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ESTATE_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    flush_delay_ms: int = Field(
        default=100,
        ge=0,
        le=5000,
        description="Coalescing window for debounced flushes"
    )

    @property
    def flush_delay_seconds(self) -> float:
        return self.flush_delay_ms / 1000


class ReportSettings(BaseSettings):
    """Rules used while deriving the monthly reports."""

    model_config = SettingsConfigDict(
        env_prefix="ESTATE_REPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    contract_warning_days: int = Field(
        default=60,
        ge=1,
        le=365,
        description="Flag contracts ending within this many days"
    )
    no_company_label: str = Field(
        default="(no company)",
        min_length=1,
        description="Company bucket for tenants without a sponsoring company"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode (console log renderer)"
    )

    # Defaults for a fresh configuration record
    default_company_name: str = Field(
        default="UNS-KIKAKU",
        description="Company display name used until the operator sets one"
    )
    default_closing_day: int = Field(
        default=0,
        ge=0,
        le=28,
        description="Billing cycle closing day (0 = end of month)"
    )
    default_cleaning_fee: int = Field(
        default=30000,
        ge=0,
        description="Default move-out cleaning fee in yen"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def legacy(self) -> LegacySettings:
        return LegacySettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def reports(self) -> ReportSettings:
        return ReportSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    `<name>_error` entry for every section that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("store", "legacy", "cache", "reports", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
