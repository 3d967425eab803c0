"""
Configuration Management for ledgerchat

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Thresholds that shape matching and rate caching live next to the
external service settings so every tunable is visible in one place.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateSettings(BaseSettings):
    """Exchange rate service and cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RATES_",
        extra="ignore"
    )

    service_url: Optional[str] = Field(
        default=None,
        description="Base URL of the remote exchange rate service"
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key for the exchange rate service"
    )
    refresh_interval_seconds: int = Field(
        default=1800,
        ge=60,
        description="How long a fetched rate table stays fresh"
    )
    snapshot_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="How long a resolved currency pair is reused"
    )
    request_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=60.0,
        description="Upper bound for a single remote rate lookup"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per remote rate request"
    )

    @field_validator('service_url')
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v:
            return v.rstrip("/")
        return v


class MatchingSettings(BaseSettings):
    """Entity resolution and date parsing thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="MATCHING_",
        extra="ignore"
    )

    max_edit_distance: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum Levenshtein distance for project name matches"
    )
    tax_rate_exact_tolerance: float = Field(
        default=0.01,
        gt=0.0,
        description="Percentage points within which a tax rate counts as exact"
    )
    tax_rate_similar_tolerance: float = Field(
        default=0.5,
        gt=0.0,
        description="Percentage points within which a tax rate is offered as similar"
    )
    max_range_depth: int = Field(
        default=1,
        ge=1,
        le=5,
        description="How many nested 'A to B' ranges the date parser accepts"
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
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level for structured logging"
    )

    # Currency defaults
    default_base_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Base currency used when a user has none configured"
    )

    @field_validator('default_base_currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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
    def rates(self) -> RateSettings:
        return RateSettings()

    @property
    def matching(self) -> MatchingSettings:
        return MatchingSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("rates", "matching", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
