"""Configuration package."""

from ledgerchat.config.settings import (
    AppSettings,
    MatchingSettings,
    RateSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "MatchingSettings",
    "RateSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
