"""Configuration package."""

from resiboko.config.settings import (
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    SyncBridgeSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "Settings",
    "SyncBridgeSettings",
    "get_settings",
    "validate_all_settings",
]
