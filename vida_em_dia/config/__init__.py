"""Configuration package."""

from vida_em_dia.config.settings import (
    AssistantSettings,
    CloudinarySettings,
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AssistantSettings",
    "CloudinarySettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
