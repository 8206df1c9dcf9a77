"""Configuration package."""

from src.config.settings import (
    AuditSettings,
    CipherSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AuditSettings",
    "CipherSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
