"""Configuration module for the incident desk."""

from .database import DatabaseSettings, get_database_settings
from .settings import (
    ResilienceSettings,
    Settings,
    StartupSecurityError,
    get_settings,
    validate_startup_security,
)

__all__ = [
    "DatabaseSettings",
    "get_database_settings",
    "ResilienceSettings",
    "Settings",
    "StartupSecurityError",
    "get_settings",
    "validate_startup_security",
]
