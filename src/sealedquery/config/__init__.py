"""SealedQuery Configuration Module

This module provides unified access to configuration models and settings
management:
- Settings: Main configuration facade
- Loader functions: get_config, load_settings, reload_config
- Domain models: App, Logging, API, Query and Security settings
"""

from __future__ import annotations

from .models import (
    APISettings,
    AppSettings,
    LoggingSettings,
    QuerySettings,
    SecuritySettings,
)
from .models.settings import Settings
from .loader import (
    get_config,
    load_settings,
    reload_config,
    reset_config,
)

__all__ = [
    "APISettings",
    "AppSettings",
    "LoggingSettings",
    "QuerySettings",
    "SecuritySettings",
    "Settings",
    "get_config",
    "load_settings",
    "reload_config",
    "reset_config",
]
