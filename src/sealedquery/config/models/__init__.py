"""Configuration models for SealedQuery."""

from __future__ import annotations

from .api_settings import APISettings
from .app_settings import AppSettings, LoggingSettings, SecuritySettings
from .query_settings import QuerySettings

__all__ = [
    "APISettings",
    "AppSettings",
    "LoggingSettings",
    "QuerySettings",
    "SecuritySettings",
]
