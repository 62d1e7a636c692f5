"""
SealedQuery Constants Module

This module provides centralized constants for SealedQuery. All magic
values are defined here to keep the protocol and the orchestration
policy in one place.
"""

from .api import APIEndpoints, APIFields, APIHeaders
from .http_codes import HTTPStatusCodes
from .logging import Application, Logging
from .query import CustomMode, FallbackValues, MatchMode, QueryDefaults
from .security import CryptoConfig, ObfuscationConfig

__all__ = [
    "APIEndpoints",
    "APIFields",
    "APIHeaders",
    "Application",
    "CryptoConfig",
    "CustomMode",
    "FallbackValues",
    "HTTPStatusCodes",
    "Logging",
    "MatchMode",
    "ObfuscationConfig",
    "QueryDefaults",
]
