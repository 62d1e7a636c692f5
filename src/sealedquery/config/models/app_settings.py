"""Application, logging and security configuration models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from sealedquery.shared.constants import Application, Logging, ObfuscationConfig


class AppSettings(BaseModel):
    """Application configuration."""

    name: str = Field(default=Application.NAME, description="Application name")
    version: str = Field(default=Application.VERSION, description="Application version")
    language: Literal["en", "zh"] = Field(
        default="en",
        description="Language of user-visible error messages",
    )


class LoggingSettings(BaseModel):
    """Logging configuration.

    Console output goes through rich unless ``use_rich`` is disabled, in
    which case records are written as JSON lines.
    """

    level: str = Field(default=Logging.DEFAULT_LEVEL, description="Logging level")
    file: str | None = Field(default=None, description="Optional JSON log file path")
    use_rich: bool = Field(default=True, description="Use rich console output")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Invalid log level: {v}"
            raise ValueError(msg)
        return level


class SecuritySettings(BaseModel):
    """Transport obfuscation configuration."""

    obfuscation_label: str = Field(
        default=ObfuscationConfig.DEFAULT_LABEL,
        min_length=1,
        description="Label mixed into the transport obfuscation key",
    )


__all__ = ["AppSettings", "LoggingSettings", "SecuritySettings"]
