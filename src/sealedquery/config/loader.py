"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for Settings instance
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import toml
from dotenv import load_dotenv
from pydantic import ValidationError

from sealedquery.config.models.settings import Settings
from sealedquery.shared.constants import Application
from sealedquery.shared.errors import create_config_error

logger = logging.getLogger(__name__)


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking pattern to ensure thread-safety
    while minimizing lock overhead.
    """

    _instance: Settings | None = None
    _lock: threading.RLock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance (thread-safe).

        Returns:
            The global Settings instance, loading it if necessary.
        """
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()

        return self._instance

    def reload_config(self, config_path: str | Path | None = None) -> Settings:
        """Reload the global settings instance from configuration files.

        Args:
            config_path: Optional TOML file to load instead of the defaults

        Returns:
            The reloaded Settings instance.
        """
        with self._lock:
            self._instance = load_settings(config_path)

        return self._instance

    def reset(self) -> None:
        """Forget the cached instance so the next get_config() reloads."""
        with self._lock:
            self._instance = None


def _load_env_file(env_file: Path | None = None) -> None:
    """Load environment variables from a .env file if one exists.

    Variables already present in the environment win over the file.
    """
    env_file = env_file or Path(".env")
    if env_file.exists():
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment from %s", env_file.name)


def _default_config_paths() -> list[Path]:
    return [
        Path("config/config.toml"),
        Path("config.toml"),
        Path.home() / Application.HOME_DIR / "config.toml",
    ]


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from TOML configuration file or environment.

    Args:
        config_path: Optional path to TOML configuration file. If None, tries to load
                    from default locations or environment variables.

    Returns:
        Settings instance loaded from the specified source

    Raises:
        ApplicationError: If the file is missing, unreadable or invalid
    """
    _load_env_file()

    try:
        if config_path:
            return Settings.from_toml_file(config_path)

        for default_path in _default_config_paths():
            if default_path.exists():
                return Settings.from_toml_file(default_path)

        return Settings()
    except FileNotFoundError as e:
        raise create_config_error(
            f"Configuration file not found: {config_path}",
            setting="config_path",
            original_error=e,
        ) from e
    except toml.TomlDecodeError as e:
        raise create_config_error(
            f"Configuration file is not valid TOML: {e}",
            original_error=e,
        ) from e
    except ValidationError as e:
        first = e.errors()[0]
        setting = ".".join(str(part) for part in first.get("loc", ()))
        raise create_config_error(
            f"Invalid configuration value for {setting}: {first.get('msg')}",
            setting=setting,
            original_error=e,
        ) from e


# Global loader instance
_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance (thread-safe).

    Returns:
        The global Settings instance, loading it if necessary.
    """
    return _loader.get_config()


def reload_config(config_path: str | Path | None = None) -> Settings:
    """Reload the global settings instance from configuration files.

    Returns:
        The reloaded Settings instance.
    """
    return _loader.reload_config(config_path)


def reset_config() -> None:
    """Drop the cached settings instance."""
    _loader.reset()


__all__ = [
    "SettingsLoader",
    "get_config",
    "load_settings",
    "reload_config",
    "reset_config",
]
