"""Logging Constants."""


class Logging:
    """Logging configuration defaults."""

    DEFAULT_LEVEL = "INFO"
    DEFAULT_LOGGER_NAME = "sealedquery"
    RICH_TIME_FORMAT = "[%H:%M:%S]"


class Application:
    """Application identity."""

    NAME = "sealedquery"
    VERSION = "0.1.0"
    HOME_DIR = ".sealedquery"
