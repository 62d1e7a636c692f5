"""API configuration models.

Base URL, endpoint paths and timeout of the remote query service.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from sealedquery.shared.constants import APIEndpoints


class APISettings(BaseModel):
    """Query service API configuration.

    Endpoint paths are relative to ``base_url``.
    """

    base_url: str = Field(
        default=APIEndpoints.DEFAULT_BASE_URL,
        description="Base URL of the query service",
    )
    public_key_path: str = Field(default=APIEndpoints.PUBLIC_KEY)
    session_init_path: str = Field(default=APIEndpoints.SESSION_INIT)
    index_path: str = Field(default=APIEndpoints.INDEX)
    query_path: str = Field(default=APIEndpoints.QUERY_NUMBERS)
    health_path: str = Field(default=APIEndpoints.HEALTH)
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Only http(s) URLs are accepted; trailing slashes are removed."""
        if not v.startswith(("http://", "https://")):
            msg = f"base_url must start with http:// or https://, got: {v}"
            raise ValueError(msg)
        return v.rstrip("/")

    @field_validator(
        "public_key_path",
        "session_init_path",
        "index_path",
        "query_path",
        "health_path",
    )
    @classmethod
    def validate_path(cls, v: str) -> str:
        return v if v.startswith("/") else f"/{v}"


__all__ = ["APISettings"]
