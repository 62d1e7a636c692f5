"""Query orchestration configuration model.

Throttle, cache, backoff and debounce timings used by the orchestrator
and the event controller. All durations are in seconds.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from sealedquery.shared.constants import QueryDefaults


class QuerySettings(BaseModel):
    """Timing and paging policy for queries."""

    min_interval: float = Field(
        default=QueryDefaults.MIN_INTERVAL,
        ge=0,
        description="Minimum time between dispatched calls",
    )
    rate_limited_interval: float = Field(
        default=QueryDefaults.RATE_LIMITED_INTERVAL,
        ge=0,
        description="Minimum time between dispatched calls while rate limited",
    )
    cache_ttl: float = Field(default=QueryDefaults.CACHE_TTL, ge=0)
    max_rate_limit_retries: int = Field(default=QueryDefaults.MAX_RATE_LIMIT_RETRIES, ge=0)
    backoff_base: float = Field(default=QueryDefaults.BACKOFF_BASE, ge=0)
    backoff_cap: float = Field(default=QueryDefaults.BACKOFF_CAP, ge=0)
    search_debounce: float = Field(default=QueryDefaults.SEARCH_DEBOUNCE, ge=0)
    default_page_size: int = Field(default=QueryDefaults.DEFAULT_PAGE_SIZE, ge=1)

    @model_validator(mode="after")
    def validate_intervals(self) -> QuerySettings:
        if self.rate_limited_interval < self.min_interval:
            msg = (
                f"rate_limited_interval ({self.rate_limited_interval}) must not be "
                f"shorter than min_interval ({self.min_interval})"
            )
            raise ValueError(msg)
        if self.backoff_cap < self.backoff_base:
            msg = f"backoff_cap ({self.backoff_cap}) must be >= backoff_base ({self.backoff_base})"
            raise ValueError(msg)
        return self


__all__ = ["QuerySettings"]
