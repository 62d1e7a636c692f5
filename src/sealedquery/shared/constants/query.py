"""
Query Orchestration Constants

Throttling, caching and retry defaults for the query orchestrator and
the fallback values shown when nothing has been loaded yet.
"""


class QueryDefaults:
    """Default timing and paging values."""

    MIN_INTERVAL = 1.0  # seconds between dispatched calls
    RATE_LIMITED_INTERVAL = 2.0  # widened interval while rate limited
    CACHE_TTL = 10.0  # seconds
    MAX_RATE_LIMIT_RETRIES = 3
    BACKOFF_BASE = 1.0
    BACKOFF_CAP = 10.0
    SEARCH_DEBOUNCE = 0.8
    DEFAULT_PAGE_SIZE = 20


class FallbackValues:
    """Placeholder content used before any real data has arrived."""

    PLACEHOLDER_ITEM = "No data"
    INDEX_SEGMENTS = (
        "130",
        "131",
        "132",
        "155",
        "156",
        "166",
        "176",
        "185",
        "186",
    )


class CustomMode:
    """How custom numbers are applied by the server."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


class MatchMode:
    """Default match mode sent with the filters."""

    NONE = "none"
