"""Rate Limiting State Machine implementation.

This module tracks whether the query service is currently rate limiting
us and computes the exponential backoff for 429 responses. Retry
counters live in a RetryState owned by each logical call, so cancelling
one call never disturbs the budget of another.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from sealedquery.shared.constants import QueryDefaults


class RateLimitState(Enum):
    """Rate limiting states for the query client."""

    NORMAL = "normal"
    RATE_LIMITED = "rate_limited"


@dataclass
class RetryState:
    """Retry bookkeeping for 429 responses of one logical call.

    Attributes:
        attempt_count: Automatic retries spent since the last reset
        last_attempt_at: Clock value of the last recorded 429, or None
    """

    attempt_count: int = 0
    last_attempt_at: float | None = None

    def reset(self) -> None:
        self.attempt_count = 0
        self.last_attempt_at = None


class RateLimitStateMachine:
    """State machine for 429 handling and backoff.

    A 429 moves the machine to RATE_LIMITED and yields the next backoff
    delay, min(backoff_base * 2**attempt, backoff_cap), until
    max_retries retries are spent. The next 429 after that is terminal:
    handle_429() returns None and the retry counter resets. Only a
    successful response returns the machine to NORMAL.

    Args:
        max_retries: Automatic retries allowed before giving up (default: 3)
        backoff_base: Delay of the first retry in seconds (default: 1.0)
        backoff_cap: Upper bound for any single delay in seconds (default: 10.0)
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        max_retries: int = QueryDefaults.MAX_RATE_LIMIT_RETRIES,
        backoff_base: float = QueryDefaults.BACKOFF_BASE,
        backoff_cap: float = QueryDefaults.BACKOFF_CAP,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._clock = clock

        self._state = RateLimitState.NORMAL
        self._rate_limited_count = 0
        self._exhausted_count = 0

    @property
    def state(self) -> RateLimitState:
        """Get the current state of the state machine."""
        return self._state

    @property
    def is_rate_limited(self) -> bool:
        return self._state == RateLimitState.RATE_LIMITED

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        return min(self.backoff_base * (2**attempt), self.backoff_cap)

    def handle_429(self, retry: RetryState) -> float | None:
        """Handle a 429 (Too Many Requests) response.

        Args:
            retry: Retry state of the call that received the 429

        Returns:
            Seconds to wait before retrying, or None when the retry
            budget is exhausted and the error must be surfaced
        """
        self._state = RateLimitState.RATE_LIMITED
        self._rate_limited_count += 1
        retry.last_attempt_at = self._clock()

        if retry.attempt_count >= self.max_retries:
            retry.reset()
            self._exhausted_count += 1
            return None

        delay = self.backoff_delay(retry.attempt_count)
        retry.attempt_count += 1
        return delay

    def handle_success(self, retry: RetryState | None = None) -> None:
        """Handle a successful response: back to NORMAL, counter cleared."""
        self._state = RateLimitState.NORMAL
        if retry is not None:
            retry.reset()

    def reset(self) -> None:
        """Reset the state machine to NORMAL state."""
        self._state = RateLimitState.NORMAL
        self._rate_limited_count = 0
        self._exhausted_count = 0

    def get_stats(self) -> dict[str, Any]:
        """Get current statistics about the state machine.

        Returns:
            Dictionary containing state machine statistics
        """
        return {
            "state": self._state.value,
            "rate_limited_responses": self._rate_limited_count,
            "exhausted_count": self._exhausted_count,
        }
