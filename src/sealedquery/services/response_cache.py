"""In-memory response cache with TTL.

Entries are keyed by request signature and evicted lazily on lookup;
there is no background sweep. The cache lives as long as its owning
orchestrator and is never persisted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

from sealedquery.shared.constants import QueryDefaults

from .query_models import IndexResult, QueryResult

logger = logging.getLogger(__name__)

CachedResult = Union[QueryResult, IndexResult]
T = TypeVar("T", QueryResult, IndexResult)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached result and the clock value it was stored at.

    Attributes:
        signature: Request signature the result belongs to
        result: The cached result
        created_at: Monotonic clock value at insertion
    """

    signature: str
    result: T
    created_at: float

    def age(self, now: float) -> float:
        return now - self.created_at


class ResponseCache:
    """Signature-keyed cache of query and index results.

    Args:
        ttl: Seconds an entry stays fresh; age must be strictly below it
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        ttl: float = QueryDefaults.CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, signature: object) -> bool:
        return signature in self._entries

    def get(self, signature: str) -> CachedResult | None:
        """Return the fresh result for a signature, evicting a stale one."""
        entry = self._entries.get(signature)
        if entry is None:
            self._misses += 1
            return None

        if entry.age(self._clock()) >= self.ttl:
            del self._entries[signature]
            self._misses += 1
            logger.debug("Evicted stale cache entry %s", signature[:16])
            return None

        self._hits += 1
        return entry.result

    def put(self, signature: str, result: CachedResult) -> None:
        self._entries[signature] = CacheEntry(
            signature=signature,
            result=result,
            created_at=self._clock(),
        )

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}
