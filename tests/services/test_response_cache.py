"""Tests for ResponseCache."""

from __future__ import annotations

import pytest

from sealedquery.services.query_models import IndexResult, QueryResult
from sealedquery.services.response_cache import ResponseCache


@pytest.fixture
def cache(clock) -> ResponseCache:
    return ResponseCache(ttl=10.0, clock=clock)


class TestResponseCache:
    """TTL semantics and bookkeeping."""

    def test_miss_on_empty_cache(self, cache):
        assert cache.get("query:x") is None
        assert cache.get_stats()["misses"] == 1

    def test_fresh_entry_is_returned(self, cache, clock):
        result = QueryResult(items=["138"])
        cache.put("query:x", result)
        clock.advance(9.9)

        assert cache.get("query:x") is result
        assert cache.get_stats()["hits"] == 1

    def test_entry_expires_at_ttl(self, cache, clock):
        cache.put("query:x", QueryResult(items=["138"]))
        clock.advance(10.0)

        assert cache.get("query:x") is None
        assert "query:x" not in cache
        assert len(cache) == 0

    def test_put_refreshes_timestamp(self, cache, clock):
        cache.put("index:x", IndexResult(data={"total": 1}))
        clock.advance(8.0)
        cache.put("index:x", IndexResult(data={"total": 2}))
        clock.advance(8.0)

        cached = cache.get("index:x")
        assert cached is not None
        assert cached.total == 2

    def test_clear(self, cache):
        cache.put("a", QueryResult())
        cache.put("b", QueryResult())
        cache.clear()
        assert len(cache) == 0
