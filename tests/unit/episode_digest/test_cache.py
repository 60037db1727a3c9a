"""Unit tests for the status cache and the request quota."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from episode_digest.cache import CacheKeys, CacheStore, CacheTTL, InMemoryCache, QuotaLimiter, SafeCache
from episode_digest.exceptions import QuotaExceededError


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.mark.unit
class TestInMemoryCache:
    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = InMemoryCache(clock=clock)
        cache.set("k", {"status": "ready"}, ttl=10)

        clock.advance(9)
        assert cache.get("k") == {"status": "ready"}
        assert len(cache) == 1

        clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_values_are_copied(self):
        cache = InMemoryCache()
        value = {"levels": {"quick": "ready"}}
        cache.set("k", value, ttl=60)
        value["levels"]["quick"] = "failed"

        stored = cache.get("k")
        assert stored["levels"]["quick"] == "ready"
        stored["levels"]["quick"] = "queued"
        assert cache.get("k")["levels"]["quick"] == "ready"

    def test_delete_missing_key_is_noop(self):
        cache = InMemoryCache()
        cache.delete("absent")
        assert cache.get("absent") is None

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryCache(), CacheStore)


@pytest.mark.unit
class TestSafeCache:
    def test_backend_errors_become_misses(self):
        backend = MagicMock()
        backend.get.side_effect = ConnectionError("redis down")
        backend.set.side_effect = ConnectionError("redis down")
        backend.delete.side_effect = ConnectionError("redis down")
        cache = SafeCache(backend)

        assert cache.get("k") is None
        cache.set("k", 1, ttl=5)
        cache.delete("k")
        backend.set.assert_called_once_with("k", 1, 5)

    def test_passes_through_hits(self):
        cache = SafeCache(InMemoryCache())
        cache.set("k", [1, 2], ttl=5)
        assert cache.get("k") == [1, 2]


@pytest.mark.unit
class TestCacheKeys:
    def test_status_key_lowercases_language(self):
        assert CacheKeys.summary_status("ep-1", "EN") == "summary:status:ep-1:en"

    def test_rate_limit_key(self):
        assert CacheKeys.rate_limit("user-7") == "ratelimit:user-7"

    def test_ready_ttl_outlives_processing_ttl(self):
        assert CacheTTL.READY > CacheTTL.PROCESSING


@pytest.mark.unit
class TestQuotaLimiter:
    def test_window_slides(self):
        clock = FakeClock()
        limiter = QuotaLimiter(max_requests=2, window_seconds=60, clock=clock)

        assert limiter.check("u1")
        clock.advance(30)
        assert limiter.check("u1")
        assert not limiter.check("u1")
        assert limiter.remaining("u1") == 0

        clock.advance(31)
        assert limiter.remaining("u1") == 1
        assert limiter.check("u1")

    def test_identifiers_are_independent(self):
        limiter = QuotaLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        assert limiter.check("u1")
        assert limiter.check("u2")
        assert limiter.remaining("u3") == 1

    def test_acquire_raises_when_exhausted(self):
        limiter = QuotaLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.acquire("u1")
        with pytest.raises(QuotaExceededError) as exc_info:
            limiter.acquire("u1")
        assert exc_info.value.identifier == "u1"
        assert exc_info.value.limit == 1
        assert "1 requests per 60s" in str(exc_info.value)

    def test_release_returns_the_latest_request(self):
        limiter = QuotaLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.acquire("u1")
        limiter.release("u1")
        assert limiter.remaining("u1") == 1
        limiter.release("u2")
        assert limiter.remaining("u2") == 1
