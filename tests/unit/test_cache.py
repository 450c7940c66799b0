"""Unit tests for trend_digest.cache - TTL and keyed query caches."""

from __future__ import annotations

from typing import TYPE_CHECKING

from trend_digest.cache import CacheEntry, QueryCache, TTLCache, normalize_query

if TYPE_CHECKING:
    from tests.conftest import FakeClock


class TestCacheEntry:
    def test_expiry_boundary(self) -> None:
        entry = CacheEntry(payload="x", cached_at=100.0, ttl_seconds=10)
        assert entry.expires_at == 110.0
        assert not entry.is_expired(109.9)
        assert entry.is_expired(110.0)

    def test_age_never_negative(self) -> None:
        entry = CacheEntry(payload="x", cached_at=100.0, ttl_seconds=10)
        assert entry.age(90.0) == 0.0


class TestTTLCache:
    """Single-slot cache used for the aggregated trending set."""

    def test_empty_cache_misses(self, clock: FakeClock) -> None:
        cache: TTLCache[list[int]] = TTLCache(clock=clock)
        assert cache.get() is None
        assert cache.get_metadata() is None

    def test_hit_within_ttl_and_miss_after(self, clock: FakeClock) -> None:
        cache: TTLCache[list[int]] = TTLCache(default_ttl_seconds=3600, clock=clock)
        cache.set([1, 2, 3])

        clock.advance(3599)
        assert cache.get() == [1, 2, 3]

        clock.advance(1)
        assert cache.get() is None

    def test_expired_entry_still_visible_through_peek(self, clock: FakeClock) -> None:
        cache: TTLCache[list[int]] = TTLCache(default_ttl_seconds=10, clock=clock)
        cache.set([1])
        clock.advance(20)

        entry = cache.peek()
        assert entry is not None
        assert entry.payload == [1]

        metadata = cache.get_metadata()
        assert metadata is not None
        assert metadata.is_stale is True
        assert metadata.age_seconds == 20
        assert metadata.count == 1

    def test_set_replaces_entry(self, clock: FakeClock) -> None:
        cache: TTLCache[str] = TTLCache(clock=clock)
        cache.set("old")
        first = cache.peek()
        cache.set("new", ttl_seconds=5)

        assert cache.peek() is not first
        assert cache.get() == "new"
        metadata = cache.get_metadata()
        assert metadata is not None
        assert metadata.ttl_seconds == 5
        assert metadata.count is None

    def test_clear(self, clock: FakeClock) -> None:
        cache: TTLCache[str] = TTLCache(clock=clock)
        cache.set("x")
        cache.clear()
        assert cache.get() is None


class TestNormalizeQuery:
    def test_lowercases_trims_and_collapses(self) -> None:
        assert normalize_query("  LLM   Agents\tTutorial ") == "llm agents tutorial"


class TestQueryCache:
    """Keyed cache used for web search results."""

    def test_normalized_keys_share_entry(self, clock: FakeClock) -> None:
        cache = QueryCache(clock=clock)
        cache.set("LLM Agents", "results")
        assert cache.get("  llm   agents ") == "results"

    def test_expired_entry_is_dropped(self, clock: FakeClock) -> None:
        cache = QueryCache(default_ttl_seconds=900, clock=clock)
        cache.set("q", "results")

        clock.advance(899)
        assert cache.get("q") == "results"

        clock.advance(1)
        assert cache.get("q") is None
        assert len(cache) == 0

    def test_evicts_oldest_when_full(self, clock: FakeClock) -> None:
        cache = QueryCache(max_entries=2, clock=clock)
        cache.set("a", "1")
        cache.set("b", "2")
        cache.set("c", "3")

        assert cache.get("a") is None
        assert cache.get("b") == "2"
        assert cache.get("c") == "3"
        assert cache.stats() == {"entries": 2, "max_entries": 2}

    def test_rewriting_key_refreshes_position(self, clock: FakeClock) -> None:
        cache = QueryCache(max_entries=2, clock=clock)
        cache.set("a", "1")
        cache.set("b", "2")
        cache.set("a", "1b")
        cache.set("c", "3")

        assert cache.get("a") == "1b"
        assert cache.get("b") is None

    def test_metadata(self, clock: FakeClock) -> None:
        cache = QueryCache(clock=clock)
        cache.set("q", "results")
        clock.advance(30)

        metadata = cache.get_metadata("Q")
        assert metadata is not None
        assert metadata.age_seconds == 30
        assert metadata.is_stale is False
        assert cache.get_metadata("missing") is None
