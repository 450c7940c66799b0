"""In-memory TTL caches for the trending set and web search results.

Two independent caches share one entry type:

- ``TTLCache`` holds a single slot (the current aggregated trending set).
- ``QueryCache`` maps normalized search queries to formatted result text.

Expired entries always read as a miss. Staleness is only visible through
``peek`` and ``get_metadata``, which report it explicitly instead of
serving old data implicitly. Every write replaces a whole entry (and, for
the keyed cache, the whole mapping) so concurrent readers observe either
the old or the new value, never a partial update.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]

_DEFAULT_TRENDING_TTL_SECONDS = 3600  # 1 hour
_DEFAULT_QUERY_TTL_SECONDS = 900  # 15 minutes
_DEFAULT_QUERY_MAX_ENTRIES = 100

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """An immutable cached payload with its write time and TTL."""

    payload: T
    cached_at: float
    ttl_seconds: int

    @property
    def expires_at(self) -> float:
        return self.cached_at + self.ttl_seconds

    def age(self, now: float) -> float:
        return max(0.0, now - self.cached_at)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True, slots=True)
class CacheMetadata:
    """Staleness report for a cache entry, used for UI display."""

    cached_at: float
    ttl_seconds: int
    age_seconds: float
    is_stale: bool
    count: int | None = None


def _metadata(entry: CacheEntry[T], now: float) -> CacheMetadata:
    payload = entry.payload
    return CacheMetadata(
        cached_at=entry.cached_at,
        ttl_seconds=entry.ttl_seconds,
        age_seconds=round(entry.age(now), 3),
        is_stale=entry.is_expired(now),
        count=len(payload) if isinstance(payload, (list, tuple)) else None,
    )


class TTLCache(Generic[T]):
    """Single-slot cache holding one value with a time-to-live.

    Attributes:
        name: Label used in log events.
        default_ttl_seconds: TTL applied when ``set`` is called without one.
    """

    def __init__(
        self,
        name: str = "trending",
        default_ttl_seconds: int = _DEFAULT_TRENDING_TTL_SECONDS,
        clock: Clock = time.time,
    ) -> None:
        self.name = name
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entry: CacheEntry[T] | None = None

    def get(self) -> T | None:
        """Return the cached value, or None when empty or expired."""
        entry = self._entry
        if entry is None:
            return None

        now = self._clock()
        if entry.is_expired(now):
            logger.debug("cache_expired", cache=self.name, age_seconds=entry.age(now))
            return None

        logger.debug("cache_hit", cache=self.name, age_seconds=round(entry.age(now), 1))
        return entry.payload

    def peek(self) -> CacheEntry[T] | None:
        """Return the raw entry even when expired, so callers can decide on staleness."""
        return self._entry

    def set(self, value: T, ttl_seconds: int | None = None) -> None:
        """Replace the cached value atomically."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entry = CacheEntry(payload=value, cached_at=self._clock(), ttl_seconds=ttl)
        logger.debug("cache_set", cache=self.name, ttl_seconds=ttl)

    def get_metadata(self) -> CacheMetadata | None:
        """Describe the current entry (including expiry) without refreshing it."""
        entry = self._entry
        if entry is None:
            return None
        return _metadata(entry, self._clock())

    def clear(self) -> None:
        self._entry = None
        logger.debug("cache_cleared", cache=self.name)


def normalize_query(query: str) -> str:
    """Normalize a search query into its cache key."""
    return _WHITESPACE_RE.sub(" ", query.strip().lower())


class QueryCache:
    """Keyed TTL cache for formatted search results.

    Keys are normalized with :func:`normalize_query` so that trivially
    different spellings of one query share an entry. When full, the
    oldest entry is evicted first.
    """

    def __init__(
        self,
        default_ttl_seconds: int = _DEFAULT_QUERY_TTL_SECONDS,
        max_entries: int = _DEFAULT_QUERY_MAX_ENTRIES,
        clock: Clock = time.time,
    ) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry[str]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, query: str) -> str | None:
        """Return cached text for a query, or None when missing or expired."""
        key = normalize_query(query)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            entries = dict(self._entries)
            entries.pop(key, None)
            self._entries = entries
            logger.debug("query_cache_expired", query=key[:60])
            return None

        logger.debug("query_cache_hit", query=key[:60])
        return entry.payload

    def set(self, query: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store text for a query, evicting the oldest entry when full."""
        key = normalize_query(query)
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds

        entries = dict(self._entries)
        entries.pop(key, None)
        while entries and len(entries) >= self.max_entries:
            oldest = next(iter(entries))
            del entries[oldest]
            logger.debug("query_cache_evicted", query=oldest[:60])

        entries[key] = CacheEntry(payload=value, cached_at=self._clock(), ttl_seconds=ttl)
        self._entries = entries
        logger.debug("query_cache_set", query=key[:60], ttl_seconds=ttl)

    def get_metadata(self, query: str) -> CacheMetadata | None:
        entry = self._entries.get(normalize_query(query))
        if entry is None:
            return None
        return _metadata(entry, self._clock())

    def clear(self) -> None:
        self._entries = {}

    def stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "max_entries": self.max_entries}
