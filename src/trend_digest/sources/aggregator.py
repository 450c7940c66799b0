"""Concurrent fan-out over every source adapter behind a coarse TTL cache."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

import httpx
import structlog

from trend_digest.audiences import filter_sources_by_audience, resolve_audience_ids
from trend_digest.cache import TTLCache
from trend_digest.config import CacheSettings, SourceSettings
from trend_digest.sources import default_adapters
from trend_digest.sources.base import SourceAdapter
from trend_digest.sources.models import TrendingSource

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


@dataclass(slots=True)
class AggregateResult:
    """The aggregated (and optionally audience-filtered) trending set."""

    sources: list[TrendingSource]
    cached: bool = False
    is_stale: bool = False
    cache_age_seconds: float | None = None
    audience_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "sources": [source.to_dict() for source in self.sources],
            "cached": self.cached,
            "is_stale": self.is_stale,
            "cache_age_seconds": self.cache_age_seconds,
            "audience_ids": self.audience_ids,
            "count": len(self.sources),
        }


class TrendingAggregator:
    """Run every adapter concurrently and cache the concatenated result.

    A cache hit bypasses all adapters. Concurrent misses share one
    in-flight refresh. An empty aggregate is returned but never cached.

    Attributes:
        adapters: Adapters in concatenation order.
        cache: Single-slot cache for the unfiltered aggregate.
    """

    def __init__(
        self,
        cache: TTLCache[list[TrendingSource]],
        adapters: Sequence[SourceAdapter] | None = None,
        *,
        source_settings: SourceSettings | None = None,
        cache_settings: CacheSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.source_settings = source_settings or SourceSettings()
        self.cache_settings = cache_settings or CacheSettings()
        self.cache = cache
        self.adapters = list(adapters) if adapters is not None else default_adapters(
            self.source_settings
        )
        self._client = client
        self._refresh_task: asyncio.Task[list[TrendingSource]] | None = None

    async def aggregate(
        self,
        audience_ids: Sequence[str] | None = None,
        *,
        force_refresh: bool = False,
    ) -> AggregateResult:
        """Return the trending set, from cache when fresh.

        Args:
            audience_ids: Optional audience filter (ids or parent categories).
            force_refresh: Skip the cache and refetch every adapter.

        Returns:
            The result, flagged with whether it came from cache and whether
            it is stale.
        """
        resolved = resolve_audience_ids(audience_ids)

        if not force_refresh:
            hit = self._from_cache()
            if hit is not None:
                hit.sources = filter_sources_by_audience(hit.sources, resolved)
                hit.audience_ids = resolved
                return hit

        sources = await self._shared_refresh()
        return AggregateResult(
            sources=filter_sources_by_audience(sources, resolved),
            audience_ids=resolved,
        )

    def _from_cache(self) -> AggregateResult | None:
        fresh = self.cache.get()
        metadata = self.cache.get_metadata()
        if fresh is not None and metadata is not None:
            return AggregateResult(
                sources=fresh,
                cached=True,
                cache_age_seconds=metadata.age_seconds,
            )

        if not self.cache_settings.serve_stale or metadata is None:
            return None

        entry = self.cache.peek()
        grace = self.cache_settings.stale_grace_seconds
        if entry is None or metadata.age_seconds >= entry.ttl_seconds + grace:
            return None

        logger.info("serving_stale_trending", age_seconds=metadata.age_seconds)
        self._start_refresh()
        return AggregateResult(
            sources=list(entry.payload),
            cached=True,
            is_stale=True,
            cache_age_seconds=metadata.age_seconds,
        )

    def _start_refresh(self) -> asyncio.Task[list[TrendingSource]]:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh())
        return self._refresh_task

    async def _shared_refresh(self) -> list[TrendingSource]:
        # shield: a cancelled caller must not cancel the refresh others await
        return list(await asyncio.shield(self._start_refresh()))

    async def _refresh(self) -> list[TrendingSource]:
        if self._client is not None:
            sources = await self.fetch_all(self._client)
        else:
            async with httpx.AsyncClient(
                timeout=self.source_settings.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.source_settings.user_agent},
            ) as client:
                sources = await self.fetch_all(client)

        if sources:
            self.cache.set(sources, ttl_seconds=self.cache_settings.trending_ttl_seconds)
        else:
            logger.warning("aggregate_empty_not_cached")
        return sources

    async def fetch_all(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        """Fetch every adapter concurrently and concatenate in adapter order."""
        batches = await asyncio.gather(
            *(adapter.fetch(client) for adapter in self.adapters)
        )
        sources = [source for batch in batches for source in batch]
        logger.info(
            "aggregate_fetched",
            total=len(sources),
            per_source={
                adapter.name: len(batch)
                for adapter, batch in zip(self.adapters, batches, strict=True)
            },
        )
        return sources

    async def wait_for_refresh(self) -> None:
        """Await a background refresh, if one is running."""
        task = self._refresh_task
        if task is not None and not task.done():
            await task
