"""Pipeline facade wiring caches, aggregator, search and the generation loop.

All state (both caches, the shared HTTP client, in-flight tasks) lives on
the ``TrendingPipeline`` instance; there are no module-level singletons.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from trend_digest.agent import AgenticLoop, GenerationResult, PromptPayload
from trend_digest.cache import QueryCache, TTLCache
from trend_digest.generators import generate_newsletter, generate_trending_topics, suggest_topics
from trend_digest.logging import request_logging_context
from trend_digest.models import ModelRouter
from trend_digest.scoring import rank_sources
from trend_digest.search import SearchGateway
from trend_digest.sources.aggregator import AggregateResult, TrendingAggregator

if TYPE_CHECKING:
    from types import TracebackType

    from trend_digest.cache import Clock
    from trend_digest.config import Settings
    from trend_digest.sources.base import SourceAdapter
    from trend_digest.sources.models import TrendingSource

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class TrendingPipeline:
    """Entry point for every operation exposed to the CLI and other callers.

    Use as an async context manager so the shared HTTP client is closed::

        async with TrendingPipeline(settings) as pipeline:
            result = await pipeline.aggregate(["academic"])
    """

    def __init__(
        self,
        settings: Settings,
        *,
        adapters: Sequence[SourceAdapter] | None = None,
        router: ModelRouter | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": settings.sources.user_agent},
        )

        clock_kwargs: dict[str, Any] = {"clock": clock} if clock is not None else {}
        self.trending_cache: TTLCache[list[TrendingSource]] = TTLCache(
            name="trending",
            default_ttl_seconds=settings.cache.trending_ttl_seconds,
            **clock_kwargs,
        )
        self.query_cache = QueryCache(
            default_ttl_seconds=settings.cache.query_ttl_seconds,
            max_entries=settings.cache.query_max_entries,
            **clock_kwargs,
        )

        self.aggregator = TrendingAggregator(
            self.trending_cache,
            adapters,
            source_settings=settings.sources,
            cache_settings=settings.cache,
            client=self.client,
        )
        self.search_gateway = SearchGateway(self.query_cache, settings.search, client=self.client)
        self.router = router or ModelRouter.from_settings(settings.llm)
        self.loop = AgenticLoop(
            self.router,
            self.search_gateway,
            max_iterations=settings.generation.max_iterations,
        )

    async def __aenter__(self) -> TrendingPipeline:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # -- sources ------------------------------------------------------------

    async def aggregate(
        self,
        audience_ids: Sequence[str] | None = None,
        *,
        force_refresh: bool = False,
    ) -> AggregateResult:
        with request_logging_context("aggregate") as log:
            result = await self.aggregator.aggregate(audience_ids, force_refresh=force_refresh)
            log.info(
                "aggregate_result",
                count=len(result.sources),
                cached=result.cached,
                is_stale=result.is_stale,
            )
            return result

    async def ranked(
        self,
        audience_ids: Sequence[str] | None = None,
        limit: int | None = None,
        *,
        force_refresh: bool = False,
    ) -> list[TrendingSource]:
        """Aggregate, then order by relevance score."""
        result = await self.aggregate(audience_ids, force_refresh=force_refresh)
        return rank_sources(result.sources, limit=limit)

    # -- search & generation ------------------------------------------------

    async def search(self, query: str) -> str:
        with request_logging_context("search"):
            return await self.search_gateway.search(query)

    async def generate(self, prompt: PromptPayload, tools_enabled: bool = True) -> GenerationResult:
        with request_logging_context("generate", tools_enabled=tools_enabled):
            return await self.loop.generate(prompt, tools_enabled=tools_enabled)

    async def trending_topics(
        self,
        audience_ids: Sequence[str] | None = None,
        *,
        use_sources: bool = True,
    ) -> list[dict[str, str]]:
        """Trending topics, grounded in the aggregated sources when available."""
        sources: list[TrendingSource] | None = None
        if use_sources:
            sources = (await self.aggregate(audience_ids)).sources or None

        with request_logging_context("trending_topics"):
            return await generate_trending_topics(
                self.loop,
                audience_ids,
                sources,
                source_limit=self.settings.generation.prompt_source_limit,
            )

    async def suggestions(
        self,
        audience_ids: Sequence[str] | None = None,
        count: int = 10,
    ) -> list[str]:
        sources = (await self.aggregate(audience_ids)).sources
        with request_logging_context("suggest_topics"):
            return await suggest_topics(
                self.loop,
                audience_ids,
                sources,
                count=count,
                source_limit=self.settings.generation.prompt_source_limit,
            )

    async def newsletter(
        self,
        topics: Sequence[str],
        audience_ids: Sequence[str] | None = None,
        tone: str = "professional",
    ) -> dict[str, Any]:
        with request_logging_context("newsletter", topics=len(topics)):
            return await generate_newsletter(self.loop, topics, audience_ids, tone)
