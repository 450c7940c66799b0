"""Web search gateway (Tavily over HTTP) with deterministic fallbacks.

``SearchGateway.search`` never raises. Every provider outcome is mapped by
one decision table to either formatted results or a fallback text that
names the query, so the generation loop can always hand something back
to the model.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Any

import httpx
import structlog

from trend_digest.cache import QueryCache, normalize_query
from trend_digest.config import SearchSettings
from trend_digest.exceptions import SearchProviderError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class SearchFailure(StrEnum):
    """Classified outcome of a failed search."""

    NO_RESULTS = "no_results"
    RATE_LIMITED = "rate_limited"
    API_ERROR = "api_error"


_NO_RESULTS_PREFIX = "No current web search results available for"


def fallback_text(failure: SearchFailure, query: str) -> str:
    """Deterministic, non-empty text returned in place of search results."""
    if failure is SearchFailure.RATE_LIMITED:
        return (
            f'[RATE_LIMITED] Search temporarily rate limited for "{query}". '
            "Unable to validate topic."
        )
    if failure is SearchFailure.API_ERROR:
        return (
            f'[API_ERROR] Search temporarily unavailable for "{query}". '
            "Unable to validate topic."
        )
    return (
        f'{_NO_RESULTS_PREFIX} "{query}". Please use your training knowledge '
        "to provide accurate, helpful information about this topic."
    )


def is_fallback(text: str) -> bool:
    """Whether ``text`` is a fallback rather than real search results."""
    return text.startswith(("[RATE_LIMITED]", "[API_ERROR]", _NO_RESULTS_PREFIX))


def classify_status(status_code: int) -> SearchFailure | None:
    """Map an HTTP status to a failure class; None means success."""
    if 200 <= status_code < 300:
        return None
    if status_code == 429:
        return SearchFailure.RATE_LIMITED
    return SearchFailure.API_ERROR


def format_search_results(payload: Any) -> str | None:
    """Render a Tavily response body, or None when it holds no usable results."""
    if not isinstance(payload, dict):
        return None
    results = payload.get("results")
    if not isinstance(results, list):
        return None

    lines: list[str] = []
    for result in results:
        if not isinstance(result, dict):
            continue
        title = str(result.get("title") or "").strip()
        url = str(result.get("url") or "").strip()
        if not title or not url:
            continue
        description = " ".join(str(result.get("content") or "").split())
        lines.append(f"{len(lines) // 2 + 1}. **{title}** ({url})")
        lines.append(f"   {description[:300]}")

    if not lines:
        return None

    header = ["## Web Search Results", ""]
    answer = payload.get("answer")
    if isinstance(answer, str) and answer.strip():
        header += [f"**Summary:** {answer.strip()}", ""]
    return "\n".join([*header, "### Web Results:", *lines])


class SearchGateway:
    """Query cache in front of the search provider.

    Only successful results are cached. Identical concurrent queries
    (after normalization) share a single provider call.
    """

    def __init__(
        self,
        cache: QueryCache,
        settings: SearchSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cache = cache
        self.settings = settings or SearchSettings()
        self._client = client
        self._in_flight: dict[str, asyncio.Task[str]] = {}

    async def search(self, query: str) -> str:
        """Return formatted results or a fallback text. Never raises."""
        cached = self.cache.get(query)
        if cached is not None:
            return cached

        key = normalize_query(query)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._search_and_cache(query))
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        return await asyncio.shield(task)

    async def _search_and_cache(self, query: str) -> str:
        try:
            text = await self._call_provider(query)
        except SearchProviderError as exc:
            logger.warning(
                "search_fallback",
                query=query[:80],
                failure=exc.failure.value,
                error=str(exc),
            )
            return fallback_text(exc.failure, query)

        self.cache.set(query, text)
        logger.info("search_success", query=query[:80], chars=len(text))
        return text

    async def _call_provider(self, query: str) -> str:
        api_key = self.settings.resolved_api_key()
        if not api_key:
            raise SearchProviderError(SearchFailure.API_ERROR, "search API key is not configured")

        payload = {
            "api_key": api_key,
            "query": query,
            "max_results": self.settings.max_results,
            "search_depth": self.settings.search_depth,
            "include_answer": True,
        }
        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
        except httpx.TimeoutException as exc:
            raise SearchProviderError(SearchFailure.NO_RESULTS, f"timeout: {exc}") from exc
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            raise SearchProviderError(SearchFailure.NO_RESULTS, f"transport: {exc}") from exc

        failure = classify_status(response.status_code)
        if failure is not None:
            raise SearchProviderError(failure, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise SearchProviderError(SearchFailure.NO_RESULTS, "invalid JSON body") from exc

        text = format_search_results(body)
        if text is None:
            raise SearchProviderError(SearchFailure.NO_RESULTS, "no usable results")
        return text

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
        return await client.post(
            self.settings.endpoint,
            json=payload,
            timeout=self.settings.timeout,
        )
