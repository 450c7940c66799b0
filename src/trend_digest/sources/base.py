"""Base class for trending-source adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

import httpx
import structlog

from trend_digest.config import SourceSettings
from trend_digest.exceptions import SourceFetchError

if TYPE_CHECKING:
    from trend_digest.sources.models import SourceCategory, TrendingSource

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class SourceAdapter(ABC):
    """Fetch one external source and normalize it into ``TrendingSource`` records.

    Subclasses implement ``_fetch``; callers use ``fetch``, which never
    raises. Any failure (network, HTTP status, malformed payload) is logged
    and reported as an empty contribution.
    """

    category: ClassVar[SourceCategory]
    name: ClassVar[str]

    def __init__(self, settings: SourceSettings | None = None) -> None:
        self.settings = settings or SourceSettings()

    async def fetch(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        """Return this source's items, or an empty list on any failure."""
        try:
            items = await self._fetch(client)
        except Exception as exc:
            logger.warning(
                "source_fetch_failed",
                source=self.name,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return []

        logger.info("source_fetched", source=self.name, count=len(items))
        return items

    @abstractmethod
    async def _fetch(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        """Fetch and parse the source. May raise; ``fetch`` absorbs errors."""

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        **kwargs: Any,
    ) -> Any:
        response = await client.get(url, timeout=self.settings.timeout, **kwargs)
        response.raise_for_status()
        return response.json()

    async def _get_text(
        self,
        client: httpx.AsyncClient,
        url: str,
        **kwargs: Any,
    ) -> str:
        response = await client.get(url, timeout=self.settings.timeout, **kwargs)
        response.raise_for_status()
        return response.text

    def _expect(self, condition: bool, message: str) -> None:
        if not condition:
            raise SourceFetchError(f"{self.name}: {message}")
