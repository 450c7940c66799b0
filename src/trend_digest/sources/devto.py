"""Top weekly AI-tagged articles from the Dev.to API."""

from __future__ import annotations

import httpx

from trend_digest.sources.base import SourceAdapter
from trend_digest.sources.models import (
    SourceCategory,
    TrendingSource,
    iso_date_from_string,
)

_ENDPOINT = "https://dev.to/api/articles"


class DevToAdapter(SourceAdapter):
    category = SourceCategory.DEVTO
    name = "devto"

    async def _fetch(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        articles = await self._get_json(
            client,
            _ENDPOINT,
            params={"tag": self.settings.devto_tag, "top": 7},
        )
        self._expect(isinstance(articles, list), "articles payload is not a list")

        posts: list[TrendingSource] = []
        for article in articles[: self.settings.devto_max_items]:
            if not isinstance(article, dict) or not article.get("title"):
                continue
            posts.append(
                TrendingSource(
                    id=f"devto-{article.get('id')}",
                    title=str(article["title"]),
                    url=str(article.get("url", "")),
                    category=self.category,
                    author=(article.get("user") or {}).get("name"),
                    publication="Dev.to",
                    date=iso_date_from_string(article.get("published_at")),
                    summary=article.get("description") or "",
                )
            )
        return posts
