"""Recently active, highly starred AI/ML repositories from GitHub search."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import httpx

from trend_digest.sources.base import SourceAdapter
from trend_digest.sources.models import (
    SourceCategory,
    TrendingSource,
    iso_date_from_string,
)

_ENDPOINT = "https://api.github.com/search/repositories"


class GitHubAdapter(SourceAdapter):
    """AI/ML Python repositories created or pushed within the lookback window."""

    category = SourceCategory.GITHUB
    name = "github"

    def build_query(self, now: datetime | None = None) -> str:
        now = now or datetime.now(tz=UTC)
        since = (now - timedelta(days=self.settings.lookback_days)).date().isoformat()
        return (
            'ai OR ml OR "machine learning" OR automation OR llm OR neural '
            f"language:python stars:>{self.settings.github_min_stars} pushed:>{since}"
        )

    async def _fetch(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.settings.github_token:
            headers["Authorization"] = f"Bearer {self.settings.github_token}"

        response = await client.get(
            _ENDPOINT,
            headers=headers,
            params={
                "q": self.build_query(),
                "sort": "stars",
                "order": "desc",
                "per_page": self.settings.github_max_items,
            },
            timeout=self.settings.timeout,
        )
        response.raise_for_status()
        remaining = response.headers.get("x-ratelimit-remaining")
        self._expect(remaining is None or int(remaining) > 0, "rate limit exhausted")

        payload = response.json()
        items = payload.get("items") if isinstance(payload, dict) else None
        self._expect(isinstance(items, list), "search response has no items list")

        repos: list[TrendingSource] = []
        for item in items[: self.settings.github_max_items]:
            if not isinstance(item, dict) or not item.get("html_url"):
                continue
            description = str(item.get("description") or "Open-source AI/ML tool")
            stars = int(item.get("stargazers_count", 0) or 0)
            repos.append(
                TrendingSource(
                    id=f"github-{item.get('id')}",
                    title=f"{item.get('name', '')} - {description}",
                    url=str(item["html_url"]),
                    category=self.category,
                    author=(item.get("owner") or {}).get("login"),
                    publication="GitHub",
                    date=iso_date_from_string(
                        item.get("pushed_at") or item.get("created_at")
                    ),
                    summary=f"{stars} stars - {description}",
                )
            )
        return repos
