"""HackerNews top stories, filtered down to AI-related titles."""

from __future__ import annotations

import asyncio
import re
from typing import Any

import httpx
import structlog

from trend_digest.sources.base import SourceAdapter
from trend_digest.sources.models import (
    SourceCategory,
    TrendingSource,
    iso_date_from_timestamp,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_BASE_URL = "https://hacker-news.firebaseio.com/v0"

AI_TITLE_RE = re.compile(
    r"\b(ai|ml|machine learning|neural|deep learning|llm|language model|gpt|claude|"
    r"automation|robotics|computer vision|nlp|transformer|diffusion|agent|api|tool)\b",
    re.IGNORECASE,
)


class HackerNewsAdapter(SourceAdapter):
    """Top HackerNews stories whose titles match the AI keyword filter."""

    category = SourceCategory.HACKERNEWS
    name = "hackernews"

    async def _fetch(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        story_ids = await self._get_json(client, f"{_BASE_URL}/topstories.json")
        self._expect(isinstance(story_ids, list), "topstories is not a list")

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_requests)

        async def _one(story_id: Any) -> TrendingSource | None:
            async with semaphore:
                return await self._fetch_story(client, story_id)

        stories = await asyncio.gather(
            *(_one(sid) for sid in story_ids[: self.settings.hackernews_scan_limit])
        )

        matched = [
            story
            for story in stories
            if story is not None and AI_TITLE_RE.search(story.title)
        ]
        return matched[: self.settings.hackernews_max_items]

    async def _fetch_story(
        self, client: httpx.AsyncClient, story_id: Any
    ) -> TrendingSource | None:
        try:
            item = await self._get_json(client, f"{_BASE_URL}/item/{story_id}.json")
            if not isinstance(item, dict) or not item.get("title") or not item.get("url"):
                return None
            return TrendingSource(
                id=f"hn-{story_id}",
                title=str(item["title"]),
                url=str(item["url"]),
                category=self.category,
                author=item.get("by"),
                publication="HackerNews",
                date=iso_date_from_timestamp(item.get("time")),
                summary=(
                    f"{int(item.get('score', 0) or 0)} upvotes, "
                    f"{int(item.get('descendants', 0) or 0)} comments"
                ),
            )
        except (httpx.HTTPError, ValueError, TypeError) as exc:
            logger.debug("hackernews_story_failed", story_id=story_id, error=str(exc))
            return None
