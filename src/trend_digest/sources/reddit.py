"""Top monthly posts from subreddits covering the four audience domains."""

from __future__ import annotations

import asyncio

import httpx
import structlog

from trend_digest.sources.base import SourceAdapter
from trend_digest.sources.models import (
    SourceCategory,
    TrendingSource,
    iso_date_from_timestamp,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_BASE_URL = "https://www.reddit.com"


class RedditAdapter(SourceAdapter):
    """Reddit top posts. Reddit rejects requests without a descriptive User-Agent."""

    category = SourceCategory.REDDIT
    name = "reddit"

    async def _fetch(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_requests)

        async def _one(subreddit: str) -> list[TrendingSource]:
            async with semaphore:
                return await self._fetch_subreddit(client, subreddit)

        batches = await asyncio.gather(*(_one(sub) for sub in self.settings.subreddits))
        return [post for batch in batches for post in batch]

    async def _fetch_subreddit(
        self, client: httpx.AsyncClient, subreddit: str
    ) -> list[TrendingSource]:
        try:
            payload = await self._get_json(
                client,
                f"{_BASE_URL}/r/{subreddit}/top.json",
                params={"t": "month", "limit": 25},
                headers={"User-Agent": self.settings.user_agent},
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("reddit_subreddit_failed", subreddit=subreddit, error=str(exc))
            return []

        data = payload.get("data") if isinstance(payload, dict) else None
        children = data.get("children") if isinstance(data, dict) else None
        if not isinstance(children, list):
            return []

        return self.parse_posts(children)[: self.settings.reddit_posts_per_subreddit]

    def parse_posts(self, children: list[object]) -> list[TrendingSource]:
        posts: list[TrendingSource] = []
        for child in children:
            post = child.get("data") if isinstance(child, dict) else None
            if not isinstance(post, dict) or not post.get("title") or not post.get("url"):
                continue
            url = str(post["url"])
            if not url.startswith("http"):
                url = f"{_BASE_URL}{post.get('permalink', '')}"
            try:
                posts.append(
                    TrendingSource(
                        id=f"reddit-{post.get('id')}",
                        title=str(post["title"]),
                        url=url,
                        category=self.category,
                        author=post.get("author") or "Reddit User",
                        publication=f"r/{post.get('subreddit', '')}",
                        date=iso_date_from_timestamp(post.get("created_utc")),
                        summary=f"{int(post.get('ups', 0) or 0)} upvotes",
                    )
                )
            except (ValueError, TypeError) as exc:
                logger.debug("reddit_post_skipped", post_id=post.get("id"), error=str(exc))
        return posts
