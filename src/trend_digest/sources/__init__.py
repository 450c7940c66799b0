"""Trending-source adapters and the aggregator that fans out over them."""

from __future__ import annotations

from typing import TYPE_CHECKING

from trend_digest.sources.arxiv import ArxivAdapter
from trend_digest.sources.base import SourceAdapter
from trend_digest.sources.devto import DevToAdapter
from trend_digest.sources.github import GitHubAdapter
from trend_digest.sources.hackernews import HackerNewsAdapter
from trend_digest.sources.models import SourceCategory, TrendingSource
from trend_digest.sources.producthunt import ProductHuntAdapter
from trend_digest.sources.reddit import RedditAdapter

if TYPE_CHECKING:
    from trend_digest.config import SourceSettings

__all__ = [
    "ArxivAdapter",
    "DevToAdapter",
    "GitHubAdapter",
    "HackerNewsAdapter",
    "ProductHuntAdapter",
    "RedditAdapter",
    "SourceAdapter",
    "SourceCategory",
    "TrendingSource",
    "default_adapters",
]


def default_adapters(settings: SourceSettings | None = None) -> list[SourceAdapter]:
    """Build the six adapters in their fixed concatenation order."""
    return [
        HackerNewsAdapter(settings),
        ArxivAdapter(settings),
        GitHubAdapter(settings),
        RedditAdapter(settings),
        DevToAdapter(settings),
        ProductHuntAdapter(settings),
    ]
