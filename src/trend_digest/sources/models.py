"""Normalized record shape shared by every trending-source adapter."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class SourceCategory(StrEnum):
    """Which adapter produced a record."""

    HACKERNEWS = "hackernews"
    ARXIV = "arxiv"
    GITHUB = "github"
    REDDIT = "reddit"
    DEVTO = "dev"
    PRODUCTHUNT = "producthunt"


@dataclass(frozen=True, slots=True)
class TrendingSource:
    """One discovered item of interest, normalized across sources."""

    id: str
    title: str
    url: str
    category: SourceCategory
    author: str | None = None
    publication: str | None = None
    date: str | None = None
    summary: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["category"] = self.category.value
        return payload


def iso_date_from_timestamp(timestamp: float | int | None) -> str | None:
    """Convert a unix timestamp to an ISO ``YYYY-MM-DD`` date (UTC)."""
    if not timestamp:
        return None
    return datetime.fromtimestamp(float(timestamp), tz=UTC).date().isoformat()


def iso_date_from_string(value: str | None) -> str | None:
    """Reduce an ISO-8601 timestamp string to its ``YYYY-MM-DD`` date part."""
    if not value:
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.date().isoformat()
