"""Relevance scoring for trending sources.

Scores are a plain sum of five components. Everything here is pure: the
same source and reference time always produce the same score, and nothing
is cached between ranking passes.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, date, datetime
from email.utils import parsedate_to_datetime

from trend_digest.audiences import ALL_DOMAIN_KEYWORDS, keyword_pattern
from trend_digest.sources.models import SourceCategory, TrendingSource

PRACTICAL_KEYWORDS = (
    "tutorial",
    "guide",
    "implementation",
    "how to",
    "setup",
    "library",
    "tool",
    "framework",
    "api",
    "resource",
    "code",
    "github",
)

PRACTICAL_POINTS = 5
DOMAIN_POINTS = 8
SOURCE_TYPE_POINTS = 15

_SOURCE_TYPE_BONUS = frozenset({SourceCategory.ARXIV, SourceCategory.GITHUB})
_ENGAGEMENT_RE = re.compile(r"(\d[\d,]*)\s*(?:stars?|upvotes?)\b", re.IGNORECASE)
_SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

_PRACTICAL_RE = keyword_pattern(PRACTICAL_KEYWORDS)
_DOMAIN_RE = keyword_pattern(ALL_DOMAIN_KEYWORDS)


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    recency: int
    engagement: int
    practicality: int
    domain: int
    source_type: int

    @property
    def total(self) -> int:
        return (
            self.recency
            + self.engagement
            + self.practicality
            + self.domain
            + self.source_type
        )

    def to_dict(self) -> dict[str, int]:
        return {**asdict(self), "total": self.total}


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


def parse_source_date(value: str | None) -> date | None:
    """Parse the date formats seen across sources into a UTC calendar date.

    Accepts ISO ``YYYY-MM-DD`` and full ISO-8601 timestamps, RFC-822 dates
    (RSS) and ``MM/DD/YYYY``. Returns None for anything else.
    """
    if not value:
        return None
    text = value.strip()

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None

    if parsed is None:
        match = _SLASH_DATE_RE.match(text)
        if match:
            month, day, year = (int(part) for part in match.groups())
            try:
                return date(year, month, day)
            except ValueError:
                return None
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.date()


def recency_points(value: str | None, now: datetime) -> int:
    published = parse_source_date(value)
    if published is None:
        return 0
    today = now.astimezone(UTC).date() if now.tzinfo else now.date()
    days = max(0, (today - published).days)
    if days == 0:
        return 30
    if days == 1:
        return 20
    if days <= 7:
        return 10
    return 0


def engagement_points(summary: str | None) -> int:
    """Points for the first star/upvote count found in the summary."""
    match = _ENGAGEMENT_RE.search(summary or "")
    if not match:
        return 0
    count = int(match.group(1).replace(",", ""))
    if count > 1000:
        return 25
    if count > 100:
        return 15
    if count > 0:
        return 5
    return 0


def _distinct_matches(pattern: re.Pattern[str] | None, text: str) -> int:
    if pattern is None:
        return 0
    return len({match.lower() for match in pattern.findall(text)})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def score_breakdown(source: TrendingSource, now: datetime | None = None) -> ScoreBreakdown:
    """Compute each scoring component for a source.

    Args:
        source: The source to score.
        now: Reference time for recency. Defaults to the current UTC time.

    Returns:
        The per-component breakdown; ``total`` is their sum.
    """
    now = now or datetime.now(tz=UTC)
    text = f"{source.title} {source.summary or ''}"
    return ScoreBreakdown(
        recency=recency_points(source.date, now),
        engagement=engagement_points(source.summary),
        practicality=PRACTICAL_POINTS * _distinct_matches(_PRACTICAL_RE, text),
        domain=DOMAIN_POINTS * _distinct_matches(_DOMAIN_RE, text),
        source_type=SOURCE_TYPE_POINTS if source.category in _SOURCE_TYPE_BONUS else 0,
    )


def score_source(source: TrendingSource, now: datetime | None = None) -> float:
    return float(score_breakdown(source, now).total)


def rank_sources(
    sources: Sequence[TrendingSource],
    now: datetime | None = None,
    limit: int | None = None,
) -> list[TrendingSource]:
    """Sort by descending score; ties keep their input order."""
    now = now or datetime.now(tz=UTC)
    ranked = sorted(sources, key=lambda source: score_source(source, now), reverse=True)
    return ranked if limit is None else ranked[:limit]


def format_sources_for_prompt(sources: Sequence[TrendingSource]) -> str:
    """Render sources as a numbered plain-text list for model prompts."""
    lines: list[str] = []
    for index, source in enumerate(sources, start=1):
        meta = " | ".join(
            part
            for part in (source.category.value, source.publication, source.date)
            if part
        )
        lines.append(f"{index}. {source.title} ({meta})")
        lines.append(f"   URL: {source.url}")
        if source.summary:
            lines.append(f"   {source.summary}")
    return "\n".join(lines)
