"""Prompt builders for the three generation tasks built on the agentic loop.

Each generator formats a prompt, runs it through ``AgenticLoop.generate``
and enforces the output contract on the result. Contract violations
propagate as ``MalformedOutputError`` so callers can retry.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from trend_digest.agent import PromptPayload
from trend_digest.audiences import describe_audience
from trend_digest.exceptions import MalformedOutputError
from trend_digest.output import parse_json_output, sanitize_artifact
from trend_digest.scoring import format_sources_for_prompt, rank_sources

if TYPE_CHECKING:
    from trend_digest.agent import AgenticLoop
    from trend_digest.sources.models import TrendingSource

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

RECENCY_WINDOW_DAYS = 60

SEARCH_GUIDANCE = (
    "\n\nYou may call the web_search tool to confirm that a development is "
    "current before writing about it. Search sparingly, at most one or two "
    "focused queries, and prefer the provided material when it is enough."
)

_TOPICS_SYSTEM = (
    "You are a technical implementation consultant who turns new AI "
    "developments into practical how-to guidance for working professionals. "
    "Respond with a valid JSON array only."
)

_SOURCES_SYSTEM = (
    "You are an AI news analyst who reads trending items from developer and "
    "research communities and explains which ones matter to a given audience. "
    "Respond with a valid JSON array only."
)

_SUGGEST_SYSTEM = (
    "You are an editor planning the next issue of a newsletter about applied AI. "
    "Respond with a valid JSON array of strings only."
)

_NEWSLETTER_SYSTEM = (
    "You are a newsletter writer who explains applied AI tools to specialist "
    "readers. Respond with a single valid JSON object only."
)


def date_range_description(now: datetime | None = None, days: int = RECENCY_WINDOW_DAYS) -> str:
    """Human-readable recency window, e.g. ``August 19, 2026 to October 18, 2026``."""
    now = now or datetime.now(tz=UTC)
    start = now - timedelta(days=days)
    return f"{start:%B %d, %Y} to {now:%B %d, %Y}"


# ---------------------------------------------------------------------------
# Trending topics
# ---------------------------------------------------------------------------


def build_trending_prompt(
    audience_ids: Sequence[str] | None,
    sources: Sequence[TrendingSource] | None = None,
    source_limit: int = 25,
    now: datetime | None = None,
) -> PromptPayload:
    """Build the trending-topics prompt, grounded in sources when given."""
    audience = describe_audience(audience_ids)
    window = date_range_description(now)
    shape = (
        'Each element must be an object: {"title": "...", "summary": "..."}.'
    )

    if sources:
        ranked = rank_sources(sources, now=now, limit=source_limit)
        user = (
            "Identify the 2-3 most compelling developments in the trending items "
            "below and explain why each matters to this audience.\n\n"
            f"Audience:\n{audience}\n\n"
            f"Trending items (most relevant first):\n{format_sources_for_prompt(ranked)}\n\n"
            f"Only consider developments from {window}. {shape}"
        )
        return PromptPayload(user=user + SEARCH_GUIDANCE, system=_SOURCES_SYSTEM)

    user = (
        "Identify 2-3 actionable AI developments that readers can implement now. "
        'Phrase every title as a how-to guide ("How to Build...", "How to Automate...") '
        "and name the specific tools, the key implementation steps and the "
        "expected outcome in each summary.\n\n"
        f"Audience:\n{audience}\n\n"
        f"Only consider tools, models or APIs released or updated between {window}. "
        f"{shape}"
    )
    return PromptPayload(user=user + SEARCH_GUIDANCE, system=_TOPICS_SYSTEM)


def _topic_list(value: Any, raw_text: str) -> list[dict[str, str]]:
    if not isinstance(value, list):
        raise MalformedOutputError("Expected a JSON array of topics", raw_text=raw_text)

    topics: list[dict[str, str]] = []
    for item in value:
        if not isinstance(item, dict) or not isinstance(item.get("title"), str):
            raise MalformedOutputError("Topic entries need a string title", raw_text=raw_text)
        topics.append({"title": item["title"], "summary": str(item.get("summary", ""))})
    return topics


async def generate_trending_topics(
    loop: AgenticLoop,
    audience_ids: Sequence[str] | None,
    sources: Sequence[TrendingSource] | None = None,
    source_limit: int = 25,
) -> list[dict[str, str]]:
    """Ask the model for trending topics as ``{title, summary}`` objects.

    Args:
        loop: The generation loop.
        audience_ids: Audience ids or parent categories.
        sources: Aggregated sources to ground the answer; without them the
            model relies on web search.
        source_limit: How many top-ranked sources to include.

    Returns:
        Parsed topics.

    Raises:
        MalformedOutputError: If the response is not a JSON array of topics.
    """
    prompt = build_trending_prompt(audience_ids, sources, source_limit)
    result = await loop.generate(prompt)
    topics = _topic_list(parse_json_output(result.text), result.text)
    logger.info("trending_topics_generated", count=len(topics), grounded=bool(sources))
    return topics


# ---------------------------------------------------------------------------
# Topic suggestions
# ---------------------------------------------------------------------------


async def suggest_topics(
    loop: AgenticLoop,
    audience_ids: Sequence[str] | None,
    sources: Sequence[TrendingSource],
    count: int = 10,
    source_limit: int = 25,
) -> list[str]:
    """Suggest newsletter topic titles inspired by the trending sources."""
    ranked = rank_sources(sources, limit=source_limit)
    user = (
        f"Suggest {count} newsletter topics for the audience below. Each topic is "
        "a short, specific, practical title a reader could act on this week.\n\n"
        f"Audience:\n{describe_audience(audience_ids)}\n\n"
        f"Inspiration from trending items:\n{format_sources_for_prompt(ranked)}\n\n"
        f"Only consider developments from {date_range_description()}. "
        'Return a JSON array of strings, e.g. ["How to ...", "..."].'
    )
    result = await loop.generate(PromptPayload(user=user, system=_SUGGEST_SYSTEM), tools_enabled=False)
    value = parse_json_output(result.text)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedOutputError("Expected a JSON array of strings", raw_text=result.text)
    return [item.strip() for item in value if item.strip()][:count]


# ---------------------------------------------------------------------------
# Newsletter
# ---------------------------------------------------------------------------


def build_newsletter_prompt(
    topics: Sequence[str],
    audience_ids: Sequence[str] | None,
    tone: str = "professional",
) -> PromptPayload:
    topic_lines = "\n".join(f"- {topic}" for topic in topics)
    user = (
        f"Write a newsletter issue covering these topics:\n{topic_lines}\n\n"
        f"Audience:\n{describe_audience(audience_ids)}\n\n"
        f"Tone: {tone}. Every section must name concrete tools and explain how "
        "to start using them. Do not use emoji.\n\n"
        f"Only reference developments from {date_range_description()}.\n\n"
        "Return one JSON object with this structure:\n"
        '{"subject": "...", "introduction": "...", '
        '"sections": [{"title": "...", "content": "..."}], "conclusion": "..."}'
    )
    return PromptPayload(user=user + SEARCH_GUIDANCE, system=_NEWSLETTER_SYSTEM)


async def generate_newsletter(
    loop: AgenticLoop,
    topics: Sequence[str],
    audience_ids: Sequence[str] | None,
    tone: str = "professional",
) -> dict[str, Any]:
    """Generate a newsletter and sanitize its subject and section titles.

    Raises:
        MalformedOutputError: If the response is not a newsletter object.
    """
    if not topics:
        raise ValueError("At least one topic is required")

    result = await loop.generate(build_newsletter_prompt(topics, audience_ids, tone))
    value = parse_json_output(result.text)
    if (
        not isinstance(value, dict)
        or not isinstance(value.get("subject"), str)
        or not isinstance(value.get("sections"), list)
    ):
        raise MalformedOutputError(
            "Expected a newsletter object with subject and sections",
            raw_text=result.text,
        )

    newsletter = sanitize_artifact(value)
    logger.info(
        "newsletter_generated",
        sections=len(newsletter["sections"]),
        searches=len(result.search_queries),
        hit_ceiling=result.hit_ceiling,
    )
    return newsletter
