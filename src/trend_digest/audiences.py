"""Reader audiences: the four specializations, their parents and keyword sets.

Audience ids are either a specialization (``forensic-anthropology``) or a
parent category (``academic``) that expands to its specializations. Keyword
sets are compiled once at import time into word-boundary patterns.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from trend_digest.sources.models import TrendingSource

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Audience:
    """One reader specialization."""

    id: str
    name: str
    parent: str
    description: str
    keywords: tuple[str, ...]


FORENSIC_KEYWORDS = (
    "skeletal",
    "bone",
    "remains",
    "forensic",
    "osteology",
    "trauma",
    "taphonomy",
    "morphometric",
    "ancestry",
    "bioarchaeology",
    "pathology",
    "identification",
    "decomposition",
    "craniofacial",
    "odontology",
)

ARCHAEOLOGY_KEYWORDS = (
    "lidar",
    "photogrammetry",
    "archaeological",
    "artifact",
    "excavation",
    "geospatial",
    "gis",
    "remote sensing",
    "3d reconstruction",
    "site analysis",
    "stratigraphy",
    "cultural heritage",
    "heritage preservation",
    "landscape analysis",
    "ground-penetrating radar",
)

AUTOMATION_KEYWORDS = (
    "workflow",
    "automation",
    "orchestration",
    "rpa",
    "bpa",
    "process optimization",
    "document processing",
    "task management",
    "productivity",
    "efficiency",
    "integration",
    "api workflow",
    "no-code",
    "low-code",
    "zapier",
)

ANALYTICS_KEYWORDS = (
    "analytics",
    "logistics",
    "supply chain",
    "forecasting",
    "optimization",
    "inventory",
    "warehouse",
    "route planning",
    "demand planning",
    "data mining",
    "predictive",
    "dashboard",
    "visualization",
    "kpi",
    "reporting",
)

AUDIENCES: dict[str, Audience] = {
    audience.id: audience
    for audience in (
        Audience(
            id="forensic-anthropology",
            name="Forensic Anthropology",
            parent="academic",
            description=(
                "Forensic anthropologists and osteologists applying machine learning "
                "to skeletal analysis, trauma assessment and human identification."
            ),
            keywords=FORENSIC_KEYWORDS,
        ),
        Audience(
            id="computational-archaeology",
            name="Computational Archaeology",
            parent="academic",
            description=(
                "Archaeologists using LiDAR, photogrammetry, GIS and 3D reconstruction "
                "to survey, document and interpret sites."
            ),
            keywords=ARCHAEOLOGY_KEYWORDS,
        ),
        Audience(
            id="business-administration",
            name="Business Administration",
            parent="business",
            description=(
                "Operations and administration professionals automating workflows, "
                "document processing and everyday business tasks."
            ),
            keywords=AUTOMATION_KEYWORDS,
        ),
        Audience(
            id="business-intelligence",
            name="Business Intelligence",
            parent="business",
            description=(
                "Analysts working on forecasting, supply chain, logistics and "
                "dashboards who turn data into operational decisions."
            ),
            keywords=ANALYTICS_KEYWORDS,
        ),
    )
}

PARENT_CATEGORIES: dict[str, tuple[str, ...]] = {
    "academic": ("forensic-anthropology", "computational-archaeology"),
    "business": ("business-administration", "business-intelligence"),
}

ALL_DOMAIN_KEYWORDS: tuple[str, ...] = tuple(
    dict.fromkeys(kw for audience in AUDIENCES.values() for kw in audience.keywords)
)


def keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str] | None:
    """Compile keywords into one case-insensitive, word-boundary alternation."""
    unique = sorted(set(keywords), key=len, reverse=True)
    if not unique:
        return None
    alternation = "|".join(re.escape(kw) for kw in unique)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


def resolve_audience_ids(audience_ids: Iterable[str] | None) -> list[str]:
    """Expand parents to specializations, drop unknown ids, dedupe in order."""
    resolved: list[str] = []
    for raw in audience_ids or ():
        audience_id = raw.strip().lower()
        if audience_id in PARENT_CATEGORIES:
            candidates: Sequence[str] = PARENT_CATEGORIES[audience_id]
        elif audience_id in AUDIENCES:
            candidates = (audience_id,)
        else:
            logger.warning("unknown_audience_id", audience_id=raw)
            continue
        for candidate in candidates:
            if candidate not in resolved:
                resolved.append(candidate)
    return resolved


def keywords_for(audience_ids: Iterable[str] | None) -> list[str]:
    """Union of the keyword sets of the resolved audiences, in audience order."""
    keywords: dict[str, None] = {}
    for audience_id in resolve_audience_ids(audience_ids):
        keywords.update(dict.fromkeys(AUDIENCES[audience_id].keywords))
    return list(keywords)


def filter_sources_by_audience(
    sources: Sequence[TrendingSource],
    audience_ids: Iterable[str] | None,
) -> list[TrendingSource]:
    """Keep sources whose title or summary mentions an audience keyword.

    Matching is case-insensitive on word boundaries, so ``gis`` does not
    match ``logistics``. Relative order is preserved. When no known
    audience remains after resolution the input is returned unfiltered.
    The input sequence is never modified.
    """
    pattern = keyword_pattern(keywords_for(audience_ids))
    if pattern is None:
        return list(sources)

    return [
        source
        for source in sources
        if pattern.search(f"{source.title} {source.summary or ''}")
    ]


def describe_audience(audience_ids: Iterable[str] | None) -> str:
    """Human-readable audience description for prompts."""
    resolved = resolve_audience_ids(audience_ids)
    if not resolved:
        return "Professionals across academic research and business operations."
    return "\n".join(
        f"- {AUDIENCES[aid].name}: {AUDIENCES[aid].description}" for aid in resolved
    )
