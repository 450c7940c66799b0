"""Unit tests for trend_digest.scoring - relevance scoring and ranking."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime

import pytest

from trend_digest.scoring import (
    ScoreBreakdown,
    engagement_points,
    format_sources_for_prompt,
    parse_source_date,
    rank_sources,
    recency_points,
    score_breakdown,
    score_source,
)
from trend_digest.sources.models import SourceCategory, TrendingSource

NOW = datetime(2024, 10, 15, 12, 0, tzinfo=UTC)

MakeSource = Callable[..., TrendingSource]


class TestParseSourceDate:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2024-10-15", date(2024, 10, 15)),
            ("2024-10-15T23:30:00-02:00", date(2024, 10, 16)),
            ("2024-10-15T08:00:00Z", date(2024, 10, 15)),
            ("Tue, 15 Oct 2024 08:00:00 GMT", date(2024, 10, 15)),
            ("10/15/2024", date(2024, 10, 15)),
            ("13/45/2024", None),
            ("last week", None),
            (None, None),
        ],
    )
    def test_formats(self, value: str | None, expected: date | None) -> None:
        assert parse_source_date(value) == expected


class TestRecency:
    @pytest.mark.parametrize(
        ("value", "points"),
        [
            ("2024-10-15", 30),
            ("2024-10-14", 20),
            ("2024-10-08", 10),
            ("2024-10-07", 0),
            ("2024-10-20", 30),
            (None, 0),
            ("garbage", 0),
        ],
    )
    def test_buckets(self, value: str | None, points: int) -> None:
        assert recency_points(value, NOW) == points


class TestEngagement:
    @pytest.mark.parametrize(
        ("summary", "points"),
        [
            ("1200 stars - Demand forecasting", 25),
            ("1,500 upvotes", 25),
            ("1000 stars", 15),
            ("340 upvotes", 15),
            ("1 star", 5),
            ("0 stars", 0),
            ("no numbers here", 0),
            (None, 0),
        ],
    )
    def test_thresholds(self, summary: str | None, points: int) -> None:
        assert engagement_points(summary) == points


class TestScoreBreakdown:
    def test_all_components(self, make_source: MakeSource) -> None:
        source = make_source(
            title="Tutorial: GitHub library for skeletal trauma",
            summary="1200 stars - implementation guide",
            category=SourceCategory.GITHUB,
            date="2024-10-15",
        )
        breakdown = score_breakdown(source, NOW)

        assert breakdown == ScoreBreakdown(
            recency=30,
            engagement=25,
            # tutorial, github, library, implementation, guide
            practicality=25,
            # skeletal, trauma
            domain=16,
            source_type=15,
        )
        assert breakdown.total == 111
        assert breakdown.to_dict()["total"] == 111

    def test_repeated_keyword_counts_once(self, make_source: MakeSource) -> None:
        source = make_source(title="Tool tool TOOL", summary="tool")
        assert score_breakdown(source, NOW).practicality == 5

    def test_arxiv_gets_source_type_bonus(self, make_source: MakeSource) -> None:
        source = make_source(category=SourceCategory.ARXIV)
        assert score_breakdown(source, NOW).source_type == 15

    def test_pure(self, make_source: MakeSource) -> None:
        source = make_source(title="LLM tool", summary="500 upvotes", date="2024-10-14")
        assert score_source(source, NOW) == score_source(source, NOW)


class TestRankSources:
    def test_today_outranks_thirty_days_old(self, make_source: MakeSource) -> None:
        old = make_source(id="old", title="Same title", date="2024-09-15")
        new = make_source(id="new", title="Same title", date="2024-10-15")

        assert [s.id for s in rank_sources([old, new], NOW)] == ["new", "old"]

    def test_ties_keep_input_order(self, make_source: MakeSource) -> None:
        sources = [make_source(id=str(index), title="Plain") for index in range(5)]
        assert [s.id for s in rank_sources(sources, NOW)] == ["0", "1", "2", "3", "4"]

    def test_limit(self, make_source: MakeSource) -> None:
        sources = [make_source(id=str(index)) for index in range(5)]
        assert len(rank_sources(sources, NOW, limit=2)) == 2

    def test_input_not_mutated(self, make_source: MakeSource) -> None:
        sources = [make_source(id="a"), make_source(id="b", date="2024-10-15")]
        rank_sources(sources, NOW)
        assert [s.id for s in sources] == ["a", "b"]


def test_format_sources_for_prompt(make_source: MakeSource) -> None:
    text = format_sources_for_prompt(
        [
            make_source(
                title="LiDAR toolkit",
                url="https://x",
                publication="GitHub",
                date="2024-10-15",
                summary="1200 stars",
                category=SourceCategory.GITHUB,
            )
        ]
    )
    assert text.splitlines() == [
        "1. LiDAR toolkit (github | GitHub | 2024-10-15)",
        "   URL: https://x",
        "   1200 stars",
    ]
