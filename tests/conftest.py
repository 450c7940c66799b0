"""Shared pytest fixtures for the trend-digest test suite."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest

from trend_digest.sources.models import SourceCategory, TrendingSource

# Make litellm load its bundled model cost map instead of fetching it over
# the network on first import (which respx-mocked tests would intercept).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock for cache TTL tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_source() -> Callable[..., TrendingSource]:
    """Factory for ``TrendingSource`` records with overridable fields."""

    def _make(
        id: str = "hn-1",
        title: str = "Untitled",
        url: str = "https://example.com/item",
        category: SourceCategory = SourceCategory.HACKERNEWS,
        **fields: Any,
    ) -> TrendingSource:
        return TrendingSource(id=id, title=title, url=url, category=category, **fields)

    return _make


# ---------------------------------------------------------------------------
# Mock LLM responses (litellm ModelResponse shape)
# ---------------------------------------------------------------------------


def text_response(text: str | None) -> SimpleNamespace:
    """A final model response carrying only text."""
    message = SimpleNamespace(content=text, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")])


def tool_response(
    *queries: str,
    text: str | None = None,
    name: str = "web_search",
    raw_arguments: str | None = None,
) -> SimpleNamespace:
    """A response requesting one tool call per query."""
    calls = [
        SimpleNamespace(
            id=f"call_{index}",
            type="function",
            function=SimpleNamespace(
                name=name,
                arguments=(
                    raw_arguments if raw_arguments is not None else json.dumps({"query": query})
                ),
            ),
        )
        for index, query in enumerate(queries)
    ]
    message = SimpleNamespace(content=text, tool_calls=calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="tool_calls")])


@pytest.fixture()
def settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip provider keys so tests never depend on the developer's environment."""
    for var in ("TAVILY_API_KEY", "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
