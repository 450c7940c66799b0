"""Unit tests for trend_digest.cli - argument parsing, version, commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
from typer.testing import CliRunner

from trend_digest import __version__
from trend_digest.cli import app
from trend_digest.config import Settings
from trend_digest.exceptions import MalformedOutputError, ModelRoutingError
from trend_digest.search import SearchFailure, fallback_text
from trend_digest.sources.aggregator import AggregateResult
from trend_digest.sources.models import SourceCategory, TrendingSource

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner()


class FakePipeline:
    """Stands in for TrendingPipeline; records calls instead of doing I/O."""

    instances: list[FakePipeline] = []

    def __init__(self, settings: Settings, **_kwargs: Any) -> None:
        self.settings = settings
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.search_text = "## Web Search Results\n\n1. **Hit** (https://a.example)"
        self.newsletter_error: Exception | None = None
        FakePipeline.instances.append(self)

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        return None

    async def aggregate(self, *args: Any, **kwargs: Any) -> AggregateResult:
        self.calls.append(("aggregate", args, kwargs))
        return AggregateResult(
            sources=[
                TrendingSource(
                    id="hn-1",
                    title="Plain [bracketed] title",
                    url="https://a.example",
                    category=SourceCategory.HACKERNEWS,
                    date="2024-10-01",
                ),
                TrendingSource(
                    id="github-2",
                    title="repo - LiDAR pipeline",
                    url="https://github.com/x/repo",
                    category=SourceCategory.GITHUB,
                    summary="5,000 stars - LiDAR",
                ),
            ]
        )

    async def search(self, query: str) -> str:
        self.calls.append(("search", (query,), {}))
        return self.search_text

    async def trending_topics(self, *args: Any, **kwargs: Any) -> list[dict[str, str]]:
        self.calls.append(("trending_topics", args, kwargs))
        return [{"title": "How to Map [Sites]", "summary": "Use LiDAR."}]

    async def suggestions(self, *args: Any, **kwargs: Any) -> list[str]:
        self.calls.append(("suggestions", args, kwargs))
        return ["How to A", "How to B"]

    async def newsletter(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("newsletter", args, kwargs))
        if self.newsletter_error:
            raise self.newsletter_error
        return {"subject": "Weekly", "sections": [{"title": "One", "content": "Body"}]}


@pytest.fixture()
def fake_pipeline(monkeypatch: pytest.MonkeyPatch) -> type[FakePipeline]:
    FakePipeline.instances = []
    monkeypatch.setattr("trend_digest.cli.TrendingPipeline", FakePipeline)
    monkeypatch.setattr(
        "trend_digest.cli._load_settings", lambda *_args, **_kwargs: Settings()
    )
    return FakePipeline


# ---- Version and help -------------------------------------------------------


class TestVersionAndHelp:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_short_version_flag(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("sources", "search", "topics", "newsletter", "extract-json", "doctor"):
            assert command in result.output


# ---- extract-json -----------------------------------------------------------


class TestExtractJsonCommand:
    def test_reads_stdin(self) -> None:
        result = runner.invoke(app, ["extract-json"], input='Sure! {"a": 1} done')
        assert result.exit_code == 0
        assert result.output.strip() == '{"a": 1}'

    def test_reads_file(self, tmp_path: Path) -> None:
        path = tmp_path / "reply.txt"
        path.write_text('```json\n[1, 2]\n```\n', encoding="utf-8")
        result = runner.invoke(app, ["extract-json", str(path)])
        assert result.output.strip() == "[1, 2]"


# ---- Pipeline-backed commands -----------------------------------------------


class TestSourcesCommand:
    def test_table_output(self, fake_pipeline: type[FakePipeline]) -> None:
        result = runner.invoke(app, ["sources", "-a", "academic", "--refresh"])

        assert result.exit_code == 0
        assert "Plain [bracketed] title" in result.output
        (_, args, kwargs) = fake_pipeline.instances[0].calls[0]
        assert args == (["academic"],)
        assert kwargs == {"force_refresh": True}

    def test_json_output_is_ranked(self, fake_pipeline: type[FakePipeline]) -> None:
        result = runner.invoke(app, ["sources", "--json", "--limit", "1"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["count"] == 2
        assert [source["id"] for source in payload["sources"]] == ["github-2"]


class TestSearchCommand:
    def test_prints_results(self, fake_pipeline: type[FakePipeline]) -> None:
        result = runner.invoke(app, ["search", "llm agents"])
        assert result.exit_code == 0
        assert "**Hit**" in result.output

    def test_fallback_exits_nonzero(
        self, fake_pipeline: type[FakePipeline], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            FakePipeline,
            "search",
            lambda self, query: _coro(fallback_text(SearchFailure.RATE_LIMITED, query)),
        )
        result = runner.invoke(app, ["search", "q"])
        assert result.exit_code == 1


class TestTopicsCommand:
    def test_topics_use_sources_by_default(self, fake_pipeline: type[FakePipeline]) -> None:
        result = runner.invoke(app, ["topics", "-a", "business"])

        assert result.exit_code == 0
        assert "How to Map [Sites]" in result.output
        (name, _, kwargs) = fake_pipeline.instances[0].calls[0]
        assert name == "trending_topics"
        assert kwargs == {"use_sources": True}

    def test_no_sources_flag(self, fake_pipeline: type[FakePipeline]) -> None:
        runner.invoke(app, ["topics", "--no-sources"])
        assert fake_pipeline.instances[0].calls[0][2] == {"use_sources": False}

    def test_suggest(self, fake_pipeline: type[FakePipeline]) -> None:
        result = runner.invoke(app, ["topics", "--suggest"])
        assert "1. How to A" in result.output
        assert "2. How to B" in result.output


class TestNewsletterCommand:
    def test_writes_output_file(
        self, fake_pipeline: type[FakePipeline], tmp_path: Path
    ) -> None:
        out = tmp_path / "issue.json"
        result = runner.invoke(
            app, ["newsletter", "-t", "How to A", "-t", "How to B", "-o", str(out)]
        )

        assert result.exit_code == 0
        assert json.loads(out.read_text(encoding="utf-8"))["subject"] == "Weekly"
        (_, args, _) = fake_pipeline.instances[0].calls[0]
        assert args == (["How to A", "How to B"], None, "professional")

    def test_topic_required(self, fake_pipeline: type[FakePipeline]) -> None:
        result = runner.invoke(app, ["newsletter"])
        assert result.exit_code != 0

    def test_malformed_output_exits_one(
        self, fake_pipeline: type[FakePipeline], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original_init = FakePipeline.__init__

        def _init(self: FakePipeline, settings: Settings, **kwargs: Any) -> None:
            original_init(self, settings, **kwargs)
            self.newsletter_error = MalformedOutputError("bad shape", raw_text="nope")

        monkeypatch.setattr(FakePipeline, "__init__", _init)

        result = runner.invoke(app, ["newsletter", "-t", "How to A"])

        assert result.exit_code == 1

    def test_error_text_keeps_bracketed_model_names(
        self, fake_pipeline: type[FakePipeline], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original_init = FakePipeline.__init__

        def _init(self: FakePipeline, settings: Settings, **kwargs: Any) -> None:
            original_init(self, settings, **kwargs)
            self.newsletter_error = ModelRoutingError("All models in chain failed: [anthropic/a]")

        monkeypatch.setattr(FakePipeline, "__init__", _init)

        result = runner.invoke(app, ["newsletter", "-t", "How to A"])

        assert result.exit_code == 1
        assert "[anthropic/a]" in result.output


async def _coro(value: str) -> str:
    return value
