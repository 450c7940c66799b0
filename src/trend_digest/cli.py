"""Typer CLI entry point for trend-digest."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Annotated, Any

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from trend_digest import __version__
from trend_digest.config import Settings, format_validation_error
from trend_digest.doctor import CheckStatus, run_doctor
from trend_digest.exceptions import MalformedOutputError, TrendDigestError
from trend_digest.logging import configure_logging
from trend_digest.output import extract_json
from trend_digest.pipeline import TrendingPipeline
from trend_digest.scoring import rank_sources, score_breakdown
from trend_digest.search import is_fallback

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="trend-digest",
    help="Aggregate trending AI sources, rank them per audience and draft newsletters.",
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to config YAML file."),
]
AudienceOption = Annotated[
    list[str] | None,
    typer.Option(
        "--audience",
        "-a",
        help="Audience id or parent category (academic, business). Repeatable.",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose logging."),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(
    config_path: Path | None = None,
    verbose: bool = False,
    **overrides: Any,
) -> Settings:
    """Load settings with error handling and user-friendly messages."""
    from pydantic import ValidationError

    if verbose:
        overrides["logging"] = {"level": "DEBUG"}

    try:
        settings = Settings.load(config_path=config_path, **overrides)
    except ValidationError as exc:
        err_console.print(
            Panel(
                format_validation_error(exc),
                title="Configuration Error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc

    configure_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        log_file=settings.logging.file,
    )
    return settings


def _display_error(exc: Exception) -> None:
    """Display a typed error with a retry hint."""
    hint = ""
    if isinstance(exc, MalformedOutputError):
        hint = "\n\nThe model response did not match the expected format. Re-run to retry."
    err_console.print(
        Panel(
            f"[red bold]{type(exc).__name__}[/red bold]\n\n{escape(str(exc))}{hint}",
            title="Error",
            border_style="red",
        )
    )


def _run(settings: Settings, operation: Any) -> Any:
    """Run ``operation(pipeline)`` on a fresh pipeline and close it afterwards."""

    async def _main() -> Any:
        async with TrendingPipeline(settings) as pipeline:
            return await operation(pipeline)

    try:
        return asyncio.run(_main())
    except TrendDigestError as exc:
        _display_error(exc)
        raise typer.Exit(code=1) from exc


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]trend-digest[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """trend-digest global options."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def sources(
    audience: AudienceOption = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of ranked sources to show."),
    ] = 20,
    refresh: Annotated[
        bool,
        typer.Option("--refresh", help="Bypass the trending cache."),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print machine-readable JSON."),
    ] = False,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Aggregate trending sources and show them ranked by relevance."""
    settings = _load_settings(config, verbose)

    result = _run(
        settings,
        lambda pipeline: pipeline.aggregate(audience, force_refresh=refresh),
    )
    ranked = rank_sources(result.sources, limit=limit)

    if as_json:
        payload = result.to_dict()
        payload["sources"] = [source.to_dict() for source in ranked]
        console.print_json(json.dumps(payload))
        return

    table = Table(title=f"Trending sources ({len(result.sources)} total)", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Source", style="cyan")
    table.add_column("Date")
    table.add_column("Title")

    for index, source in enumerate(ranked, start=1):
        table.add_row(
            str(index),
            str(score_breakdown(source).total),
            source.category.value,
            source.date or "-",
            f"[link={source.url}]{escape(source.title)}[/link]",
        )
    console.print(table)

    if result.cached:
        state = "stale, refreshing" if result.is_stale else "cached"
        console.print(f"[dim]{state}, age {result.cache_age_seconds:.0f}s[/dim]")


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Web search query.")],
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Run one web search through the cached search gateway."""
    settings = _load_settings(config, verbose)
    text = _run(settings, lambda pipeline: pipeline.search(query))
    if is_fallback(text):
        err_console.print(f"[yellow]{escape(text)}[/yellow]")
        raise typer.Exit(code=1)
    console.print(text, markup=False)


@app.command()
def topics(
    audience: AudienceOption = None,
    no_sources: Annotated[
        bool,
        typer.Option("--no-sources", help="Skip aggregation; rely on web search only."),
    ] = False,
    suggest: Annotated[
        bool,
        typer.Option("--suggest", help="Suggest newsletter topic titles instead."),
    ] = False,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Generate trending topics for an audience."""
    settings = _load_settings(config, verbose)

    if suggest:
        titles = _run(settings, lambda pipeline: pipeline.suggestions(audience))
        for index, title in enumerate(titles, start=1):
            console.print(f"{index}. {escape(title)}")
        return

    results = _run(
        settings,
        lambda pipeline: pipeline.trending_topics(audience, use_sources=not no_sources),
    )
    for topic in results:
        console.print(
            Panel(escape(topic["summary"]), title=escape(topic["title"]), border_style="blue")
        )


@app.command()
def newsletter(
    topic: Annotated[
        list[str],
        typer.Option("--topic", "-t", help="Topic to cover. Repeatable."),
    ],
    audience: AudienceOption = None,
    tone: Annotated[
        str,
        typer.Option("--tone", help="Writing tone."),
    ] = "professional",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the newsletter JSON to this file."),
    ] = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Generate a newsletter issue for the given topics."""
    settings = _load_settings(config, verbose)
    issue = _run(settings, lambda pipeline: pipeline.newsletter(topic, audience, tone))

    rendered = json.dumps(issue, indent=2, ensure_ascii=False)
    if output:
        output.write_text(rendered, encoding="utf-8")
        console.print(f"[green]Newsletter saved:[/green] {output}")
    else:
        console.print_json(rendered)


@app.command(name="extract-json")
def extract_json_cmd(
    path: Annotated[
        Path | None,
        typer.Argument(help="File to read; defaults to stdin."),
    ] = None,
) -> None:
    """Print the JSON value embedded in model text."""
    text = path.read_text(encoding="utf-8") if path else sys.stdin.read()
    typer.echo(extract_json(text))


@app.command()
def doctor(
    config: ConfigOption = None,
    no_api_probes: Annotated[
        bool,
        typer.Option(
            "--no-api-probes",
            help="Skip external API probe calls (offline mode).",
        ),
    ] = False,
    sources_check: Annotated[
        bool,
        typer.Option("--sources", help="Also check that each source endpoint responds."),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", help="Suppress table output, use exit code only."),
    ] = False,
) -> None:
    """Run self-diagnostics and health checks for this environment."""
    settings = _load_settings(config)
    report = run_doctor(
        settings=settings,
        config_path=config,
        check_api_probes=not no_api_probes,
        check_sources=sources_check,
    )

    if not quiet:
        table = Table(title="trend-digest doctor", show_lines=True)
        table.add_column("Check", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Message")

        status_style = {
            CheckStatus.OK: "[green]OK[/green]",
            CheckStatus.WARN: "[yellow]WARN[/yellow]",
            CheckStatus.FAIL: "[red]FAIL[/red]",
        }

        for check in report.checks:
            table.add_row(check.name, status_style[check.status], check.message)
        console.print(table)

        for check in report.checks:
            if check.details:
                details = ", ".join(f"{k}={v}" for k, v in check.details.items())
                console.print(f"[dim]{check.name}: {details}[/dim]")

    raise typer.Exit(code=report.exit_code)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
