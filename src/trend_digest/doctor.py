"""Health checks and self-diagnostics for trend-digest."""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path

import httpx
from pydantic import BaseModel, Field

from trend_digest.config import Settings

_PROVIDER_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

_SOURCE_ENDPOINTS = {
    "hackernews": "https://hacker-news.firebaseio.com/v0/topstories.json",
    "arxiv": "https://export.arxiv.org/api/query?search_query=cat:cs.AI&max_results=1",
    "github": "https://api.github.com/rate_limit",
    "reddit": "https://www.reddit.com/r/MachineLearning/top.json?limit=1",
    "devto": "https://dev.to/api/articles?tag=ai&per_page=1",
    "producthunt": "https://www.producthunt.com/feed",
}


class CheckStatus(StrEnum):
    """Status for a doctor check item."""

    OK = "ok"
    WARN = "warn"
    FAIL = "fail"


class CheckResult(BaseModel):
    """A single doctor check result."""

    name: str
    status: CheckStatus
    message: str
    details: dict[str, str] = Field(default_factory=dict)


class DoctorReport(BaseModel):
    """Aggregate report for all diagnostics."""

    checks: list[CheckResult]

    @property
    def healthy(self) -> bool:
        return all(check.status != CheckStatus.FAIL for check in self.checks)

    @property
    def exit_code(self) -> int:
        return 0 if self.healthy else 1


def _check_config_schema(config_path: Path | None) -> CheckResult:
    try:
        Settings.load(config_path=config_path)
        return CheckResult(
            name="config-schema",
            status=CheckStatus.OK,
            message="Configuration schema is valid.",
        )
    except Exception as exc:
        return CheckResult(
            name="config-schema",
            status=CheckStatus.FAIL,
            message="Configuration schema validation failed.",
            details={"error": str(exc)},
        )


def _check_llm_keys(settings: Settings) -> CheckResult:
    """At least one model in the chain needs its provider key in the environment."""
    models = [settings.llm.model, *settings.llm.fallback_models]
    available: list[str] = []
    missing: list[str] = []

    for model in models:
        provider = model.split("/", 1)[0]
        env_var = _PROVIDER_KEY_ENV.get(provider)
        if env_var is None or os.getenv(env_var):
            available.append(model)
        else:
            missing.append(f"{model} ({env_var})")

    if not available:
        return CheckResult(
            name="llm-api-keys",
            status=CheckStatus.FAIL,
            message="No model in the fallback chain has an API key.",
            details={"missing": ", ".join(missing)},
        )
    if missing:
        return CheckResult(
            name="llm-api-keys",
            status=CheckStatus.WARN,
            message="Some fallback models have no API key.",
            details={"available": ", ".join(available), "missing": ", ".join(missing)},
        )
    return CheckResult(
        name="llm-api-keys",
        status=CheckStatus.OK,
        message="Every model in the fallback chain has an API key.",
    )


def _probe_tavily(api_key: str, endpoint: str, timeout: float) -> CheckResult:
    payload = {
        "api_key": api_key,
        "query": "health check",
        "max_results": 1,
        "search_depth": "basic",
    }
    try:
        response = httpx.post(endpoint, json=payload, timeout=timeout)
        if response.status_code == 200:
            return CheckResult(
                name="search-api-key",
                status=CheckStatus.OK,
                message="Tavily API key is valid.",
            )
        return CheckResult(
            name="search-api-key",
            status=CheckStatus.FAIL,
            message="Tavily API key probe failed.",
            details={"status": str(response.status_code)},
        )
    except httpx.HTTPError as exc:
        return CheckResult(
            name="search-api-key",
            status=CheckStatus.FAIL,
            message="Tavily API probe request failed.",
            details={"error": str(exc)},
        )


def _check_search_key(settings: Settings, probe: bool, timeout: float = 5.0) -> CheckResult:
    api_key = settings.search.resolved_api_key()
    if not api_key:
        # Generation still works; every search degrades to a fallback text.
        return CheckResult(
            name="search-api-key",
            status=CheckStatus.WARN,
            message="Search API key is not set; web search will return fallbacks.",
        )
    if not probe:
        return CheckResult(
            name="search-api-key",
            status=CheckStatus.OK,
            message="Search API key is set (not probed).",
        )
    return _probe_tavily(api_key, settings.search.endpoint, timeout)


def _check_sources(settings: Settings) -> list[CheckResult]:
    checks: list[CheckResult] = []
    headers = {"User-Agent": settings.sources.user_agent}
    for name, url in _SOURCE_ENDPOINTS.items():
        check_name = f"source-{name}"
        try:
            response = httpx.get(
                url,
                headers=headers,
                timeout=settings.sources.timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            checks.append(
                CheckResult(
                    name=check_name,
                    status=CheckStatus.WARN,
                    message="Source is unreachable.",
                    details={"error": str(exc)},
                )
            )
            continue

        if response.is_success:
            checks.append(
                CheckResult(name=check_name, status=CheckStatus.OK, message="Source is reachable.")
            )
        else:
            checks.append(
                CheckResult(
                    name=check_name,
                    status=CheckStatus.WARN,
                    message="Source returned an error status.",
                    details={"status": str(response.status_code)},
                )
            )
    return checks


def run_doctor(
    settings: Settings,
    config_path: Path | None = None,
    check_api_probes: bool = True,
    check_sources: bool = False,
) -> DoctorReport:
    """Run all health checks and return a structured report.

    Source reachability only warns: a failing source contributes zero
    items to the aggregate but never breaks it.
    """
    checks = [
        _check_config_schema(config_path),
        _check_llm_keys(settings),
        _check_search_key(settings, probe=check_api_probes),
    ]
    if check_sources:
        checks.extend(_check_sources(settings))
    return DoctorReport(checks=checks)
