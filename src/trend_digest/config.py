"""Configuration with 4-layer resolution: defaults -> YAML -> env -> CLI.

Uses pydantic-settings with YamlConfigSettingsSource for layered configuration.
Supports ``.env`` file loading, ``TREND_DIGEST_`` prefixed env vars, and
nested delimiter ``__`` for overriding sub-model fields.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, ClassVar, Literal

import structlog
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

try:
    from pydantic_settings import YamlConfigSettingsSource
except ImportError:  # pragma: no cover
    YamlConfigSettingsSource = None  # type: ignore[assignment, misc]

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class LLMSettings(BaseModel):
    """LLM provider configuration (litellm model identifiers)."""

    model: str = "anthropic/claude-sonnet-4-5-20250929"
    fallback_models: list[str] = Field(default_factory=lambda: ["openai/gpt-4o"])
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, gt=0)
    timeout: int = Field(default=120, gt=0, description="Request timeout in seconds.")
    retries: int = Field(default=3, ge=1)


class SearchSettings(BaseModel):
    """Paid web search provider (Tavily) configuration."""

    api_key: str | None = Field(
        default=None,
        description="Tavily API key. Falls back to the TAVILY_API_KEY env var.",
    )
    endpoint: str = "https://api.tavily.com/search"
    max_results: int = Field(default=10, gt=0, le=20)
    search_depth: Literal["basic", "advanced"] = "basic"
    timeout: float = Field(default=10.0, gt=0.0, description="Per-call timeout in seconds.")

    def resolved_api_key(self) -> str | None:
        """Return the configured key, or the provider's conventional env var."""
        return self.api_key or os.environ.get("TAVILY_API_KEY") or None


class SourceSettings(BaseModel):
    """Static configuration for the six trending-source adapters."""

    timeout: float = Field(default=15.0, gt=0.0, description="Per-call timeout in seconds.")
    max_concurrent_requests: int = Field(default=10, gt=0)
    lookback_days: int = Field(default=60, gt=0)
    user_agent: str = "trend-digest/0.1 (trending source aggregator)"
    github_token: str | None = None
    hackernews_scan_limit: int = Field(default=50, gt=0)
    hackernews_max_items: int = Field(default=12, gt=0)
    arxiv_max_items: int = Field(default=15, gt=0)
    arxiv_categories: list[str] = Field(
        default_factory=lambda: ["cs.AI", "stat.ML", "cs.LG", "cs.CV", "q-bio"]
    )
    github_max_items: int = Field(default=15, gt=0)
    github_min_stars: int = Field(default=1000, ge=0)
    reddit_posts_per_subreddit: int = Field(default=15, gt=0)
    subreddits: list[str] = Field(
        default_factory=lambda: [
            "MachineLearning",
            "artificial",
            "programming",
            "forensics",
            "archaeology",
            "anthropology",
            "biology",
            "AskAnthropology",
            "paleontology",
            "BusinessIntelligence",
            "automation",
            "productmanagement",
            "productivity",
            "analytics",
            "datascience",
            "statistics",
        ]
    )
    devto_max_items: int = Field(default=8, gt=0)
    devto_tag: str = "ai"
    producthunt_max_items: int = Field(default=10, gt=0)


class CacheSettings(BaseModel):
    """TTL configuration for the trending-set and search-query caches."""

    trending_ttl_seconds: int = Field(default=3600, gt=0)
    serve_stale: bool = Field(
        default=True,
        description="Serve an expired trending set while refreshing in the background.",
    )
    stale_grace_seconds: int = Field(default=900, ge=0)
    query_ttl_seconds: int = Field(default=900, gt=0)
    query_max_entries: int = Field(default=100, gt=0)


class GenerationSettings(BaseModel):
    """Agentic generation loop configuration."""

    max_iterations: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Maximum tool round trips per generation call.",
    )
    prompt_source_limit: int = Field(
        default=25,
        gt=0,
        description="Number of top-ranked sources included in prompts.",
    )


class LoggingSettings(BaseModel):
    """Logging / observability configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Main Settings (4-layer resolution)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Top-level application settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. YAML config file (``config.yaml`` or ``--config`` path)
        3. Environment variables (prefixed ``TREND_DIGEST_``)
        4. CLI overrides (applied programmatically after loading)
    """

    model_config = SettingsConfigDict(
        env_prefix="TREND_DIGEST_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="config.yaml",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    llm: LLMSettings = Field(default_factory=LLMSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    sources: SourceSettings = Field(default_factory=SourceSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings (CLI) > env_settings > dotenv (.env) > yaml > defaults

        Returns:
            Ordered tuple of settings sources (first = highest priority).
        """
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
        ]

        if YamlConfigSettingsSource is not None:
            yaml_file = cls._config_path_override or settings_cls.model_config.get(
                "yaml_file", "config.yaml"
            )
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file))

        return tuple(sources)

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings with optional config path and CLI overrides.

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Key-value CLI overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ValidationError: If any setting value fails validation.
        """
        cls._config_path_override = config_path
        try:
            return cls(**overrides)
        finally:
            cls._config_path_override = None


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if raw_input is not None:
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        else:
            lines.append(f"  {loc}: {msg}")
    return "Configuration error:\n" + "\n".join(lines)
