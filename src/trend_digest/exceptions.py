"""Centralized exception hierarchy for the trend-digest package.

All domain-specific exceptions inherit from ``TrendDigestError`` so
callers can catch the entire family with a single ``except`` clause.
Only ``MalformedOutputError`` and ``ModelRoutingError`` are meant to reach
callers; the others are raised and absorbed inside their own component.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trend_digest.search import SearchFailure


class TrendDigestError(Exception):
    """Base exception for all trend-digest errors."""


# ---------------------------------------------------------------------------
# Source errors
# ---------------------------------------------------------------------------


class SourceFetchError(TrendDigestError):
    """Raised inside an adapter when a source response cannot be used.

    Never escapes ``SourceAdapter.fetch``; it is logged and turned into
    an empty contribution.
    """


# ---------------------------------------------------------------------------
# Search errors
# ---------------------------------------------------------------------------


class SearchProviderError(TrendDigestError):
    """Raised inside the search gateway for a classified provider failure."""

    def __init__(self, failure: SearchFailure, message: str = "") -> None:
        super().__init__(message or str(failure))
        self.failure = failure


# ---------------------------------------------------------------------------
# Model errors
# ---------------------------------------------------------------------------


class ModelRoutingError(TrendDigestError):
    """Raised when no model is available or all fallbacks fail."""


class ToolExecutionError(TrendDigestError):
    """Raised when the model requests a tool that cannot be executed."""


class MalformedOutputError(TrendDigestError):
    """Raised when model output violates the expected output contract.

    Attributes:
        raw_text: The model text that failed to parse, for retry/debugging.
    """

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text
