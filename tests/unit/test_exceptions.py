"""Unit tests for trend_digest.exceptions - centralized exception hierarchy."""

from __future__ import annotations

import pytest

from trend_digest.exceptions import (
    MalformedOutputError,
    ModelRoutingError,
    SearchProviderError,
    SourceFetchError,
    ToolExecutionError,
    TrendDigestError,
)
from trend_digest.search import SearchFailure


class TestTrendDigestError:
    """Base exception class tests."""

    def test_inherits_from_exception(self) -> None:
        assert issubclass(TrendDigestError, Exception)

    @pytest.mark.parametrize(
        "cls",
        [SourceFetchError, ModelRoutingError, ToolExecutionError, MalformedOutputError],
    )
    def test_catches_all_subclasses(self, cls: type[TrendDigestError]) -> None:
        with pytest.raises(TrendDigestError, match="sub error"):
            raise cls("sub error")


class TestSearchProviderError:
    def test_carries_failure(self) -> None:
        exc = SearchProviderError(SearchFailure.RATE_LIMITED, "HTTP 429")
        assert exc.failure is SearchFailure.RATE_LIMITED
        assert str(exc) == "HTTP 429"

    def test_message_defaults_to_failure(self) -> None:
        assert str(SearchProviderError(SearchFailure.NO_RESULTS)) == "no_results"


class TestMalformedOutputError:
    def test_keeps_raw_text(self) -> None:
        exc = MalformedOutputError("not json", raw_text="Sorry!")
        assert exc.raw_text == "Sorry!"
        assert str(exc) == "not json"

    def test_raw_text_defaults_empty(self) -> None:
        assert MalformedOutputError("x").raw_text == ""
