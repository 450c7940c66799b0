"""Unit tests for trend_digest.logging - structured logging and request context."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest
import structlog

from trend_digest.logging import (
    _VALID_LEVELS,
    configure_logging,
    generate_request_id,
    request_logging_context,
)

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_structlog() -> None:
    """Reset structlog state between tests."""
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


def _read_json_lines(log_file: Path) -> list[dict[str, object]]:
    for handler in logging.getLogger().handlers:
        handler.flush()
    return [json.loads(line) for line in log_file.read_text().splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# generate_request_id
# ---------------------------------------------------------------------------


class TestGenerateRequestId:
    def test_hex_format(self) -> None:
        rid = generate_request_id()
        assert len(rid) == 32
        int(rid, 16)

    def test_unique_across_calls(self) -> None:
        assert len({generate_request_id() for _ in range(10)}) == 10


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLoggingLevel:
    """configure_logging validates and applies log levels."""

    def test_case_insensitive(self) -> None:
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_level_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(level="TRACE")

    def test_all_valid_levels_accepted(self) -> None:
        for lvl in _VALID_LEVELS:
            configure_logging(level=lvl)
            assert logging.getLogger().level == getattr(logging, lvl)

    def test_httpx_quieted_below_warning(self) -> None:
        configure_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING


class TestConfigureLoggingFile:
    def test_file_handler_created(self, tmp_path: Path) -> None:
        configure_logging(log_file=tmp_path / "test.log")
        file_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1

    def test_reconfigure_clears_handlers(self, tmp_path: Path) -> None:
        configure_logging(log_file=str(tmp_path / "first.log"))
        configure_logging(log_file=str(tmp_path / "second.log"))
        file_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1

    def test_json_parseable(self, tmp_path: Path) -> None:
        log_file = tmp_path / "json.log"
        configure_logging(level="INFO", fmt="json", log_file=str(log_file))

        structlog.get_logger("json_test").warning("test_event", data="hello")

        (entry,) = _read_json_lines(log_file)
        assert entry["event"] == "test_event"
        assert entry["data"] == "hello"
        assert entry["level"] == "warning"
        assert "timestamp" in entry


# ---------------------------------------------------------------------------
# request_logging_context
# ---------------------------------------------------------------------------


class TestRequestLoggingContext:
    """request_logging_context binds and unbinds request metadata."""

    def test_binds_operation_and_request_id(self) -> None:
        configure_logging(level="DEBUG")
        with request_logging_context("aggregate", request_id="req-1", audience="academic") as log:
            ctx = structlog.contextvars.get_contextvars()
            assert ctx["operation"] == "aggregate"
            assert ctx["request_id"] == "req-1"
            assert ctx["audience"] == "academic"
            assert hasattr(log, "info")

    def test_generates_request_id(self) -> None:
        configure_logging(level="DEBUG")
        with request_logging_context("search"):
            assert len(structlog.contextvars.get_contextvars()["request_id"]) == 32

    def test_unbinds_on_exit(self) -> None:
        configure_logging(level="DEBUG")
        with request_logging_context("search", query="x"):
            pass
        ctx = structlog.contextvars.get_contextvars()
        assert "operation" not in ctx
        assert "request_id" not in ctx
        assert "query" not in ctx

    def test_exception_propagated_and_context_cleaned(self) -> None:
        configure_logging(level="DEBUG")
        with pytest.raises(RuntimeError, match="boom"), request_logging_context("generate"):
            raise RuntimeError("boom")
        assert "operation" not in structlog.contextvars.get_contextvars()

    def test_entries_carry_request_context(self, tmp_path: Path) -> None:
        log_file = tmp_path / "request.log"
        configure_logging(level="INFO", fmt="json", log_file=str(log_file))

        with request_logging_context("newsletter", request_id="req-42"):
            structlog.get_logger("inner").info("inside_request")

        entries = _read_json_lines(log_file)
        events = [entry["event"] for entry in entries]
        assert events == ["request_start", "inside_request", "request_end"]
        assert all(entry["request_id"] == "req-42" for entry in entries)
        assert "elapsed_ms" in entries[-1]
