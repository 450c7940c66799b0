"""structlog configuration and request-scoped logging context.

Provides request ID generation, a context manager that binds request
metadata to every log entry emitted while a pipeline operation runs,
and structured log configuration for console and JSON output with
optional file logging.
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


def generate_request_id() -> str:
    """Generate a unique identifier for one pipeline request.

    Returns:
        A UUID4 hex string.
    """
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# structlog configuration
# ---------------------------------------------------------------------------


_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
) -> None:
    """Configure structlog for the application.

    Sets up structlog with shared processors and a format-specific
    renderer. Configures the stdlib logging root to respect the given
    level and optionally adds a file handler. Logs go to stderr so that
    CLI output on stdout stays machine-readable.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: Output format: ``"console"`` for human-readable or
            ``"json"`` for machine-parseable.
        log_file: Optional file path for log output (in addition to stderr).

    Raises:
        ValueError: If ``level`` is not a recognized log level.
    """
    level_upper = level.upper()
    if level_upper not in _VALID_LEVELS:
        msg = f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}"
        raise ValueError(msg)

    numeric_level = getattr(logging, level_upper)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates on re-configuration
    root_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(numeric_level)
    root_logger.addHandler(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(numeric_level)
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)


# ---------------------------------------------------------------------------
# Request logging context manager
# ---------------------------------------------------------------------------


@contextmanager
def request_logging_context(
    operation: str,
    request_id: str | None = None,
    **extra: Any,
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Bind request-level metadata to structlog for one pipeline operation.

    Logs the start and end of the operation (with elapsed time) and binds
    the operation name and request ID to all log entries within the
    context, including those emitted by adapters and the search gateway.

    Args:
        operation: Name of the pipeline operation (e.g. ``"aggregate"``).
        request_id: Optional request ID; a new one is generated if omitted.
        **extra: Additional key-value pairs to bind.

    Yields:
        A bound structlog logger with request context.

    Example::

        with request_logging_context("generate", audience="academic") as log:
            log.info("prompt_built", chars=len(prompt))
    """
    rid = request_id or generate_request_id()
    structlog.contextvars.bind_contextvars(
        operation=operation,
        request_id=rid,
        **extra,
    )

    log: structlog.stdlib.BoundLogger = structlog.get_logger(operation)
    log.info("request_start")
    started = time.monotonic()

    try:
        yield log
    except Exception:
        log.exception("request_error")
        raise
    finally:
        log.info("request_end", elapsed_ms=round((time.monotonic() - started) * 1000))
        structlog.contextvars.unbind_contextvars(
            "operation", "request_id", *extra.keys()
        )
