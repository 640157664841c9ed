"""Structured logging for workbook extraction.

Log lines carry ``key=value`` fields after a ``|`` separator, and a
bracketed prefix with whatever context is active (the source file and the
sheet being read, plus any extra keys bound through ``LogContext``)::

    [source=report.xlsx sheet=Sheet1] Extracting sheet | rows=10, cols=4

Records go to stderr only; stdout is reserved for the CLI result line.

Usage:
    logger = get_logger(__name__)

    with LogContext(source="report.xlsx"):
        with timed_operation(logger, "extract_workbook") as metrics:
            metrics.sheets_processed += 1
"""

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any

# Keys rendered first, in this order, when present
_PRIMARY_KEYS = ("source", "sheet")

_log_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)

DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def current_context() -> dict[str, Any]:
    """Return a copy of the fields bound to the current context."""
    return dict(_log_context.get() or {})


def clear_context() -> None:
    _log_context.set(None)


def format_fields(fields: dict[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in fields.items())


class LogContext:
    """Bind fields to every log line emitted inside the block.

    Nested contexts add to (and may override) the outer fields; leaving a
    block restores exactly what was bound before it.
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = {k: v for k, v in fields.items() if v is not None}
        self._token: Token[dict[str, Any] | None] | None = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**current_context(), **self._fields})
        return self

    def __exit__(self, *exc: object) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


class StructuredLogFormatter(logging.Formatter):
    """Prefixes each message with the active ``LogContext`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        ordered = [key for key in _PRIMARY_KEYS if key in context]
        ordered += [key for key in context if key not in _PRIMARY_KEYS]
        if not ordered:
            return super().format(record)

        prefix = " ".join(f"{key}={context[key]}" for key in ordered)
        message = record.msg
        record.msg = f"[{prefix}] {message}"
        try:
            return super().format(record)
        finally:
            record.msg = message


@dataclass
class PerformanceMetrics:
    """Counters collected while an operation runs.

    ``degraded_cells`` counts cells where at least one optional field was
    exported as null because reading it failed.
    """

    operation: str
    sheets_processed: int = 0
    cells_processed: int = 0
    degraded_cells: int = 0
    duration_seconds: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)
    _started: float = field(default_factory=time.perf_counter, repr=False)
    finished: bool = False

    def finish(self) -> None:
        self.duration_seconds = round(time.perf_counter() - self._started, 6)
        self.finished = True

    def to_dict(self) -> dict[str, Any]:
        """Operation name, duration and every non-zero counter."""
        result: dict[str, Any] = {
            "operation": self.operation,
            "duration_seconds": self.duration_seconds,
        }
        counters = {
            "sheets_processed": self.sheets_processed,
            "cells_processed": self.cells_processed,
            "degraded_cells": self.degraded_cells,
        }
        result.update({name: count for name, count in counters.items() if count})
        result.update(self.extra)
        return result


class StructuredLogger:
    """Thin wrapper over ``logging.Logger`` taking fields as keyword arguments.

    Example:
        logger.warning("Cell field unreadable", address="B7", field="style")
        # Cell field unreadable | address=B7, field=style
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _build_message(self, message: str, **fields: Any) -> str:
        return f"{message} | {format_fields(fields)}" if fields else message

    def _log(self, level: int, message: str, exc_info: bool, fields: dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(
                level,
                self._build_message(message, **fields),
                exc_info=exc_info,
                stacklevel=3,
            )

    def debug(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.DEBUG, message, exc_info, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, False, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, False, fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, message, exc_info, fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, message, True, fields)

    def log_performance(self, metrics: PerformanceMetrics) -> None:
        self.info(f"Performance: {metrics.operation}", **metrics.to_dict())

    def log_progress(
        self, stage: str, current: int, total: int, details: str | None = None
    ) -> None:
        """Log ``current`` of ``total`` steps of a multi-step stage."""
        fields: dict[str, Any] = {
            "current": current,
            "total": total,
            "percentage": f"{(current / total * 100) if total else 0:.1f}%",
        }
        if details:
            fields["details"] = details
        self.info(f"Progress: {stage}", **fields)


@contextmanager
def timed_operation(logger: StructuredLogger, operation: str) -> Iterator[PerformanceMetrics]:
    """Time a block and log its metrics when it exits, even on error."""
    metrics = PerformanceMetrics(operation=operation)
    try:
        yield metrics
    finally:
        metrics.finish()
        logger.log_performance(metrics)


def configure_logging(
    level: int | str = logging.WARNING,
    fmt: str | None = None,
    structured: bool = True,
) -> None:
    """Install a single stderr handler on the root logger.

    Any handlers already on the root logger are removed, so repeated calls
    do not duplicate output.

    Args:
        level: Level as an int or a name such as ``"INFO"``.
        fmt: ``logging`` format string; defaults to ``DEFAULT_FORMAT``.
        structured: Prefix messages with the active ``LogContext`` fields.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    formatter_class = StructuredLogFormatter if structured else logging.Formatter
    handler.setFormatter(formatter_class(fmt or DEFAULT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
