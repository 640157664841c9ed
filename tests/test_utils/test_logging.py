"""Tests for the structured logging helpers."""

import logging
import sys

import pytest

from workbook_extraction.utils.logging import (
    LogContext,
    PerformanceMetrics,
    StructuredLogFormatter,
    StructuredLogger,
    clear_context,
    configure_logging,
    current_context,
    get_logger,
    timed_operation,
)


@pytest.fixture(autouse=True)
def _reset_context() -> None:
    clear_context()


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, message, None, None)


class TestStructuredLogger:
    """Tests for key-value message building."""

    def test_plain_message(self) -> None:
        assert get_logger("x")._build_message("hello") == "hello"

    def test_key_values_appended(self) -> None:
        message = StructuredLogger("x")._build_message("Extracting", rows=3, cols=2)
        assert message == "Extracting | rows=3, cols=2"

    def test_logs_through_standard_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("workbook_extraction.test")
        with caplog.at_level(logging.INFO, logger="workbook_extraction.test"):
            logger.info("Sheet done", sheet="Sheet1")

        assert "Sheet done | sheet=Sheet1" in caplog.text

    def test_progress(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("workbook_extraction.test")
        with caplog.at_level(logging.INFO, logger="workbook_extraction.test"):
            logger.log_progress("Extracting sheets", 1, 4)

        assert "percentage=25.0%" in caplog.text


class TestLogContext:
    """Tests for context variable handling."""

    def test_sets_and_restores(self) -> None:
        with LogContext(source="a.xlsx"):
            assert current_context() == {"source": "a.xlsx"}
            with LogContext(sheet="Sheet1", stage="rows"):
                assert current_context() == {
                    "source": "a.xlsx",
                    "sheet": "Sheet1",
                    "stage": "rows",
                }
            assert current_context() == {"source": "a.xlsx"}
        assert current_context() == {}

    def test_none_values_are_not_bound(self) -> None:
        with LogContext(source=None, sheet="Sheet1"):
            assert current_context() == {"sheet": "Sheet1"}

    def test_formatter_prefix(self) -> None:
        formatter = StructuredLogFormatter("%(message)s")
        with LogContext(source="a.xlsx", sheet="Sheet1"):
            output = formatter.format(_record("Extracting"))

        assert output == "[source=a.xlsx sheet=Sheet1] Extracting"

    def test_primary_keys_come_first(self) -> None:
        formatter = StructuredLogFormatter("%(message)s")
        with LogContext(stage="rows"), LogContext(sheet="S", source="a.xlsx"):
            output = formatter.format(_record("x"))

        assert output == "[source=a.xlsx sheet=S stage=rows] x"

    def test_formatter_without_context(self) -> None:
        formatter = StructuredLogFormatter("%(message)s")
        assert formatter.format(_record("Extracting")) == "Extracting"


class TestPerformanceMetrics:
    """Tests for metrics collection."""

    def test_to_dict_skips_zero_counters(self) -> None:
        metrics = PerformanceMetrics(operation="extract")
        metrics.cells_processed = 12
        metrics.finish()

        result = metrics.to_dict()
        assert result["operation"] == "extract"
        assert result["cells_processed"] == 12
        assert "degraded_cells" not in result
        assert metrics.finished is True

    def test_timed_operation_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("workbook_extraction.test")
        with caplog.at_level(logging.INFO, logger="workbook_extraction.test"):
            with timed_operation(logger, "extract_workbook") as metrics:
                metrics.sheets_processed = 2

        assert metrics.duration_seconds >= 0
        assert "Performance: extract_workbook" in caplog.text
        assert "sheets_processed=2" in caplog.text


class TestConfigureLogging:
    """Tests for root logger configuration."""

    def test_single_stderr_handler(self) -> None:
        configure_logging("info")

        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr
        assert isinstance(handler.formatter, StructuredLogFormatter)

    def test_plain_formatter(self) -> None:
        configure_logging(logging.DEBUG, structured=False)

        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, StructuredLogFormatter)
