"""Utilities package for workbook extraction.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from workbook_extraction.utils.exceptions import (
    ErrorCode,
    ExtractionError,
    FileTooLargeError,
    OutputValidationError,
    SourceNotFoundError,
    UnsupportedFormatError,
    UsageError,
    WorkbookError,
    WorkbookParseError,
)
from workbook_extraction.utils.logging import (
    LogContext,
    StructuredLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    # Exceptions
    "ErrorCode",
    "ExtractionError",
    "FileTooLargeError",
    "OutputValidationError",
    "SourceNotFoundError",
    "UnsupportedFormatError",
    "UsageError",
    "WorkbookError",
    "WorkbookParseError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
