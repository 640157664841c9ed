"""Error types raised while reading a workbook and writing its JSON dump.

Every error carries an ``ErrorCode`` (``E1001`` and so on), a message and a
``details`` dict, and knows the process exit status the CLI should return:

    WorkbookError
    ├── UsageError                  exit 1
    ├── ExtractionError             exit 2
    │   ├── SourceNotFoundError
    │   ├── FileTooLargeError
    │   ├── UnsupportedFormatError
    │   └── WorkbookParseError
    └── OutputValidationError       exit 2

Code ranges: E1xxx source file, E4xxx extraction, E6xxx output,
E9xxx usage and internal.
"""

from enum import Enum
from typing import Any

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILURE = 2


class ErrorCode(str, Enum):
    """Stable identifiers printed as ``[Exxxx]`` in front of error messages."""

    FILE_NOT_FOUND = "E1001"
    FILE_TOO_LARGE = "E1002"
    UNSUPPORTED_FORMAT = "E1003"
    FILE_READ_ERROR = "E1004"

    EXTRACTION_FAILED = "E4001"
    WORKBOOK_PARSE_FAILED = "E4002"

    OUTPUT_VALIDATION_FAILED = "E6001"

    USAGE_ERROR = "E9000"
    INTERNAL_ERROR = "E9001"


def _with_details(details: dict[str, Any] | None, **extra: Any) -> dict[str, Any]:
    """Copy ``details`` and add every ``extra`` entry that is set."""
    merged = dict(details or {})
    merged.update({key: value for key, value in extra.items() if value})
    return merged


class WorkbookError(Exception):
    """Base class for everything the extractor and writer raise.

    Attributes:
        message: Text shown to the user after the error code.
        error_code: Identifier from ``ErrorCode``.
        details: Extra context such as the file path or the parser's message.
        exit_code: Status the CLI exits with.
    """

    exit_code: int = EXIT_FAILURE

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def get_exit_code(self) -> int:
        return self.exit_code

    def to_dict(self) -> dict[str, Any]:
        """Serializable form; ``details`` is left out when empty."""
        payload: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class UsageError(WorkbookError):
    """The command line did not name an input, or named too much."""

    exit_code: int = EXIT_USAGE

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, ErrorCode.USAGE_ERROR, details)


# ---------------------------------------------------------------------------
# Source and extraction errors
# ---------------------------------------------------------------------------


class ExtractionError(WorkbookError):
    """The input could not be turned into an ``ExcelWorkbook``.

    ``file_path`` is copied into ``details`` when given.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTRACTION_FAILED,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, _with_details(details, file_path=file_path))
        self.file_path = file_path


class SourceNotFoundError(ExtractionError):
    """No file exists at the input path.

    Not called ``FileNotFoundError`` so the builtin stays usable next to it.
    """

    def __init__(
        self,
        file_path: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message or f"File not found: {file_path}",
            ErrorCode.FILE_NOT_FOUND,
            file_path,
            details,
        )


class FileTooLargeError(ExtractionError):
    """The input is bigger than ``WBX_MAX_FILE_SIZE_MB`` allows."""

    def __init__(
        self,
        file_size: int,
        max_size: int,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Workbook is {file_size} bytes, over the {max_size} byte limit",
            ErrorCode.FILE_TOO_LARGE,
            file_path,
            _with_details(details, file_size_bytes=file_size, max_size_bytes=max_size),
        )
        self.file_size = file_size
        self.max_size = max_size


class UnsupportedFormatError(ExtractionError):
    """The input is not an OOXML spreadsheet (xlsx, xlsm, xltx, xltm)."""

    def __init__(
        self,
        message: str,
        detected_mime: str | None = None,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.UNSUPPORTED_FORMAT,
            file_path,
            _with_details(details, detected_mime_type=detected_mime),
        )
        self.detected_mime = detected_mime


class WorkbookParseError(ExtractionError):
    """openpyxl rejected the container; its message is kept in ``cause``."""

    def __init__(
        self,
        message: str,
        cause: str | None = None,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.WORKBOOK_PARSE_FAILED,
            file_path,
            _with_details(details, cause=cause),
        )
        self.cause = cause


# ---------------------------------------------------------------------------
# Output errors
# ---------------------------------------------------------------------------


class OutputValidationError(WorkbookError):
    """The produced document failed the output JSON schema."""

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.OUTPUT_VALIDATION_FAILED,
            _with_details(details, validation_errors=errors),
        )
        self.errors = errors or []
