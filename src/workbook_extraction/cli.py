"""Command line entry point: dump a workbook to raw JSON.

Usage:
    workbook-extract <input-path> [output-path]

Exit status is 0 on success, 1 for usage errors and 2 when extraction,
validation or writing fails.
"""

import sys
from pathlib import Path

from pydantic import ValidationError

from workbook_extraction.config import Settings, validate_settings_on_startup
from workbook_extraction.output.json_writer import JsonWriter, default_output_path
from workbook_extraction.services.excel_extractor import (
    ExcelExtractionOptions,
    ExcelExtractor,
)
from workbook_extraction.utils.exceptions import (
    EXIT_FAILURE,
    EXIT_OK,
    UsageError,
    WorkbookError,
)
from workbook_extraction.utils.logging import LogContext, configure_logging, get_logger

logger = get_logger(__name__)

USAGE = "Usage: workbook-extract <input-path> [output-path]"


def _parse_args(argv: list[str]) -> tuple[Path, Path | None]:
    if not argv:
        raise UsageError("Missing input path")
    if len(argv) > 2:
        raise UsageError(
            f"Too many arguments: expected at most 2, got {len(argv)}",
            details={"arguments": argv},
        )
    output = Path(argv[1]) if len(argv) == 2 else None
    return Path(argv[0]), output


def run(input_path: Path, output_path: Path | None, settings: Settings) -> Path:
    """Extract ``input_path`` and write its JSON dump.

    Returns:
        The path the document was written to.
    """
    target = output_path or default_output_path(input_path, settings.output_suffix)
    with LogContext(source=input_path.name):
        workbook = ExcelExtractor().extract_from_path(
            input_path, ExcelExtractionOptions.from_settings(settings)
        )
        writer = JsonWriter(
            indent=settings.json_indent, validate=settings.validate_output
        )
        written = writer.write(workbook, target)
        logger.info(
            "Workbook written",
            sheets=workbook.sheet_count,
            output=str(written),
        )
    return written


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)

    if any(arg in ("-h", "--help") for arg in args):
        print(USAGE)
        return EXIT_OK

    try:
        input_path, output_path = _parse_args(args)
    except UsageError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return e.exit_code

    try:
        settings = Settings()
    except ValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(p) for p in first["loc"])
        print(f"Invalid configuration: {field_name}: {first['msg']}", file=sys.stderr)
        return EXIT_FAILURE
    configure_logging(level=settings.log_level_int)
    validate_settings_on_startup(settings)

    try:
        written = run(input_path, output_path, settings)
    except WorkbookError as e:
        if settings.debug:
            logger.error(
                "Extraction failed",
                exc_info=True,
                error_code=e.error_code.value,
                details=e.details,
            )
        print(f"Failed to extract {input_path}: {e}", file=sys.stderr)
        return e.exit_code
    except OSError as e:
        if settings.debug:
            logger.error("Write failed", exc_info=True, error_type=type(e).__name__)
        print(f"Failed to write output for {input_path}: {e}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"Raw workbook data written to {written}")
    return EXIT_OK
