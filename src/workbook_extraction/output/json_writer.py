"""JSON output writer with schema validation.

This module turns an extracted workbook into the raw JSON document,
validates it against the output schema and writes it in a single atomic
step: the text goes to a temporary file beside the target, which then
replaces the target. A failed run never leaves a truncated file behind.

Concurrent runs writing the same output path are not locked against each
other; the last one to finish wins.
"""

import contextlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator

from workbook_extraction.excel_document import ExcelWorkbook
from workbook_extraction.output.schema import WORKBOOK_SCHEMA
from workbook_extraction.utils.exceptions import OutputValidationError

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_SUFFIX = ".raw.json"


@dataclass
class ValidationResult:
    """Result of JSON schema validation."""

    is_valid: bool
    """Whether the document is valid against the schema."""

    errors: list[str] = field(default_factory=list)
    """List of validation error messages."""

    def to_dict(self) -> dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": self.errors}


def default_output_path(
    input_path: str | Path,
    suffix: str = DEFAULT_OUTPUT_SUFFIX,
    directory: str | Path | None = None,
) -> Path:
    """Derive the output path: input stem plus suffix, in the working directory.

    Args:
        input_path: Path of the source workbook.
        suffix: Replacement for the input extension.
        directory: Target directory (defaults to the current directory).
    """
    base = Path(directory) if directory is not None else Path.cwd()
    return base / f"{Path(input_path).stem}{suffix}"


def write_atomic(path: str | Path, text: str) -> Path:
    """Write text to ``path`` through a temporary file and ``os.replace``.

    Raises:
        OSError: If the directory is missing or not writable. The temporary
            file is removed before the error propagates.
    """
    target = Path(path)
    directory = target.parent if str(target.parent) else Path(".")
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=directory
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise
    return target


class JsonWriter:
    """Builds, validates and writes the raw workbook JSON document."""

    def __init__(self, indent: int | None = 2, validate: bool = True) -> None:
        """Initialize the writer.

        Args:
            indent: JSON indentation, None for compact output.
            validate: Whether to check documents against the output schema.
        """
        self.indent = indent
        self.validate_output = validate
        self._validator = Draft7Validator(WORKBOOK_SCHEMA)

    def build(self, workbook: ExcelWorkbook) -> dict[str, Any]:
        """Convert a workbook to the output document."""
        return workbook.to_dict()

    def validate(self, document: dict[str, Any]) -> ValidationResult:
        """Validate a document against the output schema."""
        errors: list[str] = []
        for error in self._validator.iter_errors(document):
            path = (
                ".".join(str(p) for p in error.absolute_path)
                if error.absolute_path
                else "root"
            )
            errors.append(f"{path}: {error.message}")
        return ValidationResult(is_valid=not errors, errors=errors)

    def render(self, document: dict[str, Any]) -> str:
        """Serialize a document; non-ASCII text is kept as-is."""
        return json.dumps(document, indent=self.indent, ensure_ascii=False)

    def write(self, workbook: ExcelWorkbook, output_path: str | Path) -> Path:
        """Write a workbook to ``output_path``.

        The whole document is built and validated in memory before the
        single write.

        Raises:
            OutputValidationError: If the document fails schema validation.
            OSError: If the output cannot be written.
        """
        document = self.build(workbook)
        if self.validate_output:
            result = self.validate(document)
            if not result.is_valid:
                logger.warning(
                    f"Validation failed: {len(result.errors)} errors in "
                    f"document for {workbook.file}"
                )
                raise OutputValidationError(
                    f"Document for {workbook.file} does not match the output schema",
                    errors=result.errors[:20],
                )
        return write_atomic(output_path, self.render(document))
