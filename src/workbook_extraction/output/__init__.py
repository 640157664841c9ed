"""Output package: JSON schema and the validating writer."""

from workbook_extraction.output.json_writer import (
    JsonWriter,
    ValidationResult,
    default_output_path,
    write_atomic,
)
from workbook_extraction.output.schema import WORKBOOK_SCHEMA

__all__ = [
    "JsonWriter",
    "ValidationResult",
    "WORKBOOK_SCHEMA",
    "default_output_path",
    "write_atomic",
]
