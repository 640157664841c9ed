"""Extraction services."""

from workbook_extraction.services.excel_extractor import (
    ExcelExtractionOptions,
    ExcelExtractor,
    extract,
)
from workbook_extraction.services.format_detector import FormatDetector
from workbook_extraction.services.number_format import format_display_text

__all__ = [
    "ExcelExtractionOptions",
    "ExcelExtractor",
    "FormatDetector",
    "extract",
    "format_display_text",
]
