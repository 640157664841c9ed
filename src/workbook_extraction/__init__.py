"""Lossless extraction of Excel workbooks into a raw JSON document."""

from workbook_extraction.excel_document import (
    CellValue,
    ExcelCell,
    ExcelSheet,
    ExcelWorkbook,
    MergeRegion,
    ValueKind,
)
from workbook_extraction.services.excel_extractor import (
    ExcelExtractionOptions,
    ExcelExtractor,
    extract,
)

__version__ = "0.1.0"

__all__ = [
    "CellValue",
    "ExcelCell",
    "ExcelExtractionOptions",
    "ExcelExtractor",
    "ExcelSheet",
    "ExcelWorkbook",
    "MergeRegion",
    "ValueKind",
    "__version__",
    "extract",
]
