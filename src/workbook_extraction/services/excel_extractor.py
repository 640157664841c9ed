"""Native Excel workbook extractor producing a lossless structured dump."""

from __future__ import annotations

import io
import zipfile
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from xml.etree import ElementTree as ET

import pandas as pd
from openpyxl import load_workbook
from openpyxl.cell import Cell
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.formula import DataTableFormula
from openpyxl.worksheet.worksheet import Worksheet

from workbook_extraction.config import Settings
from workbook_extraction.excel_document import (
    CellValue,
    ColumnMeta,
    DataValidationRule,
    DefinedName,
    ExcelCell,
    ExcelSheet,
    ExcelWorkbook,
    MergeRegion,
    MergeState,
    RowMeta,
)
from workbook_extraction.services.format_detector import FormatDetector
from workbook_extraction.services.number_format import format_display_text
from workbook_extraction.services.style_repair import strip_invalid_style_references
from workbook_extraction.utils.exceptions import (
    ErrorCode,
    ExtractionError,
    FileTooLargeError,
    SourceNotFoundError,
    WorkbookParseError,
)
from workbook_extraction.utils.logging import (
    LogContext,
    PerformanceMetrics,
    get_logger,
    timed_operation,
)

logger = get_logger(__name__)

# openpyxl gives unsized columns this width
DEFAULT_COLUMN_WIDTH = 13.0


@dataclass
class ExcelExtractionOptions:
    """Options controlling Excel extraction behaviour."""

    max_file_size_bytes: int | None = None
    check_format: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> ExcelExtractionOptions:
        return cls(max_file_size_bytes=settings.max_file_size_bytes)


@dataclass(frozen=True)
class _ValidationArea:
    rule: DataValidationRule
    bounds: tuple[tuple[int, int, int, int], ...]
    order: int

    def covers(self, row: int, col: int) -> bool:
        return any(
            min_row <= row <= max_row and min_col <= col <= max_col
            for min_row, min_col, max_row, max_col in self.bounds
        )


class ExcelExtractor:
    """Extract every sheet of a workbook using openpyxl.

    The source bytes are read once and parsed twice: once for formulas and
    once for the cached results Excel stored alongside them.
    """

    def __init__(self, format_detector: FormatDetector | None = None) -> None:
        self._format_detector = format_detector

    @property
    def format_detector(self) -> FormatDetector:
        if self._format_detector is None:
            self._format_detector = FormatDetector()
        return self._format_detector

    def extract_from_path(
        self, file_path: str | Path, options: ExcelExtractionOptions | None = None
    ) -> ExcelWorkbook:
        """Extract a complete structured representation of a workbook.

        Raises:
            ExtractionError: If the file is missing, too large, not a
                spreadsheet container or cannot be parsed.
        """
        path = Path(file_path)
        opts = options or ExcelExtractionOptions()
        content = self._read_source(path, opts)

        with LogContext(source=path.name):
            if opts.check_format:
                self.format_detector.detect_from_content(content, filename=path.name)

            workbook, computed_wb, broken_styles = self._load_pair(content, path)

            with timed_operation(logger, "extract_workbook") as metrics:
                sheet_names = workbook.sheetnames
                sheets: list[ExcelSheet] = []
                for index, name in enumerate(sheet_names, start=1):
                    with LogContext(sheet=name):
                        sheets.append(
                            self._extract_sheet(
                                workbook[name],
                                computed_wb[name],
                                metrics,
                                broken_styles.get(name, set()),
                            )
                        )
                    logger.log_progress("Extracting sheets", index, len(sheet_names))
                defined_names = self._extract_defined_names(workbook)

        return ExcelWorkbook(
            file=path.name,
            read_at=datetime.now(UTC),
            sheets=sheets,
            defined_names=defined_names,
        )

    def get_sheet_names(self, file_path: str | Path) -> list[str]:
        """List all sheet names in a workbook."""
        path = Path(file_path)
        content = self._read_source(path, ExcelExtractionOptions())
        wb = self._load(content, path, data_only=True, read_only=True)
        try:
            return list(wb.sheetnames)
        finally:
            wb.close()

    def extract_as_dataframe(
        self, file_path: str | Path, sheet_name: str | None = None
    ) -> pd.DataFrame:
        """Extract a worksheet's values as a pandas DataFrame.

        Formula cells contribute their cached results; the first row is
        used as the header.
        """
        document = self.extract_from_path(file_path)
        if not document.sheets:
            raise ExtractionError(
                "Workbook has no sheets", file_path=str(file_path)
            )
        target = sheet_name or document.sheets[0].name
        if target not in document.sheet_names:
            raise ValueError(f"Sheet '{target}' not found in workbook")
        sheet = document.sheet(target)
        data = [[cell.value.to_json() for cell in row] for row in sheet.rows]
        headers = data[0] if data else []
        rows = data[1:] if len(data) > 1 else []
        return pd.DataFrame(rows, columns=headers if headers else None)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _read_source(path: Path, opts: ExcelExtractionOptions) -> bytes:
        if not path.is_file():
            raise SourceNotFoundError(str(path))
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise ExtractionError(
                f"Unable to read {path}: {exc}",
                error_code=ErrorCode.FILE_READ_ERROR,
                file_path=str(path),
            ) from exc
        max_size = opts.max_file_size_bytes
        if max_size is not None and len(content) > max_size:
            raise FileTooLargeError(len(content), max_size, file_path=str(path))
        return content

    def _load_pair(
        self, content: bytes, path: Path
    ) -> tuple[Workbook, Workbook, dict[str, set[str]]]:
        """Formula and cached-result workbooks, plus cells whose style was dropped.

        A style index past the stylesheet makes openpyxl fail the whole load
        with ``IndexError``; such references are stripped from a copy of the
        package and the affected addresses are returned per sheet.
        """
        try:
            return (
                self._load(content, path, data_only=False),
                self._load(content, path, data_only=True),
                {},
            )
        except WorkbookParseError as exc:
            if not isinstance(exc.__cause__, IndexError):
                raise
            try:
                repaired, broken = strip_invalid_style_references(content)
            except (zipfile.BadZipFile, KeyError, ET.ParseError):
                raise exc from exc.__cause__
            if not broken:
                raise

        logger.warning(
            "Invalid cell style references removed, exporting their style as null",
            sheets=",".join(broken),
            cells=sum(len(addresses) for addresses in broken.values()),
        )
        return (
            self._load(repaired, path, data_only=False),
            self._load(repaired, path, data_only=True),
            broken,
        )

    @staticmethod
    def _load(
        content: bytes, path: Path, *, data_only: bool, read_only: bool = False
    ) -> Workbook:
        try:
            return load_workbook(
                filename=io.BytesIO(content), data_only=data_only, read_only=read_only
            )
        except Exception as exc:
            # openpyxl surfaces corrupt containers as many unrelated types
            raise WorkbookParseError(
                f"Unable to read workbook {path.name}: {exc}",
                cause=f"{type(exc).__name__}: {exc}",
                file_path=str(path),
            ) from exc

    def _extract_sheet(
        self,
        sheet: Any,
        computed_sheet: Any,
        metrics: PerformanceMetrics,
        broken_styles: set[str] | None = None,
    ) -> ExcelSheet:
        """Extract a single worksheet; chartsheets yield an empty grid."""
        if not isinstance(sheet, Worksheet):
            metrics.sheets_processed += 1
            return ExcelSheet(name=sheet.title, rows=[])

        max_row, max_col = self._used_range(sheet)
        merges = self._extract_merges(sheet)
        merge_lookup = self._merge_lookup(merges)
        areas = self._validation_areas(sheet)
        logger.debug("Extracting sheet", rows=max_row, cols=max_col)

        rows: list[list[ExcelCell]] = []
        if max_row and max_col:
            row_iter: Iterable[tuple[Cell, ...]] = sheet.iter_rows(
                min_row=1, max_row=max_row, min_col=1, max_col=max_col
            )
            computed_iter = computed_sheet.iter_rows(
                min_row=1, max_row=max_row, min_col=1, max_col=max_col
            )
            for row_cells, computed_cells in zip(row_iter, computed_iter, strict=True):
                excel_row: list[ExcelCell] = []
                for cell, computed_cell in zip(row_cells, computed_cells, strict=True):
                    excel_row.append(
                        self._build_cell(
                            cell,
                            computed_cell,
                            merge_region=merge_lookup.get((cell.row, cell.column)),
                            validation_areas=areas,
                            metrics=metrics,
                            broken_style=cell.coordinate in (broken_styles or ()),
                        )
                    )
                rows.append(excel_row)

        metrics.sheets_processed += 1
        return ExcelSheet(
            name=sheet.title,
            rows=rows,
            merges=merges,
            columns=self._extract_columns(sheet),
            rows_meta=self._extract_rows_meta(sheet),
            data_validations=[area.rule for area in areas],
        )

    @staticmethod
    def _used_range(sheet: Worksheet) -> tuple[int, int]:
        """Max row and column over every stored cell.

        Stored cells include formatted-only cells and merge members.
        ``max_row``/``max_column`` report 1 even when openpyxl holds no cell
        at all, so the worksheet's private ``_cells`` mapping (coordinate
        tuple to ``Cell``, filled by the reader) decides emptiness.
        """
        if not sheet._cells:
            return 0, 0
        return sheet.max_row, sheet.max_column

    def _build_cell(
        self,
        cell: Cell,
        computed_cell: Cell,
        *,
        merge_region: MergeRegion | None,
        validation_areas: list[_ValidationArea],
        metrics: PerformanceMetrics,
        broken_style: bool = False,
    ) -> ExcelCell:
        """Create an ExcelCell; optional fields degrade to None on failure."""
        address = cell.coordinate
        formula = None
        if cell.data_type == "f":
            formula = self._formula_text(cell.value)
            value = CellValue.from_python(computed_cell.value, computed_cell.data_type)
        else:
            value = CellValue.from_python(cell.value, cell.data_type)

        failures: list[str] = []
        has_content = formula is not None or not value.is_empty

        def read_number_format() -> str | None:
            self._check_style(address, broken_style)
            return cell.number_format if has_content or cell.has_style else None

        def read_style() -> int | None:
            self._check_style(address, broken_style)
            return cell.style_id if cell.has_style else None

        number_format = self._degradable(
            address, "number_format", read_number_format, failures
        )
        style = self._degradable(address, "style", read_style, failures)
        display_text = self._degradable(
            address,
            "display_text",
            lambda: format_display_text(value, number_format),
            failures,
        )
        data_validation = self._degradable(
            address,
            "data_validation",
            lambda: self._rule_for(cell.row, cell.column, validation_areas),
            failures,
        )

        merge_state = MergeState.STANDALONE
        master = None
        if merge_region is not None:
            is_anchor = merge_region.is_anchor(cell.row, cell.column)
            merge_state = MergeState.ANCHOR if is_anchor else MergeState.MEMBER
            master = merge_region.start

        metrics.cells_processed += 1
        if failures:
            metrics.degraded_cells += 1

        return ExcelCell(
            address=address,
            row=cell.row,
            col=cell.column,
            value=value,
            formula=formula,
            display_text=display_text,
            number_format=number_format,
            style=style,
            data_validation=data_validation,
            merge_state=merge_state,
            master=master,
        )

    @staticmethod
    def _degradable(
        address: str,
        field_name: str,
        getter: Callable[[], Any],
        failures: list[str],
    ) -> Any:
        try:
            return getter()
        except Exception as e:
            logger.warning(
                "Cell field unreadable, exporting null",
                address=address,
                field=field_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            failures.append(field_name)
            return None

    @staticmethod
    def _check_style(address: str, broken_style: bool) -> None:
        if broken_style:
            raise LookupError(f"style reference of {address} is outside the stylesheet")

    @staticmethod
    def _formula_text(raw: Any) -> str:
        """Formula without its leading '='; array formulas expose ``text``.

        Data-table cells carry no formula text and are written the way Excel
        shows them, ``TABLE(row_input,column_input)``.
        """
        if isinstance(raw, DataTableFormula):
            return _data_table_text(raw)
        text = getattr(raw, "text", None) or str(raw)
        return text[1:] if text.startswith("=") else text

    @staticmethod
    def _extract_merges(sheet: Worksheet) -> list[MergeRegion]:
        ranges = sorted(
            sheet.merged_cells.ranges,
            key=lambda r: (r.min_row, r.min_col, r.max_row, r.max_col),
        )
        return [
            MergeRegion(
                ref=rng.coord,
                min_row=rng.min_row,
                min_col=rng.min_col,
                max_row=rng.max_row,
                max_col=rng.max_col,
            )
            for rng in ranges
        ]

    @staticmethod
    def _merge_lookup(merges: list[MergeRegion]) -> dict[tuple[int, int], MergeRegion]:
        lookup: dict[tuple[int, int], MergeRegion] = {}
        for region in merges:
            for row in range(region.min_row, region.max_row + 1):
                for col in range(region.min_col, region.max_col + 1):
                    lookup[(row, col)] = region
        return lookup

    @staticmethod
    def _extract_columns(sheet: Worksheet) -> list[ColumnMeta]:
        default_width = sheet.sheet_format.defaultColWidth or DEFAULT_COLUMN_WIDTH
        columns: list[ColumnMeta] = []
        for key, dim in sheet.column_dimensions.items():
            custom_width = dim.width is not None and dim.width != default_width
            if not (custom_width or dim.hidden or dim.outline_level):
                continue
            columns.append(
                ColumnMeta(
                    key=key,
                    min=dim.min,
                    max=dim.max,
                    width=dim.width if custom_width else None,
                    hidden=bool(dim.hidden),
                    outline_level=dim.outline_level or 0,
                )
            )
        return sorted(columns, key=lambda c: c.min)

    @staticmethod
    def _extract_rows_meta(sheet: Worksheet) -> list[RowMeta]:
        rows_meta: list[RowMeta] = []
        for index, dim in sheet.row_dimensions.items():
            if dim.ht is None and not dim.hidden and not dim.outline_level:
                continue
            rows_meta.append(
                RowMeta(
                    row=index,
                    height=dim.ht,
                    hidden=bool(dim.hidden),
                    outline_level=dim.outline_level or 0,
                )
            )
        return sorted(rows_meta, key=lambda r: r.row)

    @staticmethod
    def _to_rule(dv: Any) -> DataValidationRule:
        area = sum(
            (rng.max_row - rng.min_row + 1) * (rng.max_col - rng.min_col + 1)
            for rng in dv.sqref.ranges
        )
        return DataValidationRule(
            sqref=str(dv.sqref),
            type=dv.type,
            operator=dv.operator,
            formula1=dv.formula1,
            formula2=dv.formula2,
            allow_blank=bool(dv.allowBlank),
            show_dropdown=bool(dv.showDropDown),
            show_input_message=bool(dv.showInputMessage),
            show_error_message=bool(dv.showErrorMessage),
            error_style=dv.errorStyle,
            error_title=dv.errorTitle,
            error=dv.error,
            prompt_title=dv.promptTitle,
            prompt=dv.prompt,
            area=area,
        )

    def _validation_areas(self, sheet: Worksheet) -> list[_ValidationArea]:
        return [
            _ValidationArea(
                rule=self._to_rule(dv),
                bounds=tuple(
                    (rng.min_row, rng.min_col, rng.max_row, rng.max_col)
                    for rng in dv.sqref.ranges
                ),
                order=order,
            )
            for order, dv in enumerate(sheet.data_validations.dataValidation)
        ]

    @staticmethod
    def _rule_for(
        row: int, col: int, areas: list[_ValidationArea]
    ) -> DataValidationRule | None:
        """Most specific rule covering a cell; later rules win ties."""
        matches = [area for area in areas if area.covers(row, col)]
        if not matches:
            return None
        return min(matches, key=lambda a: (a.rule.area, -a.order)).rule

    @staticmethod
    def _extract_defined_names(workbook: Workbook) -> list[DefinedName] | None:
        names = [
            DefinedName(
                name=name,
                ref=defn.attr_text,
                hidden=bool(defn.hidden),
                comment=defn.comment,
            )
            for name, defn in workbook.defined_names.items()
        ]
        for sheet in workbook.worksheets:
            names.extend(
                DefinedName(
                    name=name,
                    ref=defn.attr_text,
                    scope=sheet.title,
                    hidden=bool(defn.hidden),
                    comment=defn.comment,
                )
                for name, defn in sheet.defined_names.items()
            )
        return names or None


def _data_table_text(formula: DataTableFormula) -> str:
    def flag(value: Any) -> bool:
        return value in (True, 1, "1", "true")

    first = formula.r1 or ""
    if flag(formula.dt2D):
        row_input, column_input = first, formula.r2 or ""
    elif flag(formula.dtr):
        row_input, column_input = first, ""
    else:
        row_input, column_input = "", first
    return f"TABLE({row_input},{column_input})"


def extract(
    file_path: str | Path, options: ExcelExtractionOptions | None = None
) -> ExcelWorkbook:
    """Extract a workbook with a default ExcelExtractor."""
    return ExcelExtractor().extract_from_path(file_path, options)
