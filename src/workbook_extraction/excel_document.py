"""Dataclasses representing an extracted Excel workbook.

The classes mirror the output document one-to-one: every ``to_dict`` method
returns exactly the JSON shape written by the output writer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from typing import Any

from openpyxl.utils.cell import coordinate_to_tuple


class ValueKind(str, Enum):
    """Type tag of a cell value, as written to the ``t`` field."""

    NUMBER = "n"
    STRING = "s"
    BOOLEAN = "b"
    DATE = "d"
    ERROR = "e"
    EMPTY = "z"


class MergeState(str, Enum):
    """Position of a cell relative to the merge regions of its sheet."""

    STANDALONE = "standalone"
    ANCHOR = "anchor"
    MEMBER = "member"


@dataclass(frozen=True)
class CellValue:
    """Tagged cell value.

    ``value`` keeps the Python object produced by the reader (``datetime``
    for dates, ``int``/``float`` for numbers); ``to_json`` converts it for
    the output document.
    """

    kind: ValueKind
    value: Any = None

    @classmethod
    def empty(cls) -> CellValue:
        return cls(ValueKind.EMPTY, None)

    @classmethod
    def from_python(cls, value: Any, data_type: str | None = None) -> CellValue:
        """Build a tagged value from a reader value and its data type code."""
        if value is None:
            return cls.empty()
        if data_type == "e":
            return cls(ValueKind.ERROR, str(value))
        # bool is a subclass of int
        if isinstance(value, bool):
            return cls(ValueKind.BOOLEAN, value)
        if isinstance(value, (int, float)):
            return cls(ValueKind.NUMBER, value)
        if isinstance(value, (datetime, date, time, timedelta)):
            return cls(ValueKind.DATE, value)
        return cls(ValueKind.STRING, str(value))

    @property
    def is_empty(self) -> bool:
        return self.kind is ValueKind.EMPTY

    def to_json(self) -> Any:
        if self.kind is ValueKind.DATE:
            if isinstance(self.value, timedelta):
                return str(self.value)
            return self.value.isoformat()
        return self.value


@dataclass(frozen=True)
class MergeRegion:
    """A rectangular merged range anchored at its top-left cell."""

    ref: str
    min_row: int
    min_col: int
    max_row: int
    max_col: int

    @property
    def start(self) -> str:
        return self.ref.split(":")[0]

    @property
    def end(self) -> str:
        return self.ref.split(":")[-1]

    def is_anchor(self, row: int, col: int) -> bool:
        return row == self.min_row and col == self.min_col

    def to_dict(self) -> dict[str, Any]:
        return {"ref": self.ref, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class ColumnMeta:
    """Column dimension that deviates from the sheet defaults."""

    key: str
    min: int
    max: int
    width: float | None
    hidden: bool
    outline_level: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "min": self.min,
            "max": self.max,
            "width": self.width,
            "hidden": self.hidden,
            "outlineLevel": self.outline_level,
        }


@dataclass(frozen=True)
class RowMeta:
    """Row dimension that deviates from the sheet defaults."""

    row: int
    height: float | None
    hidden: bool
    outline_level: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "height": self.height,
            "hidden": self.hidden,
            "outlineLevel": self.outline_level,
        }


@dataclass(frozen=True)
class DataValidationRule:
    """A data-validation constraint attached to one or more ranges."""

    sqref: str
    type: str | None = None
    operator: str | None = None
    formula1: str | None = None
    formula2: str | None = None
    allow_blank: bool = False
    show_dropdown: bool = False
    show_input_message: bool = False
    show_error_message: bool = False
    error_style: str | None = None
    error_title: str | None = None
    error: str | None = None
    prompt_title: str | None = None
    prompt: str | None = None
    area: int = 0
    """Number of cells covered by ``sqref``; narrower rules win per cell."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "sqref": self.sqref,
            "type": self.type,
            "operator": self.operator,
            "formula1": self.formula1,
            "formula2": self.formula2,
            "allowBlank": self.allow_blank,
            "showDropDown": self.show_dropdown,
            "showInputMessage": self.show_input_message,
            "showErrorMessage": self.show_error_message,
            "errorStyle": self.error_style,
            "errorTitle": self.error_title,
            "error": self.error,
            "promptTitle": self.prompt_title,
            "prompt": self.prompt,
        }


@dataclass(frozen=True)
class DefinedName:
    """A named reference, workbook scoped unless ``scope`` names a sheet."""

    name: str
    ref: str | None
    scope: str | None = None
    hidden: bool = False
    comment: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ref": self.ref,
            "scope": self.scope,
            "hidden": self.hidden,
            "comment": self.comment,
        }


@dataclass
class ExcelCell:
    """Represents a single Excel cell with type, formula and merge metadata."""

    address: str
    row: int
    col: int
    value: CellValue = field(default_factory=CellValue.empty)
    formula: str | None = None
    display_text: str | None = None
    number_format: str | None = None
    style: int | None = None
    data_validation: DataValidationRule | None = None
    merge_state: MergeState = MergeState.STANDALONE
    master: str | None = None

    @property
    def is_merged(self) -> bool:
        return self.merge_state is not MergeState.STANDALONE

    @property
    def authoritative_content(self) -> Any:
        """Formula text when present, otherwise the stored value.

        Cached formula results may be stale, so the formula wins.
        """
        if self.formula is not None:
            return self.formula
        return self.value.to_json()

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "row": self.row,
            "col": self.col,
            "t": self.value.kind.value,
            "v": self.value.to_json(),
            "f": self.formula,
            "w": self.display_text,
            "z": self.number_format,
            "style": self.style,
            "dataValidation": (
                self.data_validation.to_dict() if self.data_validation else None
            ),
            "isMerged": self.is_merged,
            "master": self.master,
        }


@dataclass
class ExcelSheet:
    """Represents a single worksheet bounded by its used range."""

    name: str
    rows: list[list[ExcelCell]]
    merges: list[MergeRegion] = field(default_factory=list)
    columns: list[ColumnMeta] = field(default_factory=list)
    rows_meta: list[RowMeta] = field(default_factory=list)
    data_validations: list[DataValidationRule] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    def cell(self, address: str) -> ExcelCell:
        """Look up a cell record by its A1 address.

        Raises:
            KeyError: If the address lies outside the used range.
        """
        row, col = coordinate_to_tuple(address)
        if not (1 <= row <= self.row_count and 1 <= col <= self.column_count):
            raise KeyError(f"{address} is outside the used range of {self.name!r}")
        return self.rows[row - 1][col - 1]

    def resolve_value(self, address: str) -> CellValue:
        """Read a cell value, following merge members to their anchor."""
        target = self.cell(address)
        if target.merge_state is MergeState.MEMBER and target.master:
            target = self.cell(target.master)
        return target.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [[cell.display_text for cell in row] for row in self.rows],
            "rowsDetailed": [[cell.to_dict() for cell in row] for row in self.rows],
            "merges": [merge.to_dict() for merge in self.merges],
            "cols": [col.to_dict() for col in self.columns] or None,
            "rowsMeta": [meta.to_dict() for meta in self.rows_meta],
            "dataValidation": (
                {
                    "count": len(self.data_validations),
                    "rules": [rule.to_dict() for rule in self.data_validations],
                }
                if self.data_validations
                else None
            ),
        }


def format_timestamp(moment: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with milliseconds and a ``Z``."""
    return (
        moment.astimezone(UTC)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass
class ExcelWorkbook:
    """Represents an extracted workbook with its sheets in document order."""

    file: str
    read_at: datetime
    sheets: list[ExcelSheet]
    defined_names: list[DefinedName] | None = None

    @property
    def sheet_count(self) -> int:
        return len(self.sheets)

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def sheet(self, name: str) -> ExcelSheet:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        raise KeyError(f"Sheet '{name}' not found in workbook")

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "readAt": format_timestamp(self.read_at),
            "sheetCount": self.sheet_count,
            "definedNames": (
                [name.to_dict() for name in self.defined_names]
                if self.defined_names
                else None
            ),
            "sheets": {sheet.name: sheet.to_dict() for sheet in self.sheets},
        }
