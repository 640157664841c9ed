from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import Workbook
from openpyxl.workbook.defined_name import DefinedName
from openpyxl.worksheet.datavalidation import DataValidation

from tests.fixtures import (
    write_bad_style_workbook,
    write_data_table_workbook,
    write_formula_workbook,
    write_ooxml_workbook,
)


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    """Undo configure_logging calls made by the code under test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def basic_workbook_path(tmp_path: Path) -> Path:
    """Two sheets with typed values, a formula and a merged row."""
    wb = Workbook()
    ws1 = wb.active
    ws1.title = "Sheet1"
    ws1["A1"] = "Name"
    ws1["B1"] = "Amount"
    ws1["A2"] = "Alice"
    ws1["B2"] = 123.45
    ws1["A3"] = "Bob"
    ws1["B3"] = 10
    ws1["C2"] = True
    ws1["D2"] = datetime(2024, 1, 15)
    ws1["E2"] = "=SUM(B2,B3)"
    ws1.merge_cells("A4:B4")
    ws1["A4"] = "Merged"

    ws2 = wb.create_sheet("Sheet2")
    ws2["A1"] = "Secondary"

    path = tmp_path / "basic.xlsx"
    wb.save(path)
    return path


@pytest.fixture
def merged_title_workbook_path(tmp_path: Path) -> Path:
    """A1:B1 merged with "Title" in A1."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Sheet1"
    ws["A1"] = "Title"
    ws.merge_cells("A1:B1")
    path = tmp_path / "merged.xlsx"
    wb.save(path)
    return path


@pytest.fixture
def layout_workbook_path(tmp_path: Path) -> Path:
    """Column widths, row heights, data validation and defined names."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Grades"
    for row in range(1, 4):
        for col in range(1, 4):
            ws.cell(row=row, column=col, value=row * col)

    ws.column_dimensions["B"].width = 30
    ws.column_dimensions["C"].hidden = True
    ws.row_dimensions[2].height = 40
    ws.row_dimensions[3].hidden = True

    wide = DataValidation(type="whole", operator="between", formula1="0", formula2="100")
    wide.add("A1:C3")
    narrow = DataValidation(type="list", formula1='"Yes,No"', allow_blank=True)
    narrow.add("B2")
    ws.add_data_validation(wide)
    ws.add_data_validation(narrow)

    wb.defined_names["Scores"] = DefinedName("Scores", attr_text="Grades!$A$1:$C$3")
    ws.defined_names["Corner"] = DefinedName("Corner", attr_text="Grades!$A$1")

    path = tmp_path / "layout.xlsx"
    wb.save(path)
    return path


@pytest.fixture
def formula_workbook_path(tmp_path: Path) -> Path:
    """Sheet1 with A1 =1+1 (cached 2), B1 "Hi", C1 "" and E1 a cached error."""
    return write_formula_workbook(tmp_path / "formula.xlsx")


@pytest.fixture
def empty_sheet_workbook_path(tmp_path: Path) -> Path:
    """A workbook whose second sheet has no cells at all."""
    return write_ooxml_workbook(
        tmp_path / "sparse.xlsx",
        {
            "Data": '<sheetData><row r="1"><c r="A1"><v>1</v></c></row></sheetData>',
            "Blank": "<sheetData/>",
        },
    )


@pytest.fixture
def bad_style_workbook_path(tmp_path: Path) -> Path:
    """Sheet1 where A1 references a cell format the package does not define."""
    return write_bad_style_workbook(tmp_path / "badstyle.xlsx")


@pytest.fixture
def data_table_workbook_path(tmp_path: Path) -> Path:
    """Sheet1 with a what-if data table anchored at B2."""
    return write_data_table_workbook(tmp_path / "datatable.xlsx")
