"""Hand-written OOXML workbooks for tests.

openpyxl never writes cached formula results or empty-string cells, so
workbooks that need them are assembled here part by part.
"""

from __future__ import annotations

import zipfile
from pathlib import Path
from xml.sax.saxutils import escape

MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"

XML_HEADER = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'


def _content_types(sheet_count: int) -> str:
    overrides = "".join(
        f'<Override PartName="/xl/worksheets/sheet{i}.xml" '
        'ContentType="application/vnd.openxmlformats-officedocument.'
        'spreadsheetml.worksheet+xml"/>'
        for i in range(1, sheet_count + 1)
    )
    return (
        XML_HEADER
        + '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        '<Default Extension="rels" '
        'ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
        '<Default Extension="xml" ContentType="application/xml"/>'
        '<Override PartName="/xl/workbook.xml" '
        'ContentType="application/vnd.openxmlformats-officedocument.'
        'spreadsheetml.sheet.main+xml"/>'
        + overrides
        + '<Override PartName="/xl/sharedStrings.xml" '
        'ContentType="application/vnd.openxmlformats-officedocument.'
        'spreadsheetml.sharedStrings+xml"/>'
        "</Types>"
    )


def _root_rels() -> str:
    return (
        XML_HEADER
        + f'<Relationships xmlns="{PKG_REL_NS}">'
        f'<Relationship Id="rId1" Type="{REL_NS}/officeDocument" '
        'Target="xl/workbook.xml"/>'
        "</Relationships>"
    )


def _workbook(names: list[str]) -> str:
    sheets = "".join(
        f'<sheet name="{escape(name)}" sheetId="{i}" r:id="rId{i}"/>'
        for i, name in enumerate(names, start=1)
    )
    return (
        XML_HEADER
        + f'<workbook xmlns="{MAIN_NS}" xmlns:r="{REL_NS}">'
        "<bookViews><workbookView/></bookViews>"
        f"<sheets>{sheets}</sheets>"
        "</workbook>"
    )


def _workbook_rels(sheet_count: int) -> str:
    rels = "".join(
        f'<Relationship Id="rId{i}" Type="{REL_NS}/worksheet" '
        f'Target="worksheets/sheet{i}.xml"/>'
        for i in range(1, sheet_count + 1)
    )
    return (
        XML_HEADER
        + f'<Relationships xmlns="{PKG_REL_NS}">'
        + rels
        + f'<Relationship Id="rIdStrings" Type="{REL_NS}/sharedStrings" '
        'Target="sharedStrings.xml"/>'
        "</Relationships>"
    )


def _shared_strings(strings: list[str]) -> str:
    items = "".join(f"<si><t>{escape(s)}</t></si>" for s in strings)
    return (
        XML_HEADER
        + f'<sst xmlns="{MAIN_NS}" count="{len(strings)}" '
        f'uniqueCount="{len(strings)}">{items}</sst>'
    )


def _worksheet(body: str) -> str:
    return XML_HEADER + f'<worksheet xmlns="{MAIN_NS}">{body}</worksheet>'


def write_ooxml_workbook(
    path: Path,
    sheets: dict[str, str],
    shared_strings: list[str] | None = None,
) -> Path:
    """Zip a minimal workbook.

    Args:
        path: Target file.
        sheets: Sheet name to worksheet body (``<sheetData>`` and friends).
        shared_strings: Shared string table referenced by ``t="s"`` cells.
    """
    names = list(sheets)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("[Content_Types].xml", _content_types(len(names)))
        archive.writestr("_rels/.rels", _root_rels())
        archive.writestr("xl/workbook.xml", _workbook(names))
        archive.writestr("xl/_rels/workbook.xml.rels", _workbook_rels(len(names)))
        archive.writestr("xl/sharedStrings.xml", _shared_strings(shared_strings or []))
        for i, name in enumerate(names, start=1):
            archive.writestr(f"xl/worksheets/sheet{i}.xml", _worksheet(sheets[name]))
    return path


# A1 holds =1+1 with cached result 2, B1 inline text, C1 an empty shared
# string, D1 nothing at all, E1 a cached error result.
FORMULA_SHEET_BODY = (
    "<sheetData>"
    '<row r="1">'
    '<c r="A1"><f>1+1</f><v>2</v></c>'
    '<c r="B1" t="inlineStr"><is><t>Hi</t></is></c>'
    '<c r="C1" t="s"><v>0</v></c>'
    '<c r="E1" t="e"><f>1/0</f><v>#DIV/0!</v></c>'
    "</row>"
    "</sheetData>"
)


def write_formula_workbook(path: Path) -> Path:
    """One sheet named Sheet1 with cached formula results and an empty string."""
    return write_ooxml_workbook(
        path, {"Sheet1": FORMULA_SHEET_BODY}, shared_strings=[""]
    )


# A1 points at cell format 7 while the package has no stylesheet at all.
BAD_STYLE_SHEET_BODY = (
    "<sheetData>"
    '<row r="1">'
    '<c r="A1" s="7"><v>1</v></c>'
    '<c r="B1"><v>2</v></c>'
    "</row>"
    "</sheetData>"
)

# B2 is a one-variable data table over column input A1, cached result 6.
DATA_TABLE_SHEET_BODY = (
    "<sheetData>"
    '<row r="1"><c r="A1"><v>3</v></c></row>'
    '<row r="2">'
    '<c r="B2"><f t="dataTable" ref="B2:B3" dt2D="0" dtr="0" r1="A1"/><v>6</v></c>'
    "</row>"
    "</sheetData>"
)


def write_bad_style_workbook(path: Path) -> Path:
    return write_ooxml_workbook(path, {"Sheet1": BAD_STYLE_SHEET_BODY})


def write_data_table_workbook(path: Path) -> Path:
    return write_ooxml_workbook(path, {"Sheet1": DATA_TABLE_SHEET_BODY})
