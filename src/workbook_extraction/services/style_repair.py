"""Repair of cell style references that point past the stylesheet.

openpyxl resolves every ``<c s="N">`` against the workbook's cell formats
while loading, and an index outside that list aborts the whole load with an
``IndexError``. ``strip_invalid_style_references`` rewrites an in-memory
copy of the package with those ``s`` attributes removed and reports which
cells lost their style, so the extractor can null just those fields.
"""

from __future__ import annotations

import io
import posixpath
import re
import zipfile
from xml.etree import ElementTree as ET

SPREADSHEET_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
DOCUMENT_REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PACKAGE_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
NS = {"a": SPREADSHEET_NS, "r": DOCUMENT_REL_NS}

WORKBOOK_PART = "xl/workbook.xml"
WORKBOOK_RELS_PART = "xl/_rels/workbook.xml.rels"
STYLES_PART = "xl/styles.xml"

_CELL_TAG_RE = re.compile(rb"<(?:[A-Za-z_][\w.-]*:)?c\s[^>]*>")
_STYLE_ATTR_RE = re.compile(rb"""\ss=(["'])(\d+)\1""")
_REF_ATTR_RE = re.compile(rb"""\sr=(["'])([A-Za-z]{1,3}[0-9]+)\1""")


def resolve_target(base_part: str, target: str) -> str:
    """Resolve a relationship target against the part that declares it."""
    joined = posixpath.normpath(posixpath.join(posixpath.dirname(base_part), target))
    return joined.lstrip("/")


def cell_format_count(archive: zipfile.ZipFile) -> int:
    """Number of cell formats openpyxl will index ``s`` attributes into.

    Without a styles part openpyxl keeps its single default format.
    """
    try:
        root = ET.fromstring(archive.read(STYLES_PART))
    except KeyError:
        return 1
    return len(root.findall("a:cellXfs/a:xf", NS))


def worksheet_parts(archive: zipfile.ZipFile) -> dict[str, str]:
    """Map worksheet part paths to sheet names via the workbook relationships."""
    rels_root = ET.fromstring(archive.read(WORKBOOK_RELS_PART))
    targets = {
        rel.attrib["Id"]: rel.attrib["Target"]
        for rel in rels_root.findall(f"{{{PACKAGE_REL_NS}}}Relationship")
        if "Id" in rel.attrib and "Target" in rel.attrib
    }
    workbook_root = ET.fromstring(archive.read(WORKBOOK_PART))
    parts: dict[str, str] = {}
    for sheet in workbook_root.findall("a:sheets/a:sheet", NS):
        target = targets.get(sheet.attrib.get(f"{{{DOCUMENT_REL_NS}}}id", ""))
        if target:
            parts[resolve_target(WORKBOOK_PART, target)] = sheet.attrib.get("name", "")
    return parts


def _strip_cells(xml: bytes, limit: int) -> tuple[bytes, set[str]]:
    stripped: set[str] = set()

    def fix(match: re.Match[bytes]) -> bytes:
        tag = match.group(0)
        style = _STYLE_ATTR_RE.search(tag)
        if style is None or int(style.group(2)) < limit:
            return tag
        ref = _REF_ATTR_RE.search(tag)
        if ref is not None:
            stripped.add(ref.group(2).decode("ascii").upper())
        return tag[: style.start()] + tag[style.end() :]

    return _CELL_TAG_RE.sub(fix, xml), stripped


def strip_invalid_style_references(content: bytes) -> tuple[bytes, dict[str, set[str]]]:
    """Drop out-of-range ``s`` attributes from every worksheet part.

    Returns:
        The repaired package bytes, and for each affected sheet the
        addresses whose style reference was removed. When nothing needed
        repair the original bytes come back with an empty mapping.

    Raises:
        zipfile.BadZipFile: ``content`` is not a ZIP archive.
        KeyError: The workbook part or its relationships are missing.
    """
    with zipfile.ZipFile(io.BytesIO(content)) as source:
        limit = cell_format_count(source)
        sheets = worksheet_parts(source)
        repaired: dict[str, bytes] = {}
        affected: dict[str, set[str]] = {}
        for part, name in sheets.items():
            if part not in source.namelist():
                continue
            original = source.read(part)
            xml, stripped = _strip_cells(original, limit)
            if xml != original:
                repaired[part] = xml
                affected[name] = stripped

        if not repaired:
            return content, {}

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as target:
            for info in source.infolist():
                data = repaired.get(info.filename)
                target.writestr(info, data if data is not None else source.read(info))
    return buffer.getvalue(), affected
