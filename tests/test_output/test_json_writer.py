"""Tests for the JSON output writer."""

import json
import os
from datetime import UTC, datetime
from pathlib import Path

import pytest

from workbook_extraction.excel_document import (
    CellValue,
    ExcelCell,
    ExcelSheet,
    ExcelWorkbook,
    ValueKind,
)
from workbook_extraction.output.json_writer import (
    JsonWriter,
    ValidationResult,
    default_output_path,
    write_atomic,
)
from workbook_extraction.services.excel_extractor import extract
from workbook_extraction.utils.exceptions import OutputValidationError


def _workbook(sheet_name: str = "Sheet1", address: str = "A1") -> ExcelWorkbook:
    cell = ExcelCell(
        address=address,
        row=1,
        col=1,
        value=CellValue(ValueKind.STRING, "สวัสดี"),
        display_text="สวัสดี",
        number_format="General",
    )
    return ExcelWorkbook(
        file="report.xlsx",
        read_at=datetime(2024, 6, 1, 12, 30, 45, 123456, tzinfo=UTC),
        sheets=[ExcelSheet(name=sheet_name, rows=[[cell]])],
    )


@pytest.fixture
def writer() -> JsonWriter:
    return JsonWriter()


class TestBuild:
    """Tests for the document structure."""

    def test_top_level_fields(self, writer: JsonWriter) -> None:
        document = writer.build(_workbook())

        assert document["file"] == "report.xlsx"
        assert document["readAt"] == "2024-06-01T12:30:45.123Z"
        assert document["sheetCount"] == 1
        assert document["definedNames"] is None
        assert list(document["sheets"]) == ["Sheet1"]

    def test_cell_record_keys(self, writer: JsonWriter) -> None:
        record = writer.build(_workbook())["sheets"]["Sheet1"]["rowsDetailed"][0][0]

        assert list(record) == [
            "address",
            "row",
            "col",
            "t",
            "v",
            "f",
            "w",
            "z",
            "style",
            "dataValidation",
            "isMerged",
            "master",
        ]


class TestValidate:
    """Tests for schema validation."""

    def test_extracted_workbook_is_valid(
        self, writer: JsonWriter, layout_workbook_path: Path
    ) -> None:
        result = writer.validate(writer.build(extract(layout_workbook_path)))

        assert isinstance(result, ValidationResult)
        assert result.is_valid, result.errors

    def test_missing_field_reported_with_path(self, writer: JsonWriter) -> None:
        document = writer.build(_workbook())
        del document["sheets"]["Sheet1"]["rowsDetailed"][0][0]["master"]

        result = writer.validate(document)

        assert result.is_valid is False
        assert any(
            error.startswith("sheets.Sheet1.rowsDetailed.0.0") for error in result.errors
        )

    def test_root_errors(self, writer: JsonWriter) -> None:
        result = writer.validate({})

        assert result.is_valid is False
        assert all(error.startswith("root:") for error in result.errors)
        assert result.to_dict()["is_valid"] is False


class TestWrite:
    """Tests for writing documents to disk."""

    def test_writes_utf8_with_literal_thai(self, writer: JsonWriter, tmp_path: Path) -> None:
        target = writer.write(_workbook(sheet_name="ปพ.5"), tmp_path / "out.json")

        text = target.read_text(encoding="utf-8")
        assert "ปพ.5" in text
        assert "\\u" not in text
        assert json.loads(text)["sheets"]["ปพ.5"]["rows"] == [["สวัสดี"]]

    def test_compact_output(self, tmp_path: Path) -> None:
        target = JsonWriter(indent=None).write(_workbook(), tmp_path / "out.json")

        assert "\n" not in target.read_text(encoding="utf-8")

    def test_overwrites_existing_file(self, writer: JsonWriter, tmp_path: Path) -> None:
        target = tmp_path / "out.json"
        target.write_text("stale")

        writer.write(_workbook(), target)

        assert json.loads(target.read_text(encoding="utf-8"))["file"] == "report.xlsx"
        assert os.listdir(tmp_path) == ["out.json"]

    def test_invalid_document_writes_nothing(
        self, writer: JsonWriter, tmp_path: Path
    ) -> None:
        target = tmp_path / "out.json"

        with pytest.raises(OutputValidationError) as exc_info:
            writer.write(_workbook(address="a1"), target)

        assert exc_info.value.errors
        assert "validation_errors" in exc_info.value.details
        assert not target.exists()

    def test_validation_can_be_disabled(self, tmp_path: Path) -> None:
        target = JsonWriter(validate=False).write(
            _workbook(address="a1"), tmp_path / "out.json"
        )

        assert target.exists()

    def test_missing_directory_raises_os_error(
        self, writer: JsonWriter, tmp_path: Path
    ) -> None:
        with pytest.raises(OSError):
            writer.write(_workbook(), tmp_path / "missing" / "out.json")

        assert os.listdir(tmp_path) == []


class TestWriteAtomic:
    """Tests for the temp-file-and-replace helper."""

    def test_failed_write_leaves_no_temp_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def fail_replace(src: str, dst: str) -> None:
            raise PermissionError("read-only target")

        monkeypatch.setattr(os, "replace", fail_replace)

        with pytest.raises(PermissionError):
            write_atomic(tmp_path / "out.json", "{}")

        assert os.listdir(tmp_path) == []


class TestDefaultOutputPath:
    """Tests for output path derivation."""

    def test_uses_stem_and_suffix_in_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)

        path = default_output_path("/data/uploads/grades.xlsx")

        assert path == Path.cwd() / "grades.raw.json"

    def test_custom_suffix_and_directory(self, tmp_path: Path) -> None:
        path = default_output_path("grades.xlsm", ".dump.json", directory=tmp_path)

        assert path == tmp_path / "grades.dump.json"
