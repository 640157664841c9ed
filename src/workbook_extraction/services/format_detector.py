"""Spreadsheet container detection.

This module confirms that an input is an Office Open XML spreadsheet before
it is handed to the workbook reader, using magic bytes (file content
signatures) with a file-extension fallback for generic ZIP detections.
"""

import io
import zipfile
from pathlib import Path

import magic

from workbook_extraction.models import SpreadsheetFormat
from workbook_extraction.utils.exceptions import UnsupportedFormatError
from workbook_extraction.utils.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "FormatDetector",
    "UnsupportedFormatError",
    "EXTENSION_TO_MIME",
    "MIME_TO_EXTENSION",
    "SUPPORTED_MIME_TYPES",
]

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLSM_MIME = "application/vnd.ms-excel.sheet.macroEnabled.12"
XLTX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.template"
XLTM_MIME = "application/vnd.ms-excel.template.macroEnabled.12"

EXTENSION_TO_MIME: dict[str, str] = {
    ".xlsx": XLSX_MIME,
    ".xlsm": XLSM_MIME,
    ".xltx": XLTX_MIME,
    ".xltm": XLTM_MIME,
}

MIME_TO_EXTENSION: dict[str, str] = {mime: ext for ext, mime in EXTENSION_TO_MIME.items()}

SUPPORTED_MIME_TYPES: set[str] = set(MIME_TO_EXTENSION)

MACRO_ENABLED_MIME_TYPES: set[str] = {XLSM_MIME, XLTM_MIME}
TEMPLATE_MIME_TYPES: set[str] = {XLTX_MIME, XLTM_MIME}

# Detections that only say "this is a ZIP"; the extension or the archive
# listing decides what kind of ZIP it is
CONTAINER_MIME_TYPES: set[str] = {
    "application/zip",
    "application/x-zip-compressed",
    "application/octet-stream",
}

# Binary BIFF workbooks
LEGACY_MIME_TYPES: set[str] = {
    "application/vnd.ms-excel",
    "application/x-ole-storage",
    "application/CDFV2",
    "application/msword",
}

ZIP_SIGNATURE = b"PK\x03\x04"


class FormatDetector:
    """Detects whether a file is a readable spreadsheet container.

    Uses both magic bytes and the file extension. Generic ZIP detections
    are resolved by the extension, or by looking for the ``xl/`` workbook
    part inside the archive when the extension says nothing.
    """

    def __init__(self) -> None:
        self._magic = magic.Magic(mime=True)

    def detect_from_path(self, file_path: str | Path) -> SpreadsheetFormat:
        """Read ``file_path`` and classify its bytes.

        Raises ``FileNotFoundError`` for a missing path and
        ``UnsupportedFormatError`` for anything but an OOXML spreadsheet.
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        return self.detect_from_content(path.read_bytes(), filename=path.name)

    def detect_from_content(
        self,
        content: bytes,
        filename: str | None = None,
    ) -> SpreadsheetFormat:
        """Classify already-read bytes.

        Args:
            content: Whole file content.
            filename: Name used for the extension fallback and in errors.

        Raises:
            UnsupportedFormatError: The bytes are not a supported spreadsheet.
        """
        suffix = Path(filename).suffix.lower() if filename else ""
        return self._detect(content, suffix or None, filename)

    def _detect(
        self,
        content: bytes,
        original_extension: str | None,
        filename: str | None,
    ) -> SpreadsheetFormat:
        """Magic bytes win when they name a spreadsheet type. BIFF files are
        rejected next, then generic ZIP detections fall back to the extension
        and finally to the archive listing.
        """
        if not content:
            raise UnsupportedFormatError(
                "File is empty; expected a spreadsheet (.xlsx)", file_path=filename
            )

        detected_mime = self._detect_mime_from_content(content)
        mime_from_extension = EXTENSION_TO_MIME.get(original_extension or "")

        if detected_mime in SUPPORTED_MIME_TYPES:
            mismatched = None
            if mime_from_extension and mime_from_extension != detected_mime:
                mismatched = original_extension
                logger.warning(
                    "Extension disagrees with the detected spreadsheet type",
                    extension=original_extension,
                    detected_mime=detected_mime,
                )
            return self._build(detected_mime, True, mismatched)

        if detected_mime in LEGACY_MIME_TYPES or original_extension == ".xls":
            raise UnsupportedFormatError(
                "Legacy binary workbooks (.xls) are not supported; "
                "save the file as .xlsx and try again",
                detected_mime=detected_mime,
                file_path=filename,
            )

        is_zip = content.startswith(ZIP_SIGNATURE)
        if is_zip and (detected_mime is None or detected_mime in CONTAINER_MIME_TYPES):
            if mime_from_extension:
                return self._build(mime_from_extension, False, None)
            if self._archive_has_workbook(content):
                return self._build(XLSX_MIME, True, original_extension)

        if detected_mime:
            raise UnsupportedFormatError(
                f"Unsupported document format: {detected_mime}",
                detected_mime=detected_mime,
                file_path=filename,
            )
        raise UnsupportedFormatError(
            "Could not recognise the file; expected a workbook saved as .xlsx",
            detected_mime=None,
            file_path=filename,
        )

    @staticmethod
    def _build(
        mime_type: str, detected_from_content: bool, original_extension: str | None
    ) -> SpreadsheetFormat:
        return SpreadsheetFormat(
            mime_type=mime_type,
            extension=MIME_TO_EXTENSION[mime_type],
            macro_enabled=mime_type in MACRO_ENABLED_MIME_TYPES,
            is_template=mime_type in TEMPLATE_MIME_TYPES,
            detected_from_content=detected_from_content,
            original_extension=original_extension,
        )

    def _detect_mime_from_content(self, content: bytes) -> str | None:
        """libmagic's MIME guess, or None when libmagic itself fails."""
        try:
            return self._magic.from_buffer(content)
        except Exception as e:
            logger.warning(
                "libmagic could not classify the content",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    @staticmethod
    def _archive_has_workbook(content: bytes) -> bool:
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as archive:
                names = archive.namelist()
        except zipfile.BadZipFile:
            return False
        return "[Content_Types].xml" in names and any(
            name.startswith("xl/") for name in names
        )

    @staticmethod
    def get_supported_extensions() -> list[str]:
        """Accepted extensions, dot included, in sorted order."""
        return sorted(EXTENSION_TO_MIME.keys())
