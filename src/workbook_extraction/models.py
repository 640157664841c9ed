"""Pydantic models shared by the extraction services."""

from pydantic import BaseModel, Field


class SpreadsheetFormat(BaseModel):
    """Spreadsheet container detection result."""

    mime_type: str = Field(
        ...,
        description=(
            "MIME type of the container "
            "(e.g., 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')"
        ),
    )
    extension: str = Field(
        ..., description="Canonical file extension including the dot (e.g., '.xlsx')"
    )
    macro_enabled: bool = Field(
        default=False, description="Whether the container may carry VBA macros"
    )
    is_template: bool = Field(
        default=False, description="Whether the container is a workbook template"
    )
    detected_from_content: bool = Field(
        default=False,
        description="Whether format was detected from file content (magic bytes)",
    )
    original_extension: str | None = Field(
        default=None,
        description="Original file extension if different from detected format",
    )
