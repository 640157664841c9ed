"""Configuration management for workbook extraction.

Settings come from WBX_-prefixed environment variables or a .env file in
the working directory, read through pydantic-settings.

Environment variables:
    WBX_MAX_FILE_SIZE_MB: Optional maximum input size in MB (default: no limit)
    WBX_OUTPUT_SUFFIX: Suffix for derived output paths (default: .raw.json)
    WBX_JSON_INDENT: Indentation of the output JSON (default: 2)
    WBX_VALIDATE_OUTPUT: Validate documents against the output schema (default: true)
    WBX_LOG_LEVEL: Logging level (default: WARNING)
    WBX_DEBUG: Log tracebacks for failures (default: false)
"""

import logging
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class Settings(BaseSettings):
    """Runtime options for the extractor, the writer and the CLI.

    A .env file might hold:
        WBX_MAX_FILE_SIZE_MB=10
        WBX_LOG_LEVEL=INFO
    """

    model_config = SettingsConfigDict(
        env_prefix="WBX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Input

    max_file_size_mb: int | None = None
    """Maximum input size in megabytes. None disables the check."""

    # Output

    output_suffix: str = ".raw.json"
    """Suffix replacing the input extension when no output path is given."""

    json_indent: int | None = 2
    """Indentation for the output document. None writes compact JSON."""

    validate_output: bool = True
    """Validate every document against the output schema before writing."""

    # Logging

    log_level: str = "WARNING"
    """Name of a standard logging level, case-insensitive."""

    debug: bool = False
    """Log tracebacks for failed runs."""

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            choices = ", ".join(_LOG_LEVELS)
            raise ValueError(f"log_level must be one of {choices}, got {v!r}")
        return level

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_file_size(cls, v: int | None) -> int | None:
        if v is not None and not 1 <= v <= 500:
            raise ValueError(f"max_file_size_mb must be between 1 and 500, got {v}")
        return v

    @field_validator("output_suffix")
    @classmethod
    def validate_output_suffix(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2 or "/" in v:
            raise ValueError(f"output_suffix must look like '.raw.json', got {v!r}")
        return v

    @field_validator("json_indent")
    @classmethod
    def validate_json_indent(cls, v: int | None) -> int | None:
        if v is not None and not 0 <= v <= 8:
            raise ValueError(f"json_indent must be between 0 and 8, got {v}")
        return v

    @property
    def max_file_size_bytes(self) -> int | None:
        """Size cap in bytes, None when unlimited."""
        mb = self.max_file_size_mb
        return None if mb is None else mb * 1024 * 1024

    @property
    def log_level_int(self) -> int:
        return _LOG_LEVELS[self.log_level]

    def to_safe_dict(self) -> dict[str, Any]:
        """Every field as a plain dict; nothing here is secret."""
        return self.model_dump()


def validate_settings_on_startup(s: Settings) -> None:
    """Warn about risky settings and log the effective configuration."""
    logger = logging.getLogger(__name__)

    if not s.validate_output:
        logger.warning(
            "Output schema validation is disabled. "
            "Malformed documents will be written without checks."
        )

    logger.info(
        "Configuration loaded: "
        + " ".join(f"{key}={value}" for key, value in s.to_safe_dict().items())
    )

