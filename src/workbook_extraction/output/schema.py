"""JSON schema (Draft 7) of the raw workbook document."""

from typing import Any

NULLABLE_STRING: dict[str, Any] = {"type": ["string", "null"]}

CELL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": [
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
    ],
    "properties": {
        "address": {"type": "string", "pattern": "^[A-Z]{1,3}[1-9][0-9]*$"},
        "row": {"type": "integer", "minimum": 1},
        "col": {"type": "integer", "minimum": 1},
        "t": {"enum": ["n", "s", "b", "d", "e", "z"]},
        "v": {"type": ["number", "string", "boolean", "null"]},
        "f": NULLABLE_STRING,
        "w": NULLABLE_STRING,
        "z": NULLABLE_STRING,
        "style": {"type": ["integer", "null"]},
        "dataValidation": {"type": ["object", "null"]},
        "isMerged": {"type": "boolean"},
        "master": NULLABLE_STRING,
    },
    "additionalProperties": False,
}

MERGE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["ref", "start", "end"],
    "properties": {
        "ref": {"type": "string"},
        "start": {"type": "string"},
        "end": {"type": "string"},
    },
}

COLUMN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["key", "width", "hidden"],
    "properties": {
        "key": {"type": "string"},
        "min": {"type": ["integer", "null"]},
        "max": {"type": ["integer", "null"]},
        "width": {"type": ["number", "null"]},
        "hidden": {"type": "boolean"},
        "outlineLevel": {"type": "integer"},
    },
}

ROW_META_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["row", "height", "hidden"],
    "properties": {
        "row": {"type": "integer", "minimum": 1},
        "height": {"type": ["number", "null"]},
        "hidden": {"type": "boolean"},
        "outlineLevel": {"type": "integer"},
    },
}

VALIDATION_SET_SCHEMA: dict[str, Any] = {
    "type": ["object", "null"],
    "required": ["count", "rules"],
    "properties": {
        "count": {"type": "integer", "minimum": 1},
        "rules": {"type": "array", "items": {"type": "object"}},
    },
}

SHEET_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["rows", "rowsDetailed", "merges", "cols", "rowsMeta", "dataValidation"],
    "properties": {
        "rows": {
            "type": "array",
            "items": {"type": "array", "items": NULLABLE_STRING},
        },
        "rowsDetailed": {
            "type": "array",
            "items": {"type": "array", "items": CELL_SCHEMA},
        },
        "merges": {"type": "array", "items": MERGE_SCHEMA},
        "cols": {"type": ["array", "null"], "items": COLUMN_SCHEMA},
        "rowsMeta": {"type": "array", "items": ROW_META_SCHEMA},
        "dataValidation": VALIDATION_SET_SCHEMA,
    },
}

DEFINED_NAME_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["name", "ref"],
    "properties": {
        "name": {"type": "string"},
        "ref": NULLABLE_STRING,
        "scope": NULLABLE_STRING,
        "hidden": {"type": "boolean"},
        "comment": NULLABLE_STRING,
    },
}

WORKBOOK_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Raw workbook document",
    "type": "object",
    "required": ["file", "readAt", "sheetCount", "definedNames", "sheets"],
    "properties": {
        "file": {"type": "string"},
        "readAt": {"type": "string"},
        "sheetCount": {"type": "integer", "minimum": 0},
        "definedNames": {"type": ["array", "null"], "items": DEFINED_NAME_SCHEMA},
        "sheets": {"type": "object", "additionalProperties": SHEET_SCHEMA},
    },
}
