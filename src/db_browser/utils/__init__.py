"""Utility modules for the schema browser."""

from db_browser.utils.formatting import (
    BLOB_STRING_REPRESENTATION,
    DATE_FORMAT,
    DATETIME_FORMAT,
    coerce_input,
    format_row,
    format_rows,
    format_value,
)
from db_browser.utils.serialization import convert_value_to_json_safe, dumps

__all__ = [
    "BLOB_STRING_REPRESENTATION",
    "DATE_FORMAT",
    "DATETIME_FORMAT",
    "coerce_input",
    "convert_value_to_json_safe",
    "dumps",
    "format_row",
    "format_rows",
    "format_value",
]
