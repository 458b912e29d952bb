"""Per-kind formatting of stored values and coercion of user input.

Each ``ColumnKind`` has exactly one formatter (database value → wire value)
and one coercer (user input → bind parameter). Callers go through
``format_value`` / ``coerce_input`` so the choice is made in one place.
"""

import datetime
import decimal
from typing import Any, Callable, Mapping, Optional

from db_browser.models.query import SqlRow, SqlValue
from db_browser.models.table import ColumnKind
from db_browser.utils.serialization import convert_value_to_json_safe

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
BLOB_STRING_REPRESENTATION = "<blob>"

_TRUE_STRINGS = {"1", "true"}
_FALSE_STRINGS = {"0", "false"}


def parse_date(value: Any) -> Optional[datetime.date]:
    """Parse a stored or user-supplied date. Returns None when invalid."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        try:
            return datetime.datetime.strptime(value.strip(), DATE_FORMAT).date()
        except ValueError:
            return None
    return None


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """Parse a stored or user-supplied datetime. Returns None when invalid."""
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        text = value.strip()
        for fmt in (DATETIME_FORMAT, DATE_FORMAT):
            try:
                return datetime.datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


# Formatters: database value → wire value. None is handled by format_value.


def _format_integer(value: Any) -> SqlValue:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, decimal.Decimal, float)):
        return int(value)
    return convert_value_to_json_safe(value)


def _format_float(value: Any) -> SqlValue:
    if isinstance(value, (int, float, decimal.Decimal)):
        return float(value)
    return convert_value_to_json_safe(value)


def _format_boolean(value: Any) -> SqlValue:
    # BIT(1) columns come back as bytes
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big") != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _format_date(value: Any) -> SqlValue:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


def _format_datetime(value: Any) -> SqlValue:
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    return parsed.replace(tzinfo=None).isoformat(sep=" ", timespec="seconds")


def _format_blob(value: Any) -> SqlValue:
    return BLOB_STRING_REPRESENTATION


def _format_string(value: Any) -> SqlValue:
    if isinstance(value, str):
        return value
    # MySQL TIME columns arrive as timedelta
    if isinstance(value, datetime.timedelta):
        return str(value)
    return convert_value_to_json_safe(value)


FORMATTERS: dict[ColumnKind, Callable[[Any], SqlValue]] = {
    ColumnKind.INTEGER: _format_integer,
    ColumnKind.FLOAT: _format_float,
    ColumnKind.BOOLEAN: _format_boolean,
    ColumnKind.DATE: _format_date,
    ColumnKind.DATETIME: _format_datetime,
    ColumnKind.ENUM: _format_string,
    ColumnKind.BLOB: _format_blob,
    ColumnKind.STRING: _format_string,
}


def format_value(kind: ColumnKind, value: Any) -> SqlValue:
    """Format one stored value for the wire."""
    if value is None:
        return None
    return FORMATTERS[kind](value)


def format_row(row: Mapping[str, Any], kinds: Mapping[str, ColumnKind]) -> SqlRow:
    """
    Format every value in a row.

    Columns without a known kind are made JSON-safe but otherwise untouched.
    """
    formatted: SqlRow = {}
    for name, value in row.items():
        kind = kinds.get(name)
        if kind is None:
            formatted[name] = convert_value_to_json_safe(value)
        else:
            formatted[name] = format_value(kind, value)
    return formatted


def format_rows(
    rows: list[dict[str, Any]], kinds: Mapping[str, ColumnKind]
) -> list[SqlRow]:
    return [format_row(row, kinds) for row in rows]


# Coercers: user input → bind parameter. Raise ValueError on mismatch.


def _coerce_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer, got a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError(f"expected an integer, got {value!r}")


def _coerce_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("expected a number, got a boolean")
    if isinstance(value, (int, float, decimal.Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise ValueError(f"expected a number, got {value!r}")


def _coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _coerce_date(value: Any) -> datetime.date:
    if isinstance(value, str) or isinstance(value, datetime.date):
        parsed = parse_date(value)
        if parsed is not None:
            return parsed
    raise ValueError(f"expected a date formatted as YYYY-MM-DD, got {value!r}")


def _coerce_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, str) or isinstance(value, datetime.date):
        parsed = parse_datetime(value)
        if parsed is not None:
            return parsed
    raise ValueError(
        f"expected a datetime formatted as YYYY-MM-DD HH:MM:SS, got {value!r}"
    )


def _coerce_blob(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise ValueError(f"expected binary data, got {value!r}")


def _coerce_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    raise ValueError(f"expected a string, got {value!r}")


COERCERS: dict[ColumnKind, Callable[[Any], Any]] = {
    ColumnKind.INTEGER: _coerce_integer,
    ColumnKind.FLOAT: _coerce_float,
    ColumnKind.BOOLEAN: _coerce_boolean,
    ColumnKind.DATE: _coerce_date,
    ColumnKind.DATETIME: _coerce_datetime,
    ColumnKind.ENUM: _coerce_string,
    ColumnKind.BLOB: _coerce_blob,
    ColumnKind.STRING: _coerce_string,
}


def coerce_input(kind: ColumnKind, value: Any) -> Any:
    """Convert user input into a bind parameter for a column of ``kind``."""
    return COERCERS[kind](value)
