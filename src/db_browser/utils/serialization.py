"""JSON serialization utilities using orjson for speed and correctness.

orjson handles most database types automatically:
- datetime, date, time → ISO format
- dataclasses, pydantic models → dict

We only need to handle a few special cases.
"""

import base64
import datetime
import decimal
from typing import Any

import orjson
from pydantic import BaseModel


def _default_handler(obj: Any) -> Any:
    """
    Custom default handler for types orjson doesn't handle natively.

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable representation

    Raises:
        TypeError: If object cannot be serialized
    """
    # Pydantic models - dump to plain data first
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")

    # Decimal (DECIMAL/NUMERIC columns) - keep it numeric
    if isinstance(obj, decimal.Decimal):
        return float(obj)

    # timedelta (MySQL TIME columns) - convert to total seconds
    if isinstance(obj, datetime.timedelta):
        return obj.total_seconds()

    # bytes/bytearray/memoryview - try UTF-8 decode, fall back to base64
    if isinstance(obj, (bytes, bytearray, memoryview)):
        data = bytes(obj)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(data).decode("ascii")

    # Sets - convert to list
    if isinstance(obj, (set, frozenset)):
        return list(obj)

    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def convert_value_to_json_safe(value: Any) -> Any:
    """
    Convert a value to JSON-serializable format.

    Uses orjson's serialization and decodes back to Python objects.
    This ensures consistency with what will actually be serialized.

    Args:
        value: Value to convert

    Returns:
        JSON-serializable value
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    try:
        return orjson.loads(orjson.dumps(value, default=_default_handler))
    except TypeError:
        # If orjson can't handle it, convert to string as fallback
        return str(value)


def dumps(obj: Any, indent: bool = True) -> str:
    """
    Serialize object to JSON string using orjson.

    Args:
        obj: Object to serialize
        indent: Pretty-print with two-space indentation

    Returns:
        JSON string
    """
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(obj, default=_default_handler, option=option).decode("utf-8")
