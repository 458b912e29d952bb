"""Translation of content filters and sorts into SQL fragments."""

from typing import Any, Optional

from db_browser.adapters.base import BaseAdapter
from db_browser.errors import NotFoundError, ValidationError
from db_browser.models.query import FILTER_OPERATIONS, Filter, Sort
from db_browser.models.table import ColumnKind, TableHeader
from db_browser.utils.formatting import coerce_input

NULL_LITERAL = "null"

_COMPARISONS = {"eq": "=", "lt": "<", "gt": ">"}


def check_operations(filters: list[Filter]) -> None:
    """
    Reject unknown filter operations.

    Raises:
        ValidationError: Listing every filter with an unknown operation
    """
    errors = [
        f"Unknown filter operation '{f.op}' for column '{f.param}', "
        f"expected one of: {', '.join(FILTER_OPERATIONS)}"
        for f in filters
        if f.op not in FILTER_OPERATIONS
    ]
    if errors:
        raise ValidationError.collect(errors)


def _lookup(headers: dict[str, TableHeader], column: str, table: str) -> TableHeader:
    header = headers.get(column)
    if header is None:
        raise NotFoundError("column", f"{table}.{column}")
    return header


def _coerce(header: TableHeader, value: str) -> Any:
    try:
        return coerce_input(header.type, value)
    except ValueError as e:
        raise ValidationError(f"Invalid value for column '{header.name}': {e}")


def build_where(
    filters: list[Filter],
    headers: list[TableHeader],
    adapter: BaseAdapter,
    table: str,
) -> tuple[str, dict[str, Any]]:
    """
    Build a WHERE clause from a list of filters.

    Every column is checked against ``headers`` and every value is bound
    as a parameter; nothing user-supplied is spliced into the SQL.

    Args:
        filters: Predicates to AND together
        headers: Columns of the filtered table
        adapter: Adapter used to quote identifiers
        table: Table name used in error messages

    Returns:
        Tuple of (clause, params); the clause is empty when there are no
        filters and otherwise starts with ``WHERE``

    Raises:
        ValidationError: For an unknown operation or a malformed value
        NotFoundError: For a column the table does not have
    """
    check_operations(filters)

    by_name = {h.name: h for h in headers}
    predicates = []
    params: dict[str, Any] = {}

    for i, f in enumerate(filters):
        header = _lookup(by_name, f.param, table)
        column = adapter.quote_identifier(header.name)
        bind = f"f{i}"

        if f.op in ("is", "isnot"):
            if f.value != NULL_LITERAL:
                raise ValidationError(
                    f"Filter '{f.op}' on column '{f.param}' got unrecognized "
                    f"value '{f.value}', expected '{NULL_LITERAL}'"
                )
            predicates.append(
                f"{column} IS NULL" if f.op == "is" else f"{column} IS NOT NULL"
            )
            continue

        operator = _COMPARISONS[f.op]
        if f.op == "eq" and header.type in (ColumnKind.STRING, ColumnKind.ENUM):
            predicates.append(f"LOWER({column}) = LOWER(:{bind})")
            params[bind] = f.value
            continue

        params[bind] = _coerce(header, f.value)
        if f.op == "gt" and header.type.is_temporal:
            # NULL dates count as later than any given date
            predicates.append(f"({column} > :{bind} OR {column} IS NULL)")
        else:
            predicates.append(f"{column} {operator} :{bind}")

    if not predicates:
        return "", params
    return "WHERE " + " AND ".join(predicates), params


def build_order_by(
    sort: Optional[Sort],
    headers: list[TableHeader],
    adapter: BaseAdapter,
    table: str,
) -> str:
    """
    Build an ORDER BY clause, or an empty string when unsorted.

    Raises:
        NotFoundError: If the sort column is not a column of the table
    """
    if sort is None:
        return ""
    header = _lookup({h.name: h for h in headers}, sort.by, table)
    return f"ORDER BY {adapter.quote_identifier(header.name)} {sort.direction.upper()}"
