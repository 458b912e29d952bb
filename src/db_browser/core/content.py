"""Paginated content, single-row lookup and distinct column values."""

import asyncio
import logging
import math
from typing import Any, Mapping, Union

import pydantic

from db_browser.adapters.base import BaseAdapter, Executor
from db_browser.core.filters import build_order_by, build_where
from db_browser.core.inspector import MetadataInspector
from db_browser.errors import ValidationError
from db_browser.models.query import ContentRequest, PaginatedContent, SqlRow
from db_browser.models.table import ColumnKind, TableHeader, TableName
from db_browser.utils.formatting import coerce_input, format_rows, format_value
from db_browser.utils.serialization import convert_value_to_json_safe

logger = logging.getLogger(__name__)


def _kinds(headers: list[TableHeader]) -> dict[str, ColumnKind]:
    return {h.name: h.type for h in headers}


class ContentEngine:
    """Reads table rows for the grid and the edit forms."""

    def __init__(
        self,
        helper: Executor,
        adapter: BaseAdapter,
        inspector: MetadataInspector,
    ):
        """
        Initialize content engine.

        Args:
            helper: Statement executor for the session
            adapter: Database-specific catalog adapter
            inspector: Metadata inspector used to look up columns
        """
        self.helper = helper
        self.adapter = adapter
        self.inspector = inspector

    async def content(
        self, request: Union[ContentRequest, Mapping[str, Any]]
    ) -> PaginatedContent:
        """
        Fetch one page of a table.

        Args:
            request: Content request, or a mapping with the same fields

        Returns:
            The formatted rows of the page and the number of rows matching
            the filters

        Raises:
            ValidationError: For a bad limit, page, filter operation or value
            NotFoundError: For an unknown schema, table or column
        """
        if not isinstance(request, ContentRequest):
            try:
                request = ContentRequest.model_validate(request)
            except pydantic.ValidationError as e:
                errors = [
                    f"{'.'.join(map(str, err['loc']))}: {err['msg']}"
                    for err in e.errors()
                ]
                raise ValidationError.collect(errors) from e

        if request.limit < 1:
            raise ValidationError(f"limit must be at least 1, got {request.limit}")
        if request.page < 1:
            raise ValidationError(f"page must be at least 1, got {request.page}")

        headers = await self.inspector.headers(
            request.schema, request.table, resolve_defaults=False
        )
        where, params = build_where(
            request.filters, headers, self.adapter, request.table
        )
        order_by = build_order_by(request.sort, headers, self.adapter, request.table)
        table_ref = self.adapter.table_reference(request.schema, request.table)

        count_result = await self.helper.execute(
            f"SELECT COUNT(*) AS n FROM {table_ref} {where}", params
        )
        count = int(count_result.scalar() or 0)

        last_page = max(1, math.ceil(count / request.limit))
        if request.page > last_page:
            raise ValidationError(
                f"page {request.page} is out of range, last page is {last_page}"
            )

        page_params = dict(params)
        page_params["limit"] = request.limit
        page_params["offset"] = (request.page - 1) * request.limit
        result = await self.helper.execute(
            f"SELECT * FROM {table_ref} {where} {order_by} "
            f"LIMIT :limit OFFSET :offset",
            page_params,
        )

        return PaginatedContent(
            rows=format_rows(result.rows, _kinds(headers)), count=count
        )

    async def pluck(
        self, schema: str, table: str, selector: Mapping[str, str]
    ) -> dict[str, list[SqlRow]]:
        """
        Fetch one master row and every part table row that references it.

        Args:
            schema: Schema name
            table: Raw name of the master table
            selector: Column name to value; must cover a primary or unique key

        Returns:
            Mapping of raw table name to formatted rows. The master maps to
            exactly one row; part tables without matching rows are left out.

        Raises:
            ValidationError: If the selector is malformed or does not match
                exactly one row
        """
        self._check_selector(selector)

        headers, constraints = await asyncio.gather(
            self.inspector.headers(schema, table, resolve_defaults=False),
            self.inspector.resolver.constraints(schema, table),
        )
        by_name = {h.name: h for h in headers}

        unknown = [key for key in selector if key not in by_name]
        if unknown:
            raise ValidationError.collect(
                [f"Unknown column '{key}' in selector for {table}" for key in unknown]
            )

        keys = [
            set(c.local_columns)
            for c in self.inspector.resolver.resolve_compound_constraints(constraints)
            if c.is_unique_key
        ]
        if keys and not any(columns <= set(selector) for columns in keys):
            raise ValidationError(
                f"Selector for {table} must include every column of a primary "
                f"or unique key: "
                + ", ".join(f"({', '.join(sorted(c))})" for c in keys)
            )

        conditions = []
        params: dict[str, Any] = {}
        for i, (key, value) in enumerate(selector.items()):
            header = by_name[key]
            try:
                params[f"s{i}"] = coerce_input(header.type, value)
            except ValueError as e:
                raise ValidationError(f"Invalid value for column '{key}': {e}")
            conditions.append(f"{self.adapter.quote_identifier(key)} = :s{i}")

        # Two rows are enough to tell an ambiguous selector apart
        result = await self.helper.execute(
            f"SELECT * FROM {self.adapter.table_reference(schema, table)} "
            f"WHERE {' AND '.join(conditions)} LIMIT 2",
            params,
        )
        if result.row_count != 1:
            raise ValidationError(
                f"Selector must identify exactly one row in {table}, "
                f"found {'none' if result.is_empty else 'more than one'}"
            )
        master_row = result.rows[0]

        parts = await self.inspector.part_tables(schema, table)
        part_rows = await asyncio.gather(
            *(self._part_rows(schema, table, part, master_row) for part in parts)
        )

        plucked: dict[str, list[SqlRow]] = {
            table: format_rows([master_row], _kinds(headers))
        }
        for part, rows in zip(parts, part_rows):
            if rows:
                plucked[part.raw] = rows
        return plucked

    @staticmethod
    def _check_selector(selector: Any) -> None:
        if not isinstance(selector, Mapping) or not selector:
            raise ValidationError("Selector must be a non-empty mapping")
        errors = [
            f"Selector entry {key!r}: {value!r} must map a string to a string"
            for key, value in selector.items()
            if not isinstance(key, str) or not isinstance(value, str)
        ]
        if errors:
            raise ValidationError.collect(errors)

    async def _part_rows(
        self,
        schema: str,
        master: str,
        part: TableName,
        master_row: dict[str, Any],
    ) -> list[SqlRow]:
        headers, constraints = await asyncio.gather(
            self.inspector.headers(schema, part.raw, resolve_defaults=False),
            self.inspector.resolver.constraints(schema, part.raw),
        )

        conditions = []
        params: dict[str, Any] = {}
        for constraint in constraints:
            ref = constraint.ref
            if constraint.type != "foreign" or ref is None:
                continue
            if ref.schema != schema or ref.table != master:
                continue
            if ref.column not in master_row:
                continue
            bind = f"p{len(params)}"
            params[bind] = master_row[ref.column]
            conditions.append(
                f"{self.adapter.quote_identifier(constraint.local_column)} = :{bind}"
            )

        if not conditions:
            logger.debug(f"Part table {part.raw} has no foreign key to {master}")
            return []

        result = await self.helper.execute(
            f"SELECT * FROM {self.adapter.table_reference(schema, part.raw)} "
            f"WHERE {' AND '.join(conditions)}",
            params,
        )
        return format_rows(result.rows, _kinds(headers))

    async def column_content(self, schema: str, table: str, column: str) -> list[Any]:
        """
        Distinct values of one column, in ascending order.

        Identifiers are quoted but not checked against the catalog, so an
        unknown schema, table or column surfaces as the driver's error.
        Values are formatted like the same column in ``content()``.

        Raises:
            DatabaseError: If the database rejects the query
        """
        quoted = self.adapter.quote_identifier(column)
        result = await self.helper.execute(
            f"SELECT DISTINCT {quoted} AS value "
            f"FROM {self.adapter.table_reference(schema, table)} "
            f"ORDER BY {quoted}"
        )
        values = result.get_column_values("value")

        headers = await self.inspector.headers(schema, table, resolve_defaults=False)
        # MySQL matches column names case-insensitively
        kinds = {h.name.lower(): h.type for h in headers}
        kind = kinds.get(column.lower())
        if kind is None:
            return [convert_value_to_json_safe(v) for v in values]
        return [format_value(kind, v) for v in values]
