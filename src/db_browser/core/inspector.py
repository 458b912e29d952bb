"""Table metadata assembled from catalog queries."""

import asyncio
import logging
from typing import Any, Optional

from db_browser.adapters.base import BaseAdapter, Executor
from db_browser.core.constraints import ConstraintResolver
from db_browser.errors import NotFoundError
from db_browser.models.constraint import Constraint
from db_browser.models.erd import Erd, ErdEdge, ErdNode
from db_browser.models.table import (
    ColumnKind,
    TableHeader,
    TableMeta,
    TableName,
    TableSummary,
)
from db_browser.utils.formatting import coerce_input, format_value

logger = logging.getLogger(__name__)

# Tables described at once while building a diagram
ERD_CONCURRENCY = 4


class MetadataInspector:
    """Builds table listings, headers and full table descriptions."""

    def __init__(
        self,
        helper: Executor,
        adapter: BaseAdapter,
        resolver: Optional[ConstraintResolver] = None,
    ):
        """
        Initialize metadata inspector.

        Args:
            helper: Statement executor for the session
            adapter: Database-specific catalog adapter
            resolver: Constraint resolver sharing the same helper
        """
        self.helper = helper
        self.adapter = adapter
        self.resolver = resolver or ConstraintResolver(helper, adapter)

    async def schemas(self) -> list[str]:
        """List non-system schemas visible to the session."""
        names = await self.adapter.get_schema_names(self.helper)
        return sorted(n for n in names if not self.adapter.is_system_schema(n))

    async def tables(self, schema: str) -> list[TableSummary]:
        """
        List the tables of a schema with their tiers.

        Part tables are always tier ``hidden``.

        Raises:
            NotFoundError: If the schema does not exist
        """
        names = await self.adapter.get_table_names(self.helper, schema)
        if not names and not await self.adapter.schema_exists(self.helper, schema):
            raise NotFoundError("schema", schema)

        known = set(names)
        summaries = []
        for raw in names:
            name = TableName.parse(raw, known)
            master = TableName.parse(name.master_raw) if name.master_raw else None
            summaries.append(
                TableSummary(
                    schema=schema,
                    name=name,
                    tier="hidden" if name.is_part_table else name.tier,
                    master_name=master,
                )
            )
        return summaries

    async def ensure_table(self, schema: str, table: str) -> str:
        """
        Check that a table exists.

        Returns:
            The table's comment

        Raises:
            NotFoundError: With kind ``schema`` or ``table``
        """
        comment = await self.adapter.get_table_comment(self.helper, schema, table)
        if comment is not None:
            return comment

        if not await self.adapter.schema_exists(self.helper, schema):
            raise NotFoundError("schema", schema)
        raise NotFoundError("table", f"{schema}.{table}")

    async def headers(
        self, schema: str, table: str, resolve_defaults: bool = True
    ) -> list[TableHeader]:
        """
        Describe every column of a table, in ordinal order.

        Auto-increment columns default to the next free value and
        CURRENT_TIMESTAMP defaults are resolved against the server clock.

        Args:
            schema: Schema name
            table: Raw table name
            resolve_defaults: When False, skip the queries behind those two
                defaults and leave them as None

        Raises:
            NotFoundError: If the schema or table does not exist
        """
        columns = await self.adapter.get_columns(self.helper, schema, table)
        if not columns:
            await self.ensure_table(schema, table)
            return []

        now = None
        if resolve_defaults and any(
            self.adapter.is_current_timestamp(c["raw_default"]) for c in columns
        ):
            now = await self.adapter.get_current_timestamp(self.helper)

        headers = []
        for column in columns:
            kind = self.adapter.column_kind(column["data_type"], column["column_type"])
            raw_default = column["raw_default"]
            literal = self.adapter.parse_default_literal(raw_default)
            is_now = self.adapter.is_current_timestamp(raw_default)

            default_value: Any = None
            if column["auto_increment"]:
                if resolve_defaults:
                    default_value = await self._next_auto_increment(
                        schema, table, column["name"]
                    )
            elif is_now:
                if resolve_defaults:
                    default_value = format_value(kind, now)
            else:
                default_value = self._literal_default(kind, literal)

            headers.append(
                TableHeader(
                    name=column["name"],
                    type=kind,
                    raw_type=column["column_type"],
                    ordinal_position=column["ordinal_position"],
                    nullable=column["nullable"],
                    default_value=default_value,
                    auto_increment=column["auto_increment"],
                    has_default=is_now or literal is not None,
                    max_characters=column["max_characters"],
                    numeric_precision=column["numeric_precision"],
                    numeric_scale=column["numeric_scale"],
                    comment=column["comment"],
                    enum_values=self.adapter.enum_values(column["column_type"]),
                )
            )
        return headers

    @staticmethod
    def _literal_default(kind: ColumnKind, literal: Optional[str]) -> Any:
        if literal is None:
            return None
        try:
            return format_value(kind, coerce_input(kind, literal))
        except ValueError:
            # Expression defaults (e.g. b'1', uuid()) stay as written
            return literal

    async def _next_auto_increment(self, schema: str, table: str, column: str) -> int:
        result = await self.helper.execute(
            f"SELECT COALESCE(MAX({self.adapter.quote_identifier(column)}), 0) + 1 "
            f"AS next_value FROM {self.adapter.table_reference(schema, table)}"
        )
        return int(result.scalar())

    async def defaults(self, schema: str, table: str) -> dict[str, Any]:
        """Map each column of a table to its resolved default value."""
        return {h.name: h.default_value for h in await self.headers(schema, table)}

    async def count_rows(self, schema: str, table: str) -> int:
        result = await self.helper.execute(
            f"SELECT COUNT(*) AS n FROM {self.adapter.table_reference(schema, table)}"
        )
        return int(result.scalar() or 0)

    async def part_tables(self, schema: str, table: str) -> list[TableName]:
        """Tables named ``<table>__<part>`` in the same schema."""
        names = await self.adapter.get_table_names(self.helper, schema)
        return _parts_of(table, names)

    async def compound_constraints(self, schema: str, table: str) -> list[Constraint]:
        """Resolved constraints of a table, merged per constraint name."""
        raw = await self.resolver.constraints(schema, table)
        resolved = await self.resolver.resolve_constraints(raw)
        return self.resolver.resolve_compound_constraints(resolved)

    async def meta(self, schema: str, table: str) -> TableMeta:
        """
        Build the full description of a table.

        Headers, row count, constraints and parts are fetched concurrently;
        each sub-fetch checks out its own connection.

        Raises:
            NotFoundError: If the schema or table does not exist
            ResolutionError: If a foreign key chain cannot be resolved
        """
        comment = await self.ensure_table(schema, table)

        headers, total_rows, constraints, names = await asyncio.gather(
            self.headers(schema, table),
            self.count_rows(schema, table),
            self.compound_constraints(schema, table),
            self.adapter.get_table_names(self.helper, schema),
        )

        return TableMeta(
            schema=schema,
            name=TableName.parse(table, set(names)),
            headers=headers,
            total_rows=total_rows,
            constraints=constraints,
            comment=comment,
            parts=_parts_of(table, names),
        )

    async def erd(self, schema: Optional[str] = None) -> Erd:
        """
        Build a diagram of tables and their resolved foreign keys.

        Args:
            schema: Limit the diagram to one schema (all schemas when None)
        """
        schemas = [schema] if schema is not None else await self.schemas()

        targets: list[tuple[str, str]] = []
        for name in schemas:
            if schema is not None:
                # Raises NotFoundError for an unknown schema
                await self.tables(name)
            for table in await self.adapter.get_table_names(self.helper, name):
                targets.append((name, table))

        semaphore = asyncio.Semaphore(ERD_CONCURRENCY)

        async def describe(target: tuple[str, str]) -> TableMeta:
            async with semaphore:
                return await self.meta(*target)

        metas = await asyncio.gather(*(describe(t) for t in targets))

        ids = {(m.schema, m.name.raw): i for i, m in enumerate(metas)}
        nodes = [ErdNode(id=i, table=m) for i, m in enumerate(metas)]
        edges = []
        for meta in metas:
            from_id = ids[(meta.schema, meta.name.raw)]
            for constraint in meta.constraints:
                if constraint.type != "foreign":
                    continue
                seen: list[tuple[str, str]] = []
                for column in constraint.constraints:
                    if column.ref is None:
                        continue
                    target = (column.ref.schema, column.ref.table)
                    if target in ids and target not in seen:
                        seen.append(target)
                        edges.append(
                            ErdEdge(
                                from_id=from_id,
                                to_id=ids[target],
                                constraint=constraint,
                            )
                        )

        logger.debug(f"Built diagram with {len(nodes)} tables, {len(edges)} edges")
        return Erd(nodes=nodes, edges=edges)


def _parts_of(table: str, names: list[str]) -> list[TableName]:
    known = set(names)
    parts = []
    for raw in names:
        name = TableName.parse(raw, known)
        if name.master_raw == table:
            parts.append(name)
    return parts
