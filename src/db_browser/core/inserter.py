"""Validated, atomic inserts across a master table and its parts."""

import asyncio
import logging
from graphlib import CycleError, TopologicalSorter
from typing import Any, Mapping

from db_browser.adapters.base import BaseAdapter
from db_browser.core.executor import QueryHelper
from db_browser.core.inspector import MetadataInspector
from db_browser.core.validation import InsertValidator
from db_browser.errors import NotFoundError, ValidationError
from db_browser.models.constraint import RawConstraint
from db_browser.models.query import TableInsert
from db_browser.models.table import TableName

logger = logging.getLogger(__name__)


def insert_order(
    schema: str,
    tables: list[str],
    constraints: Mapping[str, list[RawConstraint]],
    known_tables: set[str],
) -> list[str]:
    """
    Order tables so that every table comes after the tables it depends on.

    A part table depends on its master, and a table depends on every other
    supplied table its foreign keys reference.

    Raises:
        ValidationError: If the dependencies form a cycle
    """
    supplied = set(tables)
    sorter: TopologicalSorter[str] = TopologicalSorter()

    for table in tables:
        sorter.add(table)
        master = TableName.parse(table, known_tables).master_raw
        if master in supplied:
            sorter.add(table, master)
        for constraint in constraints.get(table, []):
            ref = constraint.ref
            if constraint.type != "foreign" or ref is None:
                continue
            if ref.schema == schema and ref.table in supplied and ref.table != table:
                sorter.add(table, ref.table)

    try:
        return list(sorter.static_order())
    except CycleError as e:
        cycle = " -> ".join(e.args[1])
        raise ValidationError(f"Tables in this insert depend on each other: {cycle}")


class InsertEngine:
    """Inserts rows into several tables of one schema in one transaction."""

    def __init__(
        self,
        helper: QueryHelper,
        adapter: BaseAdapter,
        inspector: MetadataInspector,
    ):
        """
        Initialize insert engine.

        Args:
            helper: Query helper for the session; must support transactions
            adapter: Database-specific catalog adapter
            inspector: Metadata inspector used to look up columns
        """
        self.helper = helper
        self.adapter = adapter
        self.inspector = inspector

    async def insert_row(self, schema: str, data: TableInsert) -> None:
        """
        Insert rows into one or more tables.

        Every row is validated before any statement runs. Masters are
        inserted before their parts and all statements share one
        transaction, so a failure leaves every table untouched.

        Args:
            schema: Schema name
            data: Mapping of raw table name to the rows to insert

        Raises:
            ValidationError: Carrying every problem with the batch
            NotFoundError: If the schema does not exist
            DatabaseError: If the database rejects a statement
        """
        names = await self.adapter.get_table_names(self.helper, schema)
        if not names and not await self.adapter.schema_exists(self.helper, schema):
            raise NotFoundError("schema", schema)
        known = set(names)

        tables = [t for t in data if t in known] if isinstance(data, Mapping) else []
        headers, constraints = await asyncio.gather(
            asyncio.gather(
                *(
                    self.inspector.headers(schema, t, resolve_defaults=False)
                    for t in tables
                )
            ),
            asyncio.gather(
                *(self.inspector.resolver.constraints(schema, t) for t in tables)
            ),
        )

        validator = InsertValidator(dict(zip(tables, headers)), known)
        rows = validator.validate(data)

        order = insert_order(schema, tables, dict(zip(tables, constraints)), known)

        async with self.helper.transaction() as tx:
            for table in order:
                if not rows[table]:
                    continue
                for columns, batch in _group_by_columns(rows[table]):
                    statement = self._insert_statement(schema, table, columns)
                    await tx.execute(statement, batch)

        logger.info(
            f"Inserted {sum(len(rows[t]) for t in order)} rows into "
            f"{schema}: {', '.join(t for t in order if rows[t])}"
        )

    def _insert_statement(
        self, schema: str, table: str, columns: tuple[str, ...]
    ) -> str:
        table_ref = self.adapter.table_reference(schema, table)
        if not columns:
            return f"INSERT INTO {table_ref} () VALUES ()"
        quoted = ", ".join(self.adapter.quote_identifier(c) for c in columns)
        binds = ", ".join(f":c{i}" for i in range(len(columns)))
        return f"INSERT INTO {table_ref} ({quoted}) VALUES ({binds})"


def _group_by_columns(
    rows: list[dict[str, Any]],
) -> list[tuple[tuple[str, ...], list[dict[str, Any]]]]:
    """Group rows that set the same columns, binding values by position."""
    groups: dict[tuple[str, ...], list[dict[str, Any]]] = {}
    for row in rows:
        columns = tuple(row)
        groups.setdefault(columns, []).append(
            {f"c{i}": row[c] for i, c in enumerate(columns)}
        )
    return list(groups.items())
