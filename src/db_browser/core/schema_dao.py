"""Single entry point to the schema access layer for one session."""

from typing import Any, Mapping, Optional, Union

from db_browser.adapters.base import BaseAdapter
from db_browser.core.constraints import ConstraintResolver
from db_browser.core.content import ContentEngine
from db_browser.core.executor import QueryHelper
from db_browser.core.inserter import InsertEngine
from db_browser.core.inspector import MetadataInspector
from db_browser.models.constraint import Constraint, RawConstraint
from db_browser.models.erd import Erd
from db_browser.models.query import (
    ContentRequest,
    PaginatedContent,
    SqlRow,
    TableInsert,
)
from db_browser.models.table import TableHeader, TableMeta, TableSummary


class SchemaDao:
    """
    Browses and edits the schemas visible to one session.

    A SchemaDao holds no state besides its query helper; build one per
    request from ``SessionRegistry.query_helper(key)``.
    """

    def __init__(self, helper: QueryHelper, adapter: BaseAdapter):
        """
        Initialize schema DAO.

        Args:
            helper: Query helper of the session
            adapter: Database-specific catalog adapter
        """
        self.helper = helper
        self.adapter = adapter
        self.resolver = ConstraintResolver(helper, adapter)
        self.inspector = MetadataInspector(helper, adapter, self.resolver)
        self.content_engine = ContentEngine(helper, adapter, self.inspector)
        self.insert_engine = InsertEngine(helper, adapter, self.inspector)

    async def schemas(self) -> list[str]:
        return await self.inspector.schemas()

    async def tables(self, schema: str) -> list[TableSummary]:
        return await self.inspector.tables(schema)

    async def meta(self, schema: str, table: str) -> TableMeta:
        return await self.inspector.meta(schema, table)

    async def headers(self, schema: str, table: str) -> list[TableHeader]:
        return await self.inspector.headers(schema, table)

    async def defaults(self, schema: str, table: str) -> dict[str, Any]:
        return await self.inspector.defaults(schema, table)

    async def content(
        self, request: Union[ContentRequest, Mapping[str, Any]]
    ) -> PaginatedContent:
        return await self.content_engine.content(request)

    async def pluck(
        self, schema: str, table: str, selector: Mapping[str, str]
    ) -> dict[str, list[SqlRow]]:
        return await self.content_engine.pluck(schema, table, selector)

    async def column_content(self, schema: str, table: str, column: str) -> list[Any]:
        return await self.content_engine.column_content(schema, table, column)

    async def insert_row(self, schema: str, data: TableInsert) -> None:
        await self.insert_engine.insert_row(schema, data)

    async def constraints(self, schema: str, table: str) -> list[RawConstraint]:
        return await self.resolver.constraints(schema, table)

    async def resolve_constraints(
        self, constraints: list[RawConstraint]
    ) -> list[RawConstraint]:
        return await self.resolver.resolve_constraints(constraints)

    @staticmethod
    def resolve_compound_constraints(
        constraints: list[RawConstraint],
    ) -> list[Constraint]:
        return ConstraintResolver.resolve_compound_constraints(constraints)

    async def erd(self, schema: Optional[str] = None) -> Erd:
        return await self.inspector.erd(schema)
