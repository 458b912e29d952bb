"""Base adapter abstract class for database-specific catalog access."""

import datetime
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol

from db_browser.models.constraint import RawConstraint
from db_browser.models.query import QueryResult
from db_browser.models.table import ColumnKind


class Executor(Protocol):
    """Anything that can run a parameterized statement."""

    async def execute(self, query: str, params: Any = None) -> QueryResult: ...


class BaseAdapter(ABC):
    """Base adapter defining database-specific catalog queries."""

    #: Schemas that are never listed
    system_schemas: frozenset[str] = frozenset()

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Quote a schema, table or column name for direct interpolation."""
        ...

    @abstractmethod
    async def get_schema_names(self, helper: Executor) -> list[str]:
        """
        List every schema visible to the session, system schemas included.

        Args:
            helper: Statement executor

        Returns:
            Schema names
        """
        ...

    @abstractmethod
    async def schema_exists(self, helper: Executor, schema: str) -> bool:
        """Check whether a schema exists and is visible to the session."""
        ...

    @abstractmethod
    async def get_table_names(self, helper: Executor, schema: str) -> list[str]:
        """
        List the raw names of every table in a schema.

        Args:
            helper: Statement executor
            schema: Schema name

        Returns:
            Table names, sorted
        """
        ...

    @abstractmethod
    async def get_table_comment(
        self, helper: Executor, schema: str, table: str
    ) -> Optional[str]:
        """
        Get a table's comment.

        Returns:
            The comment ('' when there is none), or None if the table does
            not exist
        """
        ...

    @abstractmethod
    async def get_columns(
        self, helper: Executor, schema: str, table: str
    ) -> list[dict[str, Any]]:
        """
        Read column definitions from the catalog.

        Each dict carries: name, ordinal_position, nullable, data_type,
        column_type, raw_default, auto_increment, max_characters,
        numeric_precision, numeric_scale, comment.

        Args:
            helper: Statement executor
            schema: Schema name
            table: Table name

        Returns:
            Column definitions ordered by position
        """
        ...

    @abstractmethod
    async def get_constraints(
        self, helper: Executor, schema: str, table: str
    ) -> list[RawConstraint]:
        """
        Read primary, foreign and unique key columns of a table.

        Returns:
            One RawConstraint per column per constraint, ordered by
            constraint name and then column ordinal
        """
        ...

    @abstractmethod
    async def get_current_timestamp(self, helper: Executor) -> datetime.datetime:
        """Get the database server's current timestamp."""
        ...

    @abstractmethod
    def column_kind(self, data_type: str, column_type: str) -> ColumnKind:
        """Classify a column by its catalog type."""
        ...

    @abstractmethod
    def enum_values(self, column_type: str) -> Optional[list[str]]:
        """Extract the allowed values of an enum column type."""
        ...

    @abstractmethod
    def is_current_timestamp(self, raw_default: Optional[str]) -> bool:
        """Check whether a column default means "the time of the insert"."""
        ...

    @abstractmethod
    def parse_default_literal(self, raw_default: Optional[str]) -> Optional[str]:
        """Turn a catalog default into the literal it stands for (or None)."""
        ...

    def is_system_schema(self, schema: str) -> bool:
        """Check if schema is a system schema to skip."""
        return schema.lower() in self.system_schemas

    def table_reference(self, schema: str, table: str) -> str:
        """Build a quoted, schema-qualified table reference."""
        return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
