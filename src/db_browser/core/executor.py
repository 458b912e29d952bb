"""Parameterized statement execution for one session."""

import logging
import time
from contextlib import asynccontextmanager, contextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator, Iterator, Optional, Union

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

from db_browser.errors import DatabaseError
from db_browser.models.query import QueryResult

if TYPE_CHECKING:
    from db_browser.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)

Params = Optional[Union[dict[str, Any], list[dict[str, Any]]]]


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise driver failures as DatabaseError with the native error code."""
    try:
        yield
    except DBAPIError as e:
        error = DatabaseError.from_dbapi(e)
        logger.debug(f"Database error {error.code}: {error.message}")
        raise error from e


async def run_statement(
    conn: AsyncConnection, query: str, params: Params = None
) -> QueryResult:
    """
    Execute one statement with bound parameters.

    Args:
        conn: Open connection
        query: SQL with ``:name`` placeholders
        params: One parameter mapping, or a list of them for executemany

    Returns:
        Rows (as dicts) and column names; row_count is the affected row
        count for statements that return no rows
    """
    start_time = time.time()
    logger.debug(f"Executing: {query} params={params!r}")

    result = await conn.execute(text(query), params or {})

    if result.returns_rows:
        columns = list(result.keys())
        rows = [dict(zip(columns, row)) for row in result.fetchall()]
        row_count = len(rows)
    else:
        columns = []
        rows = []
        row_count = result.rowcount

    execution_time = (time.time() - start_time) * 1000  # Convert to ms

    return QueryResult(
        query=query,
        rows=rows,
        row_count=row_count,
        columns=columns,
        execution_time_ms=execution_time,
    )


class TransactionHelper:
    """Execution handle bound to one open transaction."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def execute(self, query: str, params: Params = None) -> QueryResult:
        with translate_errors():
            return await run_statement(self.conn, query, params)


class QueryHelper:
    """
    Execution handle for one session.

    Every call to ``execute`` checks out its own pooled connection, so
    concurrent calls are safe. Use ``transaction()`` when several
    statements must succeed or fail together.
    """

    def __init__(self, connection: "DatabaseConnection"):
        """
        Initialize query helper.

        Args:
            connection: The session's database connection manager
        """
        self.connection = connection

    async def execute(self, query: str, params: Params = None) -> QueryResult:
        """
        Execute a parameterized statement.

        Raises:
            DatabaseError: If the driver reports an error
        """
        with translate_errors():
            async with self.connection.get_connection() as conn:
                return await run_statement(conn, query, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[TransactionHelper, None]:
        """
        Open a transaction.

        Commits when the block exits normally. Any exception rolls back
        every statement executed through the yielded handle.
        """
        with translate_errors():
            async with self.connection.begin() as conn:
                yield TransactionHelper(conn)
