"""Database connection management with SQLAlchemy.

Every authenticated session gets its own async engine (and so its own
connection pool). Statements never share a checked-out connection, so
concurrent requests under one session cannot interleave on a socket.
"""

import asyncio
import logging
import secrets
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from db_browser.core.executor import QueryHelper
from db_browser.errors import DatabaseError, NotFoundError
from db_browser.models.config import ConnectionConf, DatabaseConfig

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Manages the SQLAlchemy async engine and pool of one session."""

    def __init__(self, config: DatabaseConfig, credentials: ConnectionConf):
        """
        Initialize database connection.

        Args:
            config: Pool and timeout settings shared by all sessions
            credentials: Login used for every connection of this session
        """
        self.config = config
        self.credentials = credentials
        self.engine: Optional[AsyncEngine] = None
        self._dialect = config.dialect

    async def initialize(self) -> None:
        """Create the async engine. Connections are opened lazily."""
        if self.engine is not None:
            return  # Already initialized

        self.engine = create_async_engine(
            self.config.url_for(self.credentials),
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
            pool_pre_ping=True,  # Verify connections before using
            echo=self.config.echo_sql,
        )

    async def dispose(self) -> None:
        """Dispose of the connection pool and cleanup resources."""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None

    @asynccontextmanager
    async def get_connection(self) -> AsyncGenerator[AsyncConnection, None]:
        """
        Get a connection from the pool as an async context manager.

        Yields:
            AsyncConnection for executing queries

        Raises:
            RuntimeError: If engine not initialized
        """
        if self.engine is None:
            raise RuntimeError(
                "DatabaseConnection not initialized. Call initialize() first."
            )

        async with self.engine.connect() as conn:
            if self.config.statement_timeout:
                await self._set_timeout(conn, self.config.statement_timeout)
            yield conn

    @asynccontextmanager
    async def begin(self) -> AsyncGenerator[AsyncConnection, None]:
        """
        Get a connection with an open transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises.
        """
        if self.engine is None:
            raise RuntimeError(
                "DatabaseConnection not initialized. Call initialize() first."
            )

        async with self.engine.begin() as conn:
            if self.config.statement_timeout:
                await self._set_timeout(conn, self.config.statement_timeout)
            yield conn

    async def _set_timeout(self, conn: AsyncConnection, timeout: int) -> None:
        """Set statement timeout based on database dialect."""
        timeout_ms = timeout * 1000

        if self._dialect == "mysql":
            await conn.execute(text(f"SET SESSION max_execution_time = {timeout_ms}"))

    async def test_connection(self) -> None:
        """
        Verify the credentials by running a trivial statement.

        Raises:
            DatabaseError: If the server rejects the login or is unreachable
        """
        try:
            async with self.get_connection() as conn:
                await conn.execute(text("SELECT 1"))
        except DBAPIError as e:
            raise DatabaseError.from_dbapi(e) from e


@dataclass
class Session:
    """One authenticated session and its connection."""

    key: str
    connection: DatabaseConnection
    created_at: float
    last_used: float = field(default=0.0)


class SessionRegistry:
    """
    Owns every session's connection, keyed by session token.

    Sessions idle for longer than ``config.session_length`` seconds are
    removed by ``prune()``, which ``start_pruning()`` schedules on a fixed
    interval.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._prune_task: Optional[asyncio.Task] = None

    async def authenticate(self, credentials: ConnectionConf) -> str:
        """
        Open a session for the given credentials.

        Returns:
            The session key used to look the session up again

        Raises:
            DatabaseError: If the credentials are rejected
        """
        connection = DatabaseConnection(self.config, credentials)
        await connection.initialize()
        try:
            await connection.test_connection()
        except Exception:
            await connection.dispose()
            raise

        key = secrets.token_urlsafe(32)
        now = self._clock()
        self._sessions[key] = Session(
            key=key, connection=connection, created_at=now, last_used=now
        )
        logger.info(f"Opened session for user '{credentials.user}'")
        return key

    def query_helper(self, key: str) -> QueryHelper:
        """
        Get an execution handle for a session.

        Raises:
            NotFoundError: If the session does not exist or has expired
        """
        session = self._sessions.get(key)
        now = self._clock()
        if session is None or self._is_expired(session, now):
            raise NotFoundError("session", "<redacted>", "Unknown or expired session")

        session.last_used = now
        return QueryHelper(session.connection)

    def _is_expired(self, session: Session, now: float) -> bool:
        return now - session.last_used > self.config.session_length

    async def prune(self) -> int:
        """
        Remove every expired session and dispose its engine.

        Connections checked out by in-flight statements are closed by the
        pool when they are returned.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        expired = [s for s in self._sessions.values() if self._is_expired(s, now)]
        for session in expired:
            self._sessions.pop(session.key, None)
            await session.connection.dispose()

        if expired:
            logger.info(f"Pruned {len(expired)} expired session(s)")
        return len(expired)

    def start_pruning(self) -> asyncio.Task:
        """Schedule ``prune()`` every ``config.sweep_interval`` seconds."""
        if self._prune_task is None or self._prune_task.done():
            self._prune_task = asyncio.create_task(self._prune_forever())
        return self._prune_task

    async def _prune_forever(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval)
            try:
                await self.prune()
            except Exception as e:
                logger.error(f"Session prune failed: {e}", exc_info=True)

    async def close(self) -> None:
        """Stop the prune task and dispose every session."""
        if self._prune_task is not None:
            self._prune_task.cancel()
            try:
                await self._prune_task
            except asyncio.CancelledError:
                pass
            self._prune_task = None

        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.connection.dispose()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: object) -> bool:
        return key in self._sessions
