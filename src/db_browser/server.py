"""Schema browser MCP Server

A Model Context Protocol (MCP) server exposing the schema access layer:
table listings and metadata, paginated content, row lookup and inserts for
MySQL databases.
"""

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional

from dotenv import load_dotenv
from mcp.server import Server
from mcp.types import TextContent, Tool

from db_browser.adapters import create_adapter
from db_browser.core import SchemaDao, SessionRegistry
from db_browser.errors import (
    BrowserError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from db_browser.models.config import ConnectionConf, DatabaseConfig
from db_browser.utils.serialization import dumps

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Response size limits (in characters) for MCP tool responses
MAX_RESPONSE_LIST_SCHEMAS = 3000  # Schema names
MAX_RESPONSE_LIST_TABLES = 5000  # Table names with tiers
MAX_RESPONSE_DEFAULTS = 3000  # Column defaults of one table
MAX_RESPONSE_CONSTRAINTS = 5000  # Raw or resolved constraints
MAX_RESPONSE_HEADERS = 8000  # Column descriptions
MAX_RESPONSE_TABLE_META = 10000  # Full table description
MAX_RESPONSE_CONTENT = 10000  # One page of rows
MAX_RESPONSE_PLUCK = 10000  # One master row and its part rows
MAX_RESPONSE_COLUMN_CONTENT = 5000  # Distinct values of a column
MAX_RESPONSE_ERD = 20000  # Every table and foreign key of a schema

Handler = Callable[[dict[str, Any]], Awaitable[list[TextContent]]]


def truncate_json_response(data: str, max_length: int) -> str:
    """
    Truncate JSON response to a maximum length.

    Args:
        data: JSON string to truncate
        max_length: Maximum length in characters

    Returns:
        Truncated JSON string with truncation notice if needed
    """
    if len(data) <= max_length:
        return data

    truncation_msg = (
        f"\n\n... [Response truncated: {len(data)} chars -> {max_length} chars]"
    )
    available_length = max_length - len(truncation_msg)

    if available_length < 100:
        return dumps(
            {
                "error": "Response too large",
                "original_size": len(data),
                "limit": max_length,
                "message": "Narrow the request with filters or a smaller limit.",
            }
        )

    truncated = data[:available_length]

    # Prefer cutting at a line end near the limit
    last_newline = truncated.rfind("\n")
    if last_newline > available_length * 0.8:
        truncated = truncated[:last_newline]

    return truncated + truncation_msg


def _text(data: Any, max_length: int) -> list[TextContent]:
    return [
        TextContent(type="text", text=truncate_json_response(dumps(data), max_length))
    ]


def _error_payload(error: BrowserError) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": type(error).__name__, "message": str(error)}
    if isinstance(error, ValidationError):
        payload["errors"] = error.errors
    if isinstance(error, DatabaseError):
        payload["code"] = error.code
        payload["errno"] = error.errno
    kind = getattr(error, "kind", None)
    if kind is not None:
        payload["kind"] = kind
    return payload


def _schema_table_tool(name: str, description: str) -> Tool:
    return Tool(
        name=name,
        description=description,
        inputSchema={
            "type": "object",
            "properties": {
                "schema": {"type": "string", "description": "Schema name"},
                "table": {"type": "string", "description": "Raw table name"},
            },
            "required": ["schema", "table"],
        },
    )


class DatabaseBrowserServer:
    """MCP server for browsing and editing MySQL schemas."""

    def __init__(self, config: DatabaseConfig):
        """
        Initialize schema browser MCP server.

        Args:
            config: Database configuration
        """
        self.config = config
        self.registry = SessionRegistry(config)
        self.adapter = create_adapter(config)
        self.credentials: Optional[ConnectionConf] = None
        self.session_key: Optional[str] = None
        self._login_lock = asyncio.Lock()
        self.server = Server("db-browser-mcp")

    async def initialize(self, credentials: Optional[ConnectionConf] = None) -> None:
        """
        Open the server's session and start the prune sweep.

        Args:
            credentials: Login to use (defaults to the one in the URL)
        """
        credentials = credentials or self.config.default_credentials()
        if credentials is None:
            raise ValueError("DATABASE_URL must include a user name")

        self.credentials = credentials
        self.session_key = await self.registry.authenticate(credentials)
        self.registry.start_pruning()

        logger.info(f"Initialized {self.config.dialect} schema browser MCP server")

    async def dao(self) -> SchemaDao:
        """
        Build a SchemaDao for the server's session.

        The server is the only client of its session, so a session removed
        by the prune sweep after an idle period is replaced with a new login.

        Raises:
            RuntimeError: If initialize() was never called
            DatabaseError: If logging in again fails
        """
        if self.credentials is None or self.session_key is None:
            raise RuntimeError(
                "DatabaseBrowserServer not initialized. Call initialize() first."
            )

        async with self._login_lock:
            try:
                helper = self.registry.query_helper(self.session_key)
            except NotFoundError as e:
                if e.kind != "session":
                    raise
                logger.info("Server session expired, logging in again")
                self.session_key = await self.registry.authenticate(self.credentials)
                helper = self.registry.query_helper(self.session_key)

        return SchemaDao(helper, self.adapter)

    def list_tools(self) -> list[Tool]:
        """Every tool the server offers."""
        return [
            self._create_list_schemas_tool(),
            self._create_list_tables_tool(),
            self._create_get_table_meta_tool(),
            self._create_get_headers_tool(),
            self._create_get_defaults_tool(),
            self._create_get_constraints_tool(),
            self._create_get_content_tool(),
            self._create_pluck_row_tool(),
            self._create_get_column_content_tool(),
            self._create_insert_rows_tool(),
            self._create_get_erd_tool(),
        ]

    def _create_list_schemas_tool(self) -> Tool:
        """Create list_schemas tool."""
        return Tool(
            name="list_schemas",
            description="List all non-system schemas visible to the session",
            inputSchema={"type": "object", "properties": {}, "required": []},
        )

    def _create_list_tables_tool(self) -> Tool:
        """Create list_tables tool."""
        return Tool(
            name="list_tables",
            description=(
                "List the tables of a schema with their tier "
                "(lookup, manual, imported, computed, hidden) and master table"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {"type": "string", "description": "Schema name"},
                },
                "required": ["schema"],
            },
        )

    def _create_get_table_meta_tool(self) -> Tool:
        return _schema_table_tool(
            "get_table_meta",
            "Get a full table description: columns, row count, resolved "
            "constraints and part tables",
        )

    def _create_get_headers_tool(self) -> Tool:
        return _schema_table_tool(
            "get_headers", "Describe the columns of a table, including defaults"
        )

    def _create_get_defaults_tool(self) -> Tool:
        return _schema_table_tool(
            "get_defaults", "Get the resolved default value of every column"
        )

    def _create_get_constraints_tool(self) -> Tool:
        """Create get_constraints tool."""
        return Tool(
            name="get_constraints",
            description=(
                "Get the key constraints of a table, optionally with foreign "
                "keys followed to their final target and merged per constraint"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {"type": "string", "description": "Schema name"},
                    "table": {"type": "string", "description": "Raw table name"},
                    "resolve": {
                        "type": "boolean",
                        "description": "Follow foreign key chains (default: false)",
                        "default": False,
                    },
                    "compound": {
                        "type": "boolean",
                        "description": "Merge columns per constraint (default: false)",
                        "default": False,
                    },
                },
                "required": ["schema", "table"],
            },
        )

    def _create_get_content_tool(self) -> Tool:
        """Create get_content tool."""
        return Tool(
            name="get_content",
            description="Get one page of a table's rows, filtered and sorted",
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {"type": "string", "description": "Schema name"},
                    "table": {"type": "string", "description": "Raw table name"},
                    "page": {
                        "type": "integer",
                        "description": "1-based page number (default: 1)",
                        "default": 1,
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Rows per page (default: 25)",
                        "default": 25,
                    },
                    "sort": {
                        "type": "string",
                        "description": "Column to sort by, prefixed with '-' "
                        "for descending order",
                    },
                    "filters": {
                        "type": "array",
                        "description": "Predicates, all of which must match",
                        "items": {
                            "type": "object",
                            "properties": {
                                "param": {"type": "string"},
                                "op": {
                                    "type": "string",
                                    "enum": ["eq", "lt", "gt", "is", "isnot"],
                                },
                                "value": {"type": "string"},
                            },
                            "required": ["param", "op", "value"],
                        },
                    },
                },
                "required": ["schema", "table"],
            },
        )

    def _create_pluck_row_tool(self) -> Tool:
        """Create pluck_row tool."""
        return Tool(
            name="pluck_row",
            description=(
                "Fetch one row by a primary or unique key together with the "
                "rows of its part tables"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {"type": "string", "description": "Schema name"},
                    "table": {"type": "string", "description": "Raw table name"},
                    "selector": {
                        "type": "object",
                        "description": "Column name to value (as a string)",
                        "additionalProperties": {"type": "string"},
                    },
                },
                "required": ["schema", "table", "selector"],
            },
        )

    def _create_get_column_content_tool(self) -> Tool:
        """Create get_column_content tool."""
        return Tool(
            name="get_column_content",
            description="Get the distinct values of one column, in order",
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {"type": "string", "description": "Schema name"},
                    "table": {"type": "string", "description": "Raw table name"},
                    "column": {"type": "string", "description": "Column name"},
                },
                "required": ["schema", "table", "column"],
            },
        )

    def _create_insert_rows_tool(self) -> Tool:
        """Create insert_rows tool."""
        return Tool(
            name="insert_rows",
            description=(
                "Insert rows into a master table and its part tables in one "
                "transaction. Every row is validated first."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {"type": "string", "description": "Schema name"},
                    "data": {
                        "type": "object",
                        "description": "Raw table name to a list of rows",
                        "additionalProperties": {
                            "type": "array",
                            "items": {"type": "object"},
                        },
                    },
                },
                "required": ["schema", "data"],
            },
        )

    def _create_get_erd_tool(self) -> Tool:
        """Create get_erd tool."""
        return Tool(
            name="get_erd",
            description="Get every table and foreign key relationship as a diagram",
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {
                        "type": "string",
                        "description": "Schema name (optional, all schemas if omitted)",
                    },
                },
                "required": [],
            },
        )

    # Tool handlers
    async def handle_list_schemas(self, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle list_schemas request."""
        dao = await self.dao()
        schemas = await dao.schemas()
        return _text(schemas, MAX_RESPONSE_LIST_SCHEMAS)

    async def handle_list_tables(self, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle list_tables request."""
        dao = await self.dao()
        tables = await dao.tables(arguments["schema"])
        return _text(tables, MAX_RESPONSE_LIST_TABLES)

    async def handle_get_table_meta(
        self, arguments: dict[str, Any]
    ) -> list[TextContent]:
        """Handle get_table_meta request."""
        dao = await self.dao()
        meta = await dao.meta(arguments["schema"], arguments["table"])
        return _text(meta, MAX_RESPONSE_TABLE_META)

    async def handle_get_headers(self, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle get_headers request."""
        dao = await self.dao()
        headers = await dao.headers(arguments["schema"], arguments["table"])
        return _text(headers, MAX_RESPONSE_HEADERS)

    async def handle_get_defaults(self, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle get_defaults request."""
        dao = await self.dao()
        defaults = await dao.defaults(arguments["schema"], arguments["table"])
        return _text(defaults, MAX_RESPONSE_DEFAULTS)

    async def handle_get_constraints(
        self, arguments: dict[str, Any]
    ) -> list[TextContent]:
        """Handle get_constraints request."""
        dao = await self.dao()
        constraints: list[Any] = await dao.constraints(
            arguments["schema"], arguments["table"]
        )
        if arguments.get("resolve", False):
            constraints = await dao.resolve_constraints(constraints)
        if arguments.get("compound", False):
            constraints = dao.resolve_compound_constraints(constraints)
        return _text(constraints, MAX_RESPONSE_CONSTRAINTS)

    async def handle_get_content(self, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle get_content request."""
        dao = await self.dao()
        content = await dao.content(arguments)
        return _text(content, MAX_RESPONSE_CONTENT)

    async def handle_pluck_row(self, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle pluck_row request."""
        dao = await self.dao()
        rows = await dao.pluck(
            arguments["schema"], arguments["table"], arguments["selector"]
        )
        return _text(rows, MAX_RESPONSE_PLUCK)

    async def handle_get_column_content(
        self, arguments: dict[str, Any]
    ) -> list[TextContent]:
        """Handle get_column_content request."""
        dao = await self.dao()
        values = await dao.column_content(
            arguments["schema"], arguments["table"], arguments["column"]
        )
        return _text(values, MAX_RESPONSE_COLUMN_CONTENT)

    async def handle_insert_rows(self, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle insert_rows request."""
        data = arguments["data"]
        dao = await self.dao()
        await dao.insert_row(arguments["schema"], data)
        inserted = {table: len(rows) for table, rows in data.items()}
        return _text({"inserted": inserted}, MAX_RESPONSE_LIST_TABLES)

    async def handle_get_erd(self, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle get_erd request."""
        dao = await self.dao()
        erd = await dao.erd(arguments.get("schema"))
        return _text(erd, MAX_RESPONSE_ERD)

    def handlers(self) -> dict[str, Handler]:
        return {
            "list_schemas": self.handle_list_schemas,
            "list_tables": self.handle_list_tables,
            "get_table_meta": self.handle_get_table_meta,
            "get_headers": self.handle_get_headers,
            "get_defaults": self.handle_get_defaults,
            "get_constraints": self.handle_get_constraints,
            "get_content": self.handle_get_content,
            "pluck_row": self.handle_pluck_row,
            "get_column_content": self.handle_get_column_content,
            "insert_rows": self.handle_insert_rows,
            "get_erd": self.handle_get_erd,
        }

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """
        Dispatch a tool call.

        Errors raised by the schema access layer are returned to the client
        as a JSON error payload; anything else propagates.
        """
        handler = self.handlers().get(name)
        if handler is None:
            raise ValueError(f"Unknown tool: {name}")

        try:
            return await handler(arguments)
        except BrowserError as e:
            logger.error(f"Tool '{name}' failed: {e}")
            return _text(_error_payload(e), MAX_RESPONSE_CONTENT)

    async def cleanup(self) -> None:
        """Cleanup resources."""
        await self.registry.close()
        logger.info("Schema browser MCP server cleaned up")


async def main() -> None:
    """Main entry point for the MCP server."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set")

    config = DatabaseConfig(url=database_url)
    mcp_server = DatabaseBrowserServer(config)

    try:
        await mcp_server.initialize()

        @mcp_server.server.list_tools()
        async def list_tools() -> list[Tool]:
            """List available tools."""
            return mcp_server.list_tools()

        @mcp_server.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            """Handle tool calls."""
            return await mcp_server.call_tool(name, arguments)

        from mcp.server.stdio import stdio_server

        async with stdio_server() as (read_stream, write_stream):
            await mcp_server.server.run(
                read_stream,
                write_stream,
                mcp_server.server.create_initialization_options(),
            )

    finally:
        await mcp_server.cleanup()


def cli_entry() -> None:
    """
    Synchronous entry point for console script.

    This function is called by the 'db-browser-mcp' console script.
    """
    # Windows-specific event loop policy
    if os.name == "nt":
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())  # type: ignore[attr-defined]

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    cli_entry()
