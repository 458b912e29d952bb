"""Unit Tests for the MCP server

Tests the tool surface without a database:
- Tool list and input schemas
- Dispatch to the schema access layer
- Errors returned as JSON payloads
- A new login once the server session expires
- Response truncation
"""

import orjson
import pytest

from db_browser.core import SchemaDao, SessionRegistry
from db_browser.core.connection import DatabaseConnection
from db_browser.models import DatabaseConfig
from db_browser.server import DatabaseBrowserServer, truncate_json_response
from fakes import FakeClock, FakeHelper

TOOL_NAMES = [
    "list_schemas",
    "list_tables",
    "get_table_meta",
    "get_headers",
    "get_defaults",
    "get_constraints",
    "get_content",
    "pluck_row",
    "get_column_content",
    "insert_rows",
    "get_erd",
]


@pytest.fixture
def server(fake_dao: SchemaDao) -> DatabaseBrowserServer:
    server = DatabaseBrowserServer(
        DatabaseConfig(url="mysql+aiomysql://user:pw@localhost:3306")
    )

    async def dao() -> SchemaDao:
        return fake_dao

    server.dao = dao  # type: ignore[method-assign]
    return server


async def call(server: DatabaseBrowserServer, name: str, **arguments):
    [content] = await server.call_tool(name, arguments)
    assert content.type == "text"
    return orjson.loads(content.text)


class TestTools:
    """Test the advertised tools."""

    def test_tool_names(self, server: DatabaseBrowserServer):
        assert [t.name for t in server.list_tools()] == TOOL_NAMES

    def test_every_tool_has_a_handler(self, server: DatabaseBrowserServer):
        assert sorted(server.handlers()) == sorted(TOOL_NAMES)

    def test_content_filter_operations(self, server: DatabaseBrowserServer):
        tool = next(t for t in server.list_tools() if t.name == "get_content")
        op = tool.inputSchema["properties"]["filters"]["items"]["properties"]["op"]

        assert op["enum"] == ["eq", "lt", "gt", "is", "isnot"]

    async def test_unknown_tool(self, server: DatabaseBrowserServer):
        with pytest.raises(ValueError, match="Unknown tool"):
            await server.call_tool("drop_everything", {})

    async def test_initialize_requires_user(self):
        server = DatabaseBrowserServer(DatabaseConfig(url="mysql+aiomysql://localhost"))

        with pytest.raises(ValueError, match="user name"):
            await server.initialize()


class TestDispatch:
    """Test tool calls routed to the schema access layer."""

    async def test_list_schemas(self, server: DatabaseBrowserServer):
        assert await call(server, "list_schemas") == [
            "helium_cross_schema_ref_test",
            "helium_sample",
        ]

    async def test_list_tables(self, server: DatabaseBrowserServer):
        tables = await call(server, "list_tables", schema="helium_sample")
        tiers = {t["name"]["raw"]: t["tier"] for t in tables}

        assert tiers["#lookup"] == "lookup"
        assert tiers["master__part"] == "hidden"

    async def test_get_defaults(self, server: DatabaseBrowserServer):
        defaults = await call(
            server, "get_defaults", schema="helium_sample", table="master__part"
        )

        assert defaults == {"part_pk": None, "master": None, "default_test": 12345}

    async def test_get_constraints_compound(self, server: DatabaseBrowserServer):
        constraints = await call(
            server,
            "get_constraints",
            schema="helium_sample",
            table="shipment",
            resolve=True,
            compound=True,
        )

        foreign = next(c for c in constraints if c["name"] == "shipment_ibfk_1")
        assert [c["ref"]["table"] for c in foreign["constraints"]] == [
            "order",
            "product",
        ]

    async def test_get_content(
        self, server: DatabaseBrowserServer, fake_helper: FakeHelper
    ):
        fake_helper.respond("SELECT COUNT(*)", [{"n": 1}])
        fake_helper.respond("SELECT * FROM", [{"customer_id": 1, "name": "Ann"}])

        content = await call(
            server, "get_content", schema="helium_sample", table="customer"
        )

        assert content == {"rows": [{"customer_id": 1, "name": "Ann"}], "count": 1}

    async def test_insert_rows(
        self, server: DatabaseBrowserServer, fake_helper: FakeHelper
    ):
        result = await call(
            server,
            "insert_rows",
            schema="helium_sample",
            data={"master": [{"pk": "1"}, {"pk": "2"}]},
        )

        assert result == {"inserted": {"master": 2}}
        assert fake_helper.committed == 1


class TestErrors:
    """Test errors returned to the client."""

    async def test_validation_error(self, server: DatabaseBrowserServer):
        payload = await call(
            server, "get_content", schema="helium_sample", table="customer", limit=0
        )

        assert payload["error"] == "ValidationError"
        assert payload["errors"] == ["limit must be at least 1, got 0"]

    async def test_not_found_error(self, server: DatabaseBrowserServer):
        payload = await call(server, "list_tables", schema="unknown_schema")

        assert payload["error"] == "NotFoundError"
        assert payload["kind"] == "schema"

    async def test_database_error(
        self, server: DatabaseBrowserServer, fake_helper: FakeHelper
    ):
        fake_helper.fail_on = "SELECT DISTINCT"

        payload = await call(
            server,
            "get_column_content",
            schema="helium_sample",
            table="product",
            column="product_name",
        )

        assert payload["error"] == "DatabaseError"
        assert payload["code"] == "ER_DUP_ENTRY"
        assert payload["errno"] == 1062


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def logged_in_server(monkeypatch, fake_dao: SchemaDao, clock: FakeClock):
    """Server with a real session registry whose logins always succeed."""

    async def test_connection(self):
        return None

    monkeypatch.setattr(DatabaseConnection, "test_connection", test_connection)
    monkeypatch.setattr("db_browser.server.SchemaDao", lambda helper, adapter: fake_dao)

    config = DatabaseConfig(
        url="mysql+aiomysql://user:pw@localhost:3306", session_length=60
    )
    server = DatabaseBrowserServer(config)
    server.registry = SessionRegistry(config, clock)
    await server.initialize()
    try:
        yield server
    finally:
        await server.cleanup()


class TestServerSession:
    """Test the server's own session across idle periods."""

    async def test_active_session_reused(
        self, logged_in_server: DatabaseBrowserServer, clock: FakeClock
    ):
        key = logged_in_server.session_key
        clock.advance(30)

        await logged_in_server.dao()

        assert logged_in_server.session_key == key
        assert len(logged_in_server.registry) == 1

    async def test_login_again_after_prune(
        self, logged_in_server: DatabaseBrowserServer, clock: FakeClock
    ):
        key = logged_in_server.session_key
        clock.advance(61)
        assert await logged_in_server.registry.prune() == 1

        schemas = await call(logged_in_server, "list_schemas")

        assert schemas == ["helium_cross_schema_ref_test", "helium_sample"]
        assert logged_in_server.session_key != key
        assert len(logged_in_server.registry) == 1

    async def test_expired_but_not_pruned(
        self, logged_in_server: DatabaseBrowserServer, clock: FakeClock
    ):
        key = logged_in_server.session_key
        clock.advance(61)

        await logged_in_server.dao()

        assert logged_in_server.session_key != key

    async def test_dao_before_initialize(self):
        server = DatabaseBrowserServer(
            DatabaseConfig(url="mysql+aiomysql://user:pw@localhost:3306")
        )

        with pytest.raises(RuntimeError, match="not initialized"):
            await server.dao()


class TestTruncation:
    """Test response size limits."""

    def test_short_response_untouched(self):
        assert truncate_json_response('{"a": 1}', 100) == '{"a": 1}'

    def test_long_response_truncated(self):
        data = "\n".join(f'  "row{i}": {i},' for i in range(200))

        truncated = truncate_json_response(data, 500)

        assert len(truncated) <= 500
        assert "Response truncated" in truncated

    def test_tiny_limit_returns_error(self):
        truncated = orjson.loads(truncate_json_response("x" * 1000, 50))

        assert truncated["error"] == "Response too large"
        assert truncated["original_size"] == 1000
