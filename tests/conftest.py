"""Pytest configuration and shared fixtures for schema browser tests"""

import os
import sys
from typing import AsyncGenerator, Optional

import pytest
from dotenv import load_dotenv

from db_browser.adapters import create_adapter
from db_browser.adapters.base import BaseAdapter
from db_browser.core import SchemaDao, SessionRegistry
from db_browser.models.config import DatabaseConfig
from fakes import FakeAdapter, FakeCatalog, FakeHelper, helium_catalog

# Load environment variables
load_dotenv()

# Fix for Windows: aiomysql requires SelectorEventLoop on Windows
if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())  # type: ignore[attr-defined]


# ==================== In-memory Fixtures ====================


@pytest.fixture
def catalog() -> FakeCatalog:
    """In-memory copy of the sample schemas"""
    return helium_catalog()


@pytest.fixture
def fake_adapter(catalog: FakeCatalog) -> FakeAdapter:
    return FakeAdapter(catalog)


@pytest.fixture
def fake_helper() -> FakeHelper:
    return FakeHelper()


@pytest.fixture
def fake_dao(fake_helper: FakeHelper, fake_adapter: FakeAdapter) -> SchemaDao:
    """SchemaDao wired to the in-memory catalog"""
    return SchemaDao(fake_helper, fake_adapter)  # type: ignore[arg-type]


# ==================== MySQL Fixtures ====================


@pytest.fixture(scope="session")
def mysql_database_url() -> Optional[str]:
    """MySQL test database URL from environment"""
    return os.getenv("MYSQL_TEST_DATABASE_URL")


@pytest.fixture
async def mysql_config(mysql_database_url: Optional[str]) -> DatabaseConfig:
    """MySQL database configuration"""
    if not mysql_database_url:
        pytest.skip("MYSQL_TEST_DATABASE_URL not set in environment")
    return DatabaseConfig(url=mysql_database_url)


@pytest.fixture
async def mysql_adapter(mysql_config: DatabaseConfig) -> BaseAdapter:
    """MySQL adapter instance"""
    return create_adapter(mysql_config)


@pytest.fixture
async def mysql_registry(
    mysql_config: DatabaseConfig,
) -> AsyncGenerator[SessionRegistry, None]:
    """Session registry with proper cleanup"""
    registry = SessionRegistry(mysql_config)
    try:
        yield registry
    finally:
        await registry.close()


@pytest.fixture
async def mysql_dao(
    mysql_registry: SessionRegistry,
    mysql_config: DatabaseConfig,
    mysql_adapter: BaseAdapter,
) -> SchemaDao:
    """SchemaDao for a session opened with the URL's credentials"""
    credentials = mysql_config.default_credentials()
    if credentials is None:
        pytest.skip("MYSQL_TEST_DATABASE_URL has no user name")
    key = await mysql_registry.authenticate(credentials)
    return SchemaDao(mysql_registry.query_helper(key), mysql_adapter)


# ==================== Pytest Configuration ====================


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "mysql: MySQL-specific tests")
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring database"
    )
