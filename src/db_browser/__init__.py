"""
db_browser - Schema browser core for MySQL databases

Introspects a live database, rebuilds its logical model (tables, columns,
constraints, master/part tables) and serves paginated content and validated
multi-table inserts, with an MCP server on top.
"""

__version__ = "1.0.0"

from .core import SchemaDao, SessionRegistry
from .errors import (
    BrowserError,
    DatabaseError,
    NotFoundError,
    ResolutionError,
    ValidationError,
)
from .models.config import ConnectionConf, DatabaseConfig
from .models.query import ContentRequest, Filter, PaginatedContent, Sort
from .models.table import TableHeader, TableMeta, TableName

__all__ = [
    "BrowserError",
    "ConnectionConf",
    "ContentRequest",
    "DatabaseConfig",
    "DatabaseError",
    "Filter",
    "NotFoundError",
    "PaginatedContent",
    "ResolutionError",
    "SchemaDao",
    "SessionRegistry",
    "Sort",
    "TableHeader",
    "TableMeta",
    "TableName",
    "ValidationError",
]
