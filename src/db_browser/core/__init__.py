"""Core schema access layer."""

from .connection import DatabaseConnection, SessionRegistry
from .constraints import ConstraintResolver
from .content import ContentEngine
from .executor import QueryHelper
from .inserter import InsertEngine
from .inspector import MetadataInspector
from .schema_dao import SchemaDao

__all__ = [
    "ConstraintResolver",
    "ContentEngine",
    "DatabaseConnection",
    "InsertEngine",
    "MetadataInspector",
    "QueryHelper",
    "SchemaDao",
    "SessionRegistry",
]
