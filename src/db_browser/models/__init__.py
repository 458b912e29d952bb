"""Pydantic models for schema metadata, requests and results."""

import warnings

# Suppress the warning about the "schema" field shadowing a BaseModel attribute
warnings.filterwarnings(
    "ignore",
    message=r'Field name "schema" in ".*" shadows an attribute in parent',
    category=UserWarning,
)

from .config import ConnectionConf, DatabaseConfig
from .constraint import Constraint, ConstraintColumn, ConstraintRef, RawConstraint
from .erd import Erd, ErdEdge, ErdNode
from .query import (
    ContentRequest,
    Filter,
    PaginatedContent,
    QueryResult,
    Sort,
    SqlRow,
    TableInsert,
)
from .table import ColumnKind, TableHeader, TableMeta, TableName, TableSummary

__all__ = [
    "ColumnKind",
    "ConnectionConf",
    "Constraint",
    "ConstraintColumn",
    "ConstraintRef",
    "ContentRequest",
    "DatabaseConfig",
    "Erd",
    "ErdEdge",
    "ErdNode",
    "Filter",
    "PaginatedContent",
    "QueryResult",
    "RawConstraint",
    "Sort",
    "SqlRow",
    "TableHeader",
    "TableInsert",
    "TableMeta",
    "TableName",
    "TableSummary",
]
