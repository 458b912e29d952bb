"""MySQL adapter: catalog access through information_schema."""

import datetime
import re
from typing import Any, Optional

from db_browser.adapters.base import BaseAdapter, Executor
from db_browser.models.constraint import ConstraintRef, RawConstraint
from db_browser.models.table import ColumnKind

_CONSTRAINT_TYPES = {
    "PRIMARY KEY": "primary",
    "FOREIGN KEY": "foreign",
    "UNIQUE": "unique",
}

_INTEGER_TYPES = {"tinyint", "smallint", "mediumint", "int", "integer", "bigint", "year"}
_FLOAT_TYPES = {"decimal", "numeric", "float", "double", "real"}
_DATETIME_TYPES = {"datetime", "timestamp"}
_BLOB_TYPES = {
    "tinyblob",
    "blob",
    "mediumblob",
    "longblob",
    "binary",
    "varbinary",
    "bit",
}

# MySQL reports CURRENT_TIMESTAMP, MariaDB current_timestamp(), both allow
# an optional fractional-seconds precision
_CURRENT_TIMESTAMP = re.compile(
    r"^(current_timestamp|now|localtime|localtimestamp)(\(\d*\))?$", re.IGNORECASE
)
_ENUM_VALUE = re.compile(r"'((?:[^']|'')*)'")


class MySQLAdapter(BaseAdapter):
    """MySQL/MariaDB catalog adapter."""

    system_schemas = frozenset(
        {"information_schema", "mysql", "performance_schema", "sys"}
    )

    def quote_identifier(self, name: str) -> str:
        # Backticks are doubled inside quoted identifiers. Colons are escaped
        # so sqlalchemy.text() never mistakes them for bind parameters.
        escaped = name.replace("`", "``").replace(":", "\\:")
        return f"`{escaped}`"

    async def get_schema_names(self, helper: Executor) -> list[str]:
        result = await helper.execute(
            "SELECT SCHEMA_NAME AS name FROM information_schema.SCHEMATA "
            "ORDER BY SCHEMA_NAME"
        )
        return [str(name) for name in result.get_column_values("name")]

    async def schema_exists(self, helper: Executor, schema: str) -> bool:
        result = await helper.execute(
            "SELECT COUNT(*) AS n FROM information_schema.SCHEMATA "
            "WHERE SCHEMA_NAME = :schema",
            {"schema": schema},
        )
        return bool(result.scalar())

    async def get_table_names(self, helper: Executor, schema: str) -> list[str]:
        result = await helper.execute(
            "SELECT TABLE_NAME AS name FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = :schema ORDER BY TABLE_NAME",
            {"schema": schema},
        )
        return [str(name) for name in result.get_column_values("name")]

    async def get_table_comment(
        self, helper: Executor, schema: str, table: str
    ) -> Optional[str]:
        result = await helper.execute(
            "SELECT TABLE_COMMENT AS comment FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table",
            {"schema": schema, "table": table},
        )
        if result.is_empty:
            return None
        return result.rows[0]["comment"] or ""

    async def get_columns(
        self, helper: Executor, schema: str, table: str
    ) -> list[dict[str, Any]]:
        result = await helper.execute(
            """
            SELECT
                COLUMN_NAME AS name,
                ORDINAL_POSITION AS ordinal_position,
                COLUMN_DEFAULT AS raw_default,
                IS_NULLABLE AS is_nullable,
                DATA_TYPE AS data_type,
                COLUMN_TYPE AS column_type,
                CHARACTER_MAXIMUM_LENGTH AS max_characters,
                NUMERIC_PRECISION AS numeric_precision,
                NUMERIC_SCALE AS numeric_scale,
                COLUMN_COMMENT AS comment,
                EXTRA AS extra
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table
            ORDER BY ORDINAL_POSITION
            """,
            {"schema": schema, "table": table},
        )

        columns = []
        for row in result.rows:
            extra = str(row["extra"] or "").lower()
            columns.append(
                {
                    "name": str(row["name"]),
                    "ordinal_position": int(row["ordinal_position"]),
                    "raw_default": row["raw_default"],
                    "nullable": str(row["is_nullable"]).upper() == "YES",
                    "data_type": str(row["data_type"]).lower(),
                    "column_type": str(row["column_type"]),
                    "max_characters": _optional_int(row["max_characters"]),
                    "numeric_precision": _optional_int(row["numeric_precision"]),
                    "numeric_scale": _optional_int(row["numeric_scale"]),
                    "comment": row["comment"] or "",
                    "auto_increment": "auto_increment" in extra,
                }
            )
        return columns

    async def get_constraints(
        self, helper: Executor, schema: str, table: str
    ) -> list[RawConstraint]:
        result = await helper.execute(
            """
            SELECT
                kcu.CONSTRAINT_NAME AS name,
                kcu.COLUMN_NAME AS local_column,
                kcu.ORDINAL_POSITION AS ordinal_position,
                kcu.REFERENCED_TABLE_SCHEMA AS ref_schema,
                kcu.REFERENCED_TABLE_NAME AS ref_table,
                kcu.REFERENCED_COLUMN_NAME AS ref_column,
                tc.CONSTRAINT_TYPE AS constraint_type
            FROM information_schema.KEY_COLUMN_USAGE kcu
            JOIN information_schema.TABLE_CONSTRAINTS tc
              ON tc.CONSTRAINT_SCHEMA = kcu.CONSTRAINT_SCHEMA
             AND tc.TABLE_NAME = kcu.TABLE_NAME
             AND tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
            WHERE kcu.TABLE_SCHEMA = :schema AND kcu.TABLE_NAME = :table
            ORDER BY kcu.CONSTRAINT_NAME, kcu.ORDINAL_POSITION
            """,
            {"schema": schema, "table": table},
        )

        constraints = []
        for row in result.rows:
            constraint_type = _CONSTRAINT_TYPES.get(str(row["constraint_type"]))
            if constraint_type is None:
                continue

            ref = None
            if constraint_type == "foreign" and row["ref_table"] is not None:
                ref = ConstraintRef(
                    schema=str(row["ref_schema"]),
                    table=str(row["ref_table"]),
                    column=str(row["ref_column"]),
                )

            constraints.append(
                RawConstraint(
                    index=int(row["ordinal_position"]) - 1,
                    name=str(row["name"]),
                    local_column=str(row["local_column"]),
                    type=constraint_type,
                    ref=ref,
                )
            )
        return constraints

    async def get_current_timestamp(self, helper: Executor) -> datetime.datetime:
        result = await helper.execute("SELECT CURRENT_TIMESTAMP AS now")
        return result.scalar()

    def column_kind(self, data_type: str, column_type: str) -> ColumnKind:
        data_type = data_type.lower()
        column_type = column_type.lower()

        if column_type.startswith("tinyint(1)") or column_type == "bit(1)":
            return ColumnKind.BOOLEAN
        if data_type in _INTEGER_TYPES:
            return ColumnKind.INTEGER
        if data_type in _FLOAT_TYPES:
            return ColumnKind.FLOAT
        if data_type == "date":
            return ColumnKind.DATE
        if data_type in _DATETIME_TYPES:
            return ColumnKind.DATETIME
        if data_type == "enum":
            return ColumnKind.ENUM
        if data_type in _BLOB_TYPES:
            return ColumnKind.BLOB
        return ColumnKind.STRING

    def enum_values(self, column_type: str) -> Optional[list[str]]:
        if not column_type.lower().startswith("enum("):
            return None
        return [v.replace("''", "'") for v in _ENUM_VALUE.findall(column_type)]

    def is_current_timestamp(self, raw_default: Optional[str]) -> bool:
        if raw_default is None:
            return False
        return bool(_CURRENT_TIMESTAMP.match(str(raw_default).strip()))

    def parse_default_literal(self, raw_default: Optional[str]) -> Optional[str]:
        if raw_default is None:
            return None
        value = str(raw_default)
        # MariaDB reports NULL defaults literally and quotes string defaults
        if value.upper() == "NULL":
            return None
        if len(value) >= 2 and value.startswith("'") and value.endswith("'"):
            return value[1:-1].replace("''", "'")
        return value


def _optional_int(value: Any) -> Optional[int]:
    return int(value) if value is not None else None
