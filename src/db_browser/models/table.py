"""Table, column, and table-name models."""

from enum import Enum
from typing import AbstractSet, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from db_browser.models.constraint import Constraint

# Leading characters that mark a table's tier. "__" must be checked before "_".
TIER_PREFIXES: tuple[tuple[str, str], ...] = (
    ("#", "lookup"),
    ("__", "computed"),
    ("_", "imported"),
    ("~", "hidden"),
)

PART_SEPARATOR = "__"


class ColumnKind(str, Enum):
    """Closed set of column kinds that drive validation and formatting."""

    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    ENUM = "enum"
    BLOB = "blob"
    STRING = "string"

    @property
    def is_temporal(self) -> bool:
        return self in (ColumnKind.DATE, ColumnKind.DATETIME)


class TableName(BaseModel):
    """
    A table identifier in both its storage and display forms.

    Names follow the DataJoint conventions: a leading ``#``, ``_``, ``__`` or
    ``~`` selects the tier, and ``<master>__<part>`` names a part table that
    belongs to ``<master>``.
    """

    model_config = ConfigDict(frozen=True)

    raw: str = Field(..., description="Name as stored in the database")
    clean: str = Field(..., description="Display name")
    tier: str = Field(..., description="Tier implied by the name prefix")
    master_raw: Optional[str] = Field(
        None, description="Raw name of the master table if this looks like a part"
    )

    @property
    def is_part_table(self) -> bool:
        return self.master_raw is not None

    @classmethod
    def parse(
        cls, raw: str, known_tables: Optional[AbstractSet[str]] = None
    ) -> "TableName":
        """
        Derive the clean name, tier, and master of a raw table name.

        When ``known_tables`` is given, a name only counts as a part table if
        its master is one of them.
        """
        prefix = ""
        tier = "manual"
        for candidate, candidate_tier in TIER_PREFIXES:
            if raw.startswith(candidate):
                prefix, tier = candidate, candidate_tier
                break

        body = raw[len(prefix) :]
        master_raw: Optional[str] = None
        clean = body

        master, sep, part = body.partition(PART_SEPARATOR)
        if sep and master and part:
            candidate = prefix + master
            if known_tables is None or candidate in known_tables:
                master_raw = candidate
                clean = part

        return cls(raw=raw, clean=clean, tier=tier, master_raw=master_raw)

    def __str__(self) -> str:
        return self.raw


class TableHeader(BaseModel):
    """Description of a single column."""

    name: str = Field(..., description="Column name")
    type: ColumnKind = Field(..., description="Normalized column kind")
    raw_type: str = Field(..., description="Full column type, e.g. 'tinyint(1)'")
    ordinal_position: int = Field(..., description="1-based column position")
    nullable: bool = Field(..., description="Whether column allows NULL")
    default_value: Any = Field(None, description="Resolved default value")
    auto_increment: bool = Field(
        default=False, description="Whether the column is auto-incremented"
    )
    max_characters: Optional[int] = Field(
        None, description="Maximum length for string types"
    )
    numeric_precision: Optional[int] = Field(
        None, description="Precision for numeric types"
    )
    numeric_scale: Optional[int] = Field(None, description="Scale for numeric types")
    comment: str = Field(default="", description="Column comment")
    enum_values: Optional[list[str]] = Field(
        None, description="Allowed values for enum columns"
    )
    has_default: bool = Field(
        default=False, description="Whether the catalog defines a default"
    )

    @property
    def required(self) -> bool:
        """Whether an insert must supply a value for this column."""
        return not (self.nullable or self.has_default or self.auto_increment)


class TableMeta(BaseModel):
    """Full description of a table."""

    schema: str = Field(..., description="Schema name")
    name: TableName = Field(..., description="Table name")
    headers: list[TableHeader] = Field(
        default_factory=list, description="Column descriptions"
    )
    total_rows: int = Field(..., description="Number of rows in the table")
    constraints: list[Constraint] = Field(
        default_factory=list, description="Resolved compound constraints"
    )
    comment: str = Field(default="", description="Table comment")
    parts: list[TableName] = Field(
        default_factory=list, description="Part tables of this master"
    )

    def get_header(self, name: str) -> Optional[TableHeader]:
        for header in self.headers:
            if header.name == name:
                return header
        return None

    @property
    def column_count(self) -> int:
        return len(self.headers)


class TableSummary(BaseModel):
    """One entry of a schema's table listing."""

    schema: str = Field(..., description="Schema name")
    name: TableName = Field(..., description="Table name")
    tier: str = Field(..., description="lookup, manual, imported, computed, hidden")
    master_name: Optional[TableName] = Field(
        None, description="Master table when this is a part table"
    )
