"""Content request and query result models."""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

SqlValue = Union[str, int, float, bool, None]
SqlRow = dict[str, SqlValue]
TableInsert = dict[str, list[dict[str, Any]]]

FILTER_OPERATIONS = ("eq", "lt", "gt", "is", "isnot")
DEFAULT_LIMIT = 25


class QueryResult(BaseModel):
    """Result of a single statement."""

    query: str = Field(..., description="Executed SQL statement")
    rows: list[dict[str, Any]] = Field(
        default_factory=list, description="Result rows as dictionaries"
    )
    row_count: int = Field(default=0, description="Rows returned or affected")
    columns: list[str] = Field(default_factory=list, description="Column names")
    execution_time_ms: Optional[float] = Field(
        None, description="Execution time in milliseconds"
    )

    @property
    def is_empty(self) -> bool:
        """Check if result set is empty."""
        return not self.rows

    def get_column_values(self, column: str) -> list[Any]:
        """Extract all values for a specific column."""
        return [row.get(column) for row in self.rows]

    def scalar(self) -> Any:
        """First column of the first row, or None."""
        if not self.rows:
            return None
        return next(iter(self.rows[0].values()), None)


class Filter(BaseModel):
    """A single column predicate. Values always travel as strings."""

    param: str = Field(..., description="Column name")
    # Left open so unknown operations are reported by the query builder
    op: str = Field(..., description="eq, lt, gt, is or isnot")
    value: str = Field(..., description="Value, coerced per column type")


class Sort(BaseModel):
    """Ordering for a content request."""

    by: str = Field(..., description="Column to sort by")
    direction: Literal["asc", "desc"] = Field(default="asc")

    @classmethod
    def parse(cls, value: str) -> "Sort":
        """Parse the compact form used by the grid: ``col`` or ``-col``."""
        if value.startswith("-"):
            return cls(by=value[1:], direction="desc")
        return cls(by=value, direction="asc")


class ContentRequest(BaseModel):
    """Parameters for one page of table content."""

    schema: str = Field(..., description="Schema name")
    table: str = Field(..., description="Table name (raw)")
    page: int = Field(default=1, description="1-based page number")
    limit: int = Field(default=DEFAULT_LIMIT, description="Rows per page")
    sort: Optional[Sort] = Field(None, description="Ordering")
    filters: list[Filter] = Field(default_factory=list, description="Predicates")

    @field_validator("sort", mode="before")
    @classmethod
    def parse_sort(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Sort.parse(v) if v else None
        return v


class PaginatedContent(BaseModel):
    """One page of rows plus the number of rows matching the filters."""

    rows: list[SqlRow] = Field(default_factory=list)
    count: int = Field(..., description="Matching rows, ignoring pagination")
