"""Constraint models, as read from the catalog and as resolved."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ConstraintType = Literal["primary", "foreign", "unique"]


class ConstraintRef(BaseModel):
    """The column a foreign key points at."""

    model_config = ConfigDict(frozen=True)

    schema: str = Field(..., description="Referenced schema")
    table: str = Field(..., description="Referenced table (raw name)")
    column: str = Field(..., description="Referenced column")

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.schema, self.table, self.column)


class RawConstraint(BaseModel):
    """One column of one constraint, exactly as the catalog reports it."""

    index: int = Field(..., description="0-based column ordinal in the constraint")
    name: str = Field(..., description="Constraint name")
    local_column: str = Field(..., description="Constrained column")
    type: ConstraintType = Field(..., description="primary, foreign or unique")
    ref: Optional[ConstraintRef] = Field(
        None, description="Referenced column for foreign keys"
    )


class ConstraintColumn(BaseModel):
    """A RawConstraint without its grouping information."""

    local_column: str
    ref: Optional[ConstraintRef] = None


class Constraint(BaseModel):
    """All columns of one (possibly multi-column) constraint."""

    name: str = Field(..., description="Constraint name")
    type: ConstraintType = Field(..., description="primary, foreign or unique")
    constraints: list[ConstraintColumn] = Field(
        default_factory=list, description="Columns ordered by ordinal"
    )

    @property
    def local_columns(self) -> list[str]:
        return [c.local_column for c in self.constraints]

    @property
    def is_unique_key(self) -> bool:
        return self.type in ("primary", "unique")
