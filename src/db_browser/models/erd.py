"""Entity-relationship diagram models."""

from pydantic import BaseModel, Field

from db_browser.models.constraint import Constraint
from db_browser.models.table import TableMeta


class ErdNode(BaseModel):
    id: int = Field(..., description="Node identifier, unique within one diagram")
    table: TableMeta


class ErdEdge(BaseModel):
    from_id: int = Field(..., description="Node holding the foreign key")
    to_id: int = Field(..., description="Node holding the resolved target")
    constraint: Constraint


class Erd(BaseModel):
    """Tables and their resolved foreign key relationships."""

    nodes: list[ErdNode] = Field(default_factory=list)
    edges: list[ErdEdge] = Field(default_factory=list)
