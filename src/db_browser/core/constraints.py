"""Constraint reading, foreign key chain resolution and compounding."""

import logging
from typing import Optional

from db_browser.adapters.base import BaseAdapter, Executor
from db_browser.errors import ResolutionError, ValidationError
from db_browser.models.constraint import (
    Constraint,
    ConstraintColumn,
    ConstraintRef,
    RawConstraint,
)

logger = logging.getLogger(__name__)


class _CatalogCache:
    """Constraints and column names per table, for the span of one call."""

    def __init__(self, helper: Executor, adapter: BaseAdapter):
        self.helper = helper
        self.adapter = adapter
        self._constraints: dict[tuple[str, str], list[RawConstraint]] = {}
        self._columns: dict[tuple[str, str], set[str]] = {}

    async def constraints(self, schema: str, table: str) -> list[RawConstraint]:
        key = (schema, table)
        if key not in self._constraints:
            self._constraints[key] = await self.adapter.get_constraints(
                self.helper, schema, table
            )
        return self._constraints[key]

    async def columns(self, schema: str, table: str) -> set[str]:
        key = (schema, table)
        if key not in self._columns:
            columns = await self.adapter.get_columns(self.helper, schema, table)
            self._columns[key] = {c["name"] for c in columns}
        return self._columns[key]


class ConstraintResolver:
    """Reads constraints and follows foreign keys to their final target."""

    def __init__(self, helper: Executor, adapter: BaseAdapter):
        """
        Initialize constraint resolver.

        Args:
            helper: Statement executor for the session
            adapter: Database-specific catalog adapter
        """
        self.helper = helper
        self.adapter = adapter

    async def constraints(self, schema: str, table: str) -> list[RawConstraint]:
        """Raw constraints of a table, ordered by name and column ordinal."""
        return await self.adapter.get_constraints(self.helper, schema, table)

    async def resolve_constraints(
        self, constraints: list[RawConstraint]
    ) -> list[RawConstraint]:
        """
        Replace each foreign key's ref with the end of its reference chain.

        A chain ends at the first referenced column that is not itself a
        foreign key. Non-foreign constraints are returned unchanged.

        Raises:
            ResolutionError: If a chain revisits a column or points at a
                table or column that does not exist
        """
        cache = _CatalogCache(self.helper, self.adapter)
        resolved = []
        for constraint in constraints:
            if constraint.type != "foreign" or constraint.ref is None:
                resolved.append(constraint)
                continue

            final_ref = await self._follow(constraint.name, constraint.ref, cache)
            resolved.append(constraint.model_copy(update={"ref": final_ref}))
        return resolved

    async def _follow(
        self, name: str, ref: ConstraintRef, cache: _CatalogCache
    ) -> ConstraintRef:
        visited: set[tuple[str, str, str]] = set()

        while True:
            if ref.key in visited:
                raise ResolutionError(
                    f"Foreign key '{name}' is part of a reference cycle "
                    f"through {ref.schema}.{ref.table}.{ref.column}"
                )
            visited.add(ref.key)

            columns = await cache.columns(ref.schema, ref.table)
            if ref.column not in columns:
                raise ResolutionError(
                    f"Foreign key '{name}' references "
                    f"{ref.schema}.{ref.table}.{ref.column}, which does not exist"
                )

            next_ref = self._next_hop(
                await cache.constraints(ref.schema, ref.table), ref.column
            )
            if next_ref is None:
                if len(visited) > 1:
                    logger.debug(
                        f"Resolved '{name}' through {len(visited)} hops "
                        f"to {ref.schema}.{ref.table}.{ref.column}"
                    )
                return ref
            ref = next_ref

    @staticmethod
    def _next_hop(
        constraints: list[RawConstraint], column: str
    ) -> Optional[ConstraintRef]:
        for candidate in constraints:
            if (
                candidate.type == "foreign"
                and candidate.local_column == column
                and candidate.ref is not None
            ):
                return candidate.ref
        return None

    @staticmethod
    def resolve_compound_constraints(
        constraints: list[RawConstraint],
    ) -> list[Constraint]:
        """
        Merge the per-column rows of each constraint into one Constraint.

        Groups keep the order in which their names first appear; columns
        within a group are ordered by index.

        Raises:
            ValidationError: If two rows share a name and index, or an index
                is negative or not smaller than the number of columns
        """
        groups: dict[str, list[RawConstraint]] = {}
        for constraint in constraints:
            groups.setdefault(constraint.name, []).append(constraint)

        compound = []
        for name, group in groups.items():
            seen: set[int] = set()
            for constraint in group:
                if constraint.index in seen:
                    raise ValidationError(
                        f"Constraint '{name}' has more than one column at "
                        f"index {constraint.index}"
                    )
                if constraint.index < 0 or constraint.index >= len(group):
                    raise ValidationError(
                        f"Constraint '{name}' has index {constraint.index}, "
                        f"expected 0 to {len(group) - 1}"
                    )
                seen.add(constraint.index)

            types = {c.type for c in group}
            if len(types) > 1:
                raise ValidationError(
                    f"Constraint '{name}' mixes types: {', '.join(sorted(types))}"
                )

            ordered = sorted(group, key=lambda c: c.index)
            compound.append(
                Constraint(
                    name=name,
                    type=ordered[0].type,
                    constraints=[
                        ConstraintColumn(local_column=c.local_column, ref=c.ref)
                        for c in ordered
                    ],
                )
            )
        return compound
