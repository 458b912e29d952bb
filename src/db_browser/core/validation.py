"""Validation of multi-table insert batches."""

from typing import AbstractSet, Any, Mapping, Optional

from db_browser.errors import ValidationError
from db_browser.models.query import TableInsert
from db_browser.models.table import ColumnKind, TableHeader, TableName
from db_browser.utils.formatting import coerce_input


class InsertValidator:
    """
    Checks a batch of rows against the headers of their tables.

    Every problem in the batch is collected before anything is reported,
    so callers see the whole list at once.
    """

    def __init__(
        self,
        headers: Mapping[str, list[TableHeader]],
        known_tables: AbstractSet[str],
    ):
        """
        Initialize insert validator.

        Args:
            headers: Columns of every supplied table that exists
            known_tables: Raw names of every table in the schema
        """
        self.headers = headers
        self.known_tables = known_tables

    def validate(self, data: Any) -> TableInsert:
        """
        Validate a batch and coerce its values to bind parameters.

        Args:
            data: Mapping of raw table name to a list of row mappings

        Returns:
            The batch with every value coerced for its column

        Raises:
            ValidationError: Carrying every problem found
        """
        if not isinstance(data, Mapping) or not data:
            raise ValidationError("Insert data must be a non-empty mapping of tables")

        errors: list[str] = []
        coerced: TableInsert = {}

        for table, rows in data.items():
            if not isinstance(rows, list):
                errors.append(f"{table}: expected a list of rows")
                continue
            headers = self.headers.get(table)
            if headers is None:
                errors.append(f"Unknown table '{table}'")
                continue

            master = TableName.parse(table, self.known_tables).master_raw
            if master is not None and rows and not data.get(master):
                errors.append(
                    f"Part table '{table}' requires rows for its master "
                    f"'{master}' in the same insert"
                )

            by_name = {h.name: h for h in headers}
            coerced[table] = []
            for i, row in enumerate(rows):
                label = f"{table}[{i}]"
                if not isinstance(row, Mapping):
                    errors.append(f"{label}: expected a mapping of column to value")
                    continue
                coerced[table].append(self._validate_row(label, row, by_name, errors))

        if errors:
            raise ValidationError.collect(errors)
        return coerced

    def _validate_row(
        self,
        label: str,
        row: Mapping[str, Any],
        headers: Mapping[str, TableHeader],
        errors: list[str],
    ) -> dict[str, Any]:
        values: dict[str, Any] = {}

        for column in row:
            if column not in headers:
                errors.append(f"{label}: unknown column '{column}'")

        for name, header in headers.items():
            if name not in row:
                if header.required:
                    errors.append(f"{label}: missing required column '{name}'")
                continue

            value, error = self._coerce_value(header, row[name])
            if error is not None:
                errors.append(f"{label}.{name}: {error}")
            else:
                values[name] = value

        return values

    @staticmethod
    def _coerce_value(header: TableHeader, value: Any) -> tuple[Any, Optional[str]]:
        if value is None:
            if header.nullable or header.auto_increment:
                return None, None
            return None, "cannot be null"

        try:
            coerced = coerce_input(header.type, value)
        except ValueError as e:
            return None, str(e)

        if header.type is ColumnKind.ENUM and header.enum_values is not None:
            if coerced not in header.enum_values:
                allowed = ", ".join(header.enum_values)
                return None, f"'{coerced}' is not one of: {allowed}"
        if (
            header.type is ColumnKind.STRING
            and header.max_characters is not None
            and len(coerced) > header.max_characters
        ):
            return None, f"longer than {header.max_characters} characters"
        return coerced, None
