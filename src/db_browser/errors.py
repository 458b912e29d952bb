"""Error types raised by the schema access layer."""

from typing import Any, Optional

from pymysql.constants import CR, ER
from sqlalchemy.exc import DBAPIError


def _build_error_names() -> dict[int, str]:
    """Map MySQL server/client error numbers to their symbolic names."""
    names: dict[int, str] = {}
    for module, prefix in ((CR, ""), (ER, "ER_")):
        for attr, value in vars(module).items():
            if not attr.isupper() or not isinstance(value, int):
                continue
            # Range markers share their number with a real error
            if attr.endswith(("ERROR_FIRST", "ERROR_LAST")):
                continue
            names.setdefault(value, f"{prefix}{attr}")
    return names


MYSQL_ERROR_NAMES = _build_error_names()


class BrowserError(Exception):
    """Base class for all schema access errors."""


class ValidationError(BrowserError, ValueError):
    """Malformed input. Carries every problem found, not just the first."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        self.errors = errors or [message]
        super().__init__(message)

    @classmethod
    def collect(cls, errors: list[str]) -> "ValidationError":
        """Build a single error out of a list of problems."""
        if len(errors) == 1:
            return cls(errors[0], errors)
        summary = f"{len(errors)} validation errors: " + "; ".join(errors)
        return cls(summary, errors)


class NotFoundError(BrowserError, LookupError):
    """A schema, table, column or session does not exist."""

    def __init__(self, kind: str, name: str, message: Optional[str] = None):
        self.kind = kind
        self.name = name
        super().__init__(message or f"Unknown {kind}: {name}")


class ResolutionError(BrowserError):
    """A foreign key chain loops back on itself or points nowhere."""


class DatabaseError(BrowserError):
    """Driver-level failure, carrying the native error code and message."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        errno: Optional[int] = None,
    ):
        self.code = code
        self.errno = errno
        self.message = message
        super().__init__(f"{code}: {message}" if code else message)

    @classmethod
    def from_dbapi(cls, exc: DBAPIError) -> "DatabaseError":
        """
        Wrap a SQLAlchemy DBAPIError raised by the MySQL driver.

        pymysql (and aiomysql on top of it) puts ``(errno, message)`` in the
        args of the original exception.
        """
        orig: Any = exc.orig
        args = getattr(orig, "args", ()) or ()
        errno: Optional[int] = None
        message = str(orig) if orig is not None else str(exc)

        if len(args) >= 1 and isinstance(args[0], int):
            errno = args[0]
            if len(args) >= 2:
                message = str(args[1])

        code = MYSQL_ERROR_NAMES.get(errno) if errno is not None else None
        if code is None and exc.connection_invalidated:
            code = "CONNECTION_LOST"
        return cls(message, code=code, errno=errno)
