"""
DBI error hierarchy.

Configuration errors are raised synchronously (programmer misuse).
Validation, connection and query errors are raised from the coroutines.
"""

from typing import Optional


class DBIError(Exception):
    """Base class for every error raised by dbi."""


class ConfigurationError(DBIError, ValueError):
    """Unknown adapter name or missing construction arguments."""


class ValidationError(DBIError, ValueError):
    """Invalid call input, e.g. empty insert data or a blank WHERE clause."""


class DBConnectionError(DBIError):
    """The native driver could not connect, or the adapter is not connected."""


class QueryError(DBIError):
    """
    The native driver rejected a statement.

    The driver exception is kept as ``original`` (and chained as ``__cause__``).
    """

    def __init__(self, message: str, sql: Optional[str] = None, original: Optional[BaseException] = None):
        super().__init__(message)
        self.sql = sql
        self.original = original
