"""
Abstract database adapter interface.

Every backend adapter implements the same capability set (connect, close,
query, fetch_all, escaping, last insert id, select builder) on top of its
native async client library.
"""

import logging
import math
import re
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from dbi.errors import DBConnectionError, QueryError, ValidationError
from dbi.expr import DBExpr
from dbi.select import DBSelect

logger = logging.getLogger(__name__)

_INSERT_RE = re.compile(r"^\s*(INSERT|REPLACE)\b", re.IGNORECASE)


class DBAdapterAbstract(ABC):
    """
    Abstract base class for database adapters.

    Implementations must provide the driver hooks:
    - _connect / _close: open and release the native connection (self._conn)
    - _execute: run a non-SELECT statement, return (affected rows, insert id)
    - _fetch: run a SELECT statement, return rows as dicts

    Bind values are interpolated into the SQL by format_sql() before the
    statement reaches the driver, so every backend sees fully escaped SQL.
    """

    #: Registry name of the adapter
    name: str = "abstract"

    #: Connection parameter defaults, merged under the caller's parameters
    DEFAULTS: Dict[str, Any] = {}

    IDENTIFIER_QUOTE = '"'
    BOOLEAN_LITERALS = ("1", "0")

    #: Quoted literals and identifiers, skipped by format_sql() so that a "?"
    #: inside them is kept as is. Backslash is an ordinary character here.
    PLACEHOLDER_RE = re.compile(
        r"""'(?:[^']|'')*'|"(?:[^"]|"")*"|`(?:[^`]|``)*`|\?"""
    )

    def __init__(self, connection_params: Optional[Mapping[str, Any]] = None):
        """
        Initialize the adapter.

        Args:
            connection_params: Backend-specific settings (host, port, path...).
                               Never mutated; merged over DEFAULTS into a new dict.
        """
        self.connection_params: Dict[str, Any] = {**self.DEFAULTS, **(connection_params or {})}
        self._conn: Any = None
        self._last_insert_id: Optional[int] = None

    # ------------------------------------------------------------------ lifecycle

    async def connect(self) -> "DBAdapterAbstract":
        """
        Open the native connection.

        Returns:
            The adapter itself, once connected

        Raises:
            DBConnectionError: If the driver fails to connect
        """
        if self._conn is not None:
            return self

        logger.debug(f"{self.name} connect({self._safe_params()})")
        try:
            await self._connect()
        except Exception as e:
            self._conn = None
            raise DBConnectionError(f"{self.name} connection failed: {e}") from e

        logger.info(f"{self.name} database connected")
        return self

    async def close(self) -> None:
        """Close the native connection. Calling it again is a no-op."""
        if self._conn is None:
            return
        try:
            await self._close()
        except Exception as e:
            logger.warning(f"{self.name} close failed: {e}")
        finally:
            self._conn = None
        logger.info(f"{self.name} connection closed")

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------ statements

    async def query(self, sql: str, bind: Optional[Sequence[Any]] = None) -> int:
        """
        Execute a non-SELECT statement.

        Args:
            sql: SQL with "?" placeholders
            bind: Values interpolated into the placeholders

        Returns:
            Number of affected rows
        """
        self._require_connection()
        sql = self.format_sql(sql, bind)
        logger.debug(f"sql={sql}")

        try:
            affected, insert_id = await self._execute(sql)
        except Exception as e:
            raise QueryError(f"{self.name} query failed: {e}", sql=sql, original=e) from e

        if isinstance(insert_id, int) and insert_id > 0:
            self._last_insert_id = insert_id
        return affected

    async def fetch_all(self, sql: str, bind: Optional[Sequence[Any]] = None) -> List[dict]:
        """
        Execute a SELECT statement.

        Args:
            sql: SQL with "?" placeholders
            bind: Values interpolated into the placeholders

        Returns:
            Rows as dicts, in driver order and column order
        """
        self._require_connection()
        sql = self.format_sql(sql, bind)
        logger.debug(f"sql={sql}")

        try:
            rows = await self._fetch(sql)
        except Exception as e:
            raise QueryError(f"{self.name} fetch failed: {e}", sql=sql, original=e) from e

        logger.debug(f"{len(rows)} rows fetched")
        return rows

    def get_last_insert_id(self) -> Optional[int]:
        """Most recent auto-generated key seen by this adapter, or None."""
        return self._last_insert_id

    def get_select(self) -> DBSelect:
        """Return a new DBSelect escaping through this adapter."""
        return DBSelect(self)

    # ------------------------------------------------------------------ escaping

    def escape(self, value: Any) -> str:
        """
        Quote a scalar value as a SQL literal.

        DBExpr values are returned verbatim, numbers are left unquoted.

        Raises:
            ValidationError: For NaN and infinite floats, which have no SQL literal
        """
        if isinstance(value, DBExpr):
            return str(value)
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return self.BOOLEAN_LITERALS[0] if value else self.BOOLEAN_LITERALS[1]
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(f"Cannot escape non-finite number: {value!r}")
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        if isinstance(value, (datetime, date)):
            return "'" + self._stringify_date(value) + "'"
        return self._quote_string(str(value))

    def escape_table(self, name: Any) -> str:
        """Quote a table name (dotted names are quoted part by part)."""
        return self._quote_identifier(name)

    def escape_field(self, name: Any) -> str:
        """Quote a column name (dotted names are quoted part by part)."""
        return self._quote_identifier(name)

    def escape_any(self, value: Any) -> str:
        """Escape a value, flattening lists and tuples into a comma-joined list."""
        if isinstance(value, (list, tuple)):
            return ", ".join(self.escape(v) for v in value)
        return self.escape(value)

    def quote_into(self, text: str, value: Any) -> str:
        """Replace every "?" in text with the escaped value."""
        return text.replace("?", self.escape_any(value))

    def format_sql(self, sql: str, bind: Optional[Sequence[Any]] = None) -> str:
        """
        Interpolate bind values into "?" placeholders.

        Placeholders inside quoted literals or identifiers are left alone.

        Raises:
            ValidationError: If there are fewer bind values than placeholders
        """
        if not bind:
            return sql

        values = iter(bind)

        def replace(match):
            token = match.group(0)
            if token != "?":
                return token
            try:
                return self.escape_any(next(values))
            except StopIteration:
                raise ValidationError(f"Not enough bind values for: {sql}") from None

        return self.PLACEHOLDER_RE.sub(replace, sql)

    def _quote_string(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def _quote_identifier(self, name: Any) -> str:
        if isinstance(name, DBExpr):
            return str(name)
        q = self.IDENTIFIER_QUOTE
        parts = []
        for part in str(name).split("."):
            if part == "*":
                parts.append(part)
            else:
                parts.append(q + part.replace(q, q + q) + q)
        return ".".join(parts)

    @staticmethod
    def _stringify_date(value: date) -> str:
        if isinstance(value, datetime):
            return value.strftime("%Y-%m-%d %H:%M:%S")
        return value.strftime("%Y-%m-%d")

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def is_insert(sql: str) -> bool:
        """Does this statement insert rows?"""
        return bool(_INSERT_RE.match(sql))

    def _require_connection(self) -> None:
        if self._conn is None:
            raise DBConnectionError(f"{self.name} adapter is not connected")

    def _safe_params(self) -> Dict[str, Any]:
        return {k: ("***" if k == "password" and v else v) for k, v in self.connection_params.items()}

    # ------------------------------------------------------------------ driver hooks

    @abstractmethod
    async def _connect(self) -> None:
        """Open the native connection and store it in self._conn."""
        pass

    @abstractmethod
    async def _close(self) -> None:
        """Release the native connection held in self._conn."""
        pass

    @abstractmethod
    async def _execute(self, sql: str) -> Tuple[int, Optional[int]]:
        """
        Run a fully interpolated non-SELECT statement.

        Returns:
            (affected row count, auto-generated id or None)
        """
        pass

    @abstractmethod
    async def _fetch(self, sql: str) -> List[dict]:
        """Run a fully interpolated SELECT statement and return rows as dicts."""
        pass
