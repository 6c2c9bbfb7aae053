"""
DBWrapper: one async API over every registered database adapter.

    db = DBWrapper("sqlite3", {"path": "app.db"})
    await db.connect()
    await db.insert("user", {"first_name": "John", "enabled": True})
    rows = await db.fetch_all("SELECT * FROM user WHERE enabled=?", True)
    await db.close()
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence

from dbi.db.factory import adapter_registry
from dbi.db.interface import DBAdapterAbstract
from dbi.errors import ConfigurationError, DBConnectionError, DBIError, ValidationError
from dbi.expr import DBExpr
from dbi.select import DBSelect

logger = logging.getLogger(__name__)


class _NoResult:
    """Type of NO_RESULT."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_RESULT"


#: Returned by fetch_one() when the result set has no row
NO_RESULT = _NoResult()


def _unpack_bind(args: Sequence[Any]) -> List[Any]:
    """
    Normalize the bind arguments of a statement call.

    Accepts nothing, a single list/tuple, or several scalar values.
    """
    if not args:
        return []
    if len(args) == 1:
        if isinstance(args[0], (list, tuple)):
            return list(args[0])
        if isinstance(args[0], dict):
            raise ValidationError("Bind values must be given as a list, not a mapping")
    return list(args)


def _is_blank(where: Any) -> bool:
    if where is None:
        return True
    if isinstance(where, str):
        return not where.strip()
    if isinstance(where, (list, tuple, dict)):
        return len(where) == 0
    return False


class DBWrapper:
    """
    Database facade bound to one adapter name.

    The adapter instance is created on connect() and dropped on close()
    or when the fetch_all() reconnect fails.
    """

    def __init__(self, adapter_name: str, connection_params: Optional[Mapping[str, Any]]):
        """
        Args:
            adapter_name: A registered adapter name ("mysql", "pg", "sqlite3"...)
            connection_params: Backend-specific settings, passed to the adapter as is

        Raises:
            ConfigurationError: If the adapter name is unknown or params are missing
        """
        if connection_params is None:
            raise ConfigurationError("too few arguments given: connection parameters are required")
        if adapter_name not in adapter_registry:
            raise ConfigurationError(
                f'Unknown adapter "{adapter_name}" '
                f'(should be one of {"|".join(adapter_registry.list_adapters())})'
            )

        self.adapter_name = adapter_name
        self.connection_params = connection_params
        self._adapter: Optional[DBAdapterAbstract] = None

    @classmethod
    def from_config(cls, config=None) -> "DBWrapper":
        """
        Build a wrapper from DBIConfig.

        Args:
            config: Optional DBIConfig. If not provided, loads from default location.
        """
        if config is None:
            from dbi.config import get_config
            config = get_config()
        return cls(config.database.adapter, config.database.params)

    # ------------------------------------------------------------------ connection

    async def connect(self) -> DBAdapterAbstract:
        """
        Create a fresh adapter and connect it.

        Concurrent calls are not deduplicated: each one opens its own
        connection and the last one to succeed is kept.

        Returns:
            The connected adapter

        Raises:
            ConfigurationError: If the adapter name is no longer registered
            DBConnectionError: If the driver fails to connect
        """
        adapter = adapter_registry.create(self.adapter_name, self.connection_params)

        try:
            await adapter.connect()
        except DBIError:
            self._adapter = None
            raise

        self._adapter = adapter
        return adapter

    async def close(self) -> None:
        """
        Drop the adapter and close it.

        The wrapper is disconnected as soon as this is called, even while the
        native connection is still closing.
        """
        adapter, self._adapter = self._adapter, None
        if adapter is not None:
            await adapter.close()

    async def connect_if_not_connected(self) -> DBAdapterAbstract:
        """Return the current adapter, connecting first if needed."""
        if self._adapter is not None:
            return self._adapter
        return await self.connect()

    def is_connected(self) -> bool:
        return self._adapter is not None

    # ------------------------------------------------------------------ low level

    async def _query(self, sql, *bind) -> int:
        """
        Execute a statement on the current adapter.

        Args:
            sql: SQL string with "?" placeholders, or a DBSelect
            *bind: Nothing, a list of values, or the values themselves

        Returns:
            Number of affected rows
        """
        bind = _unpack_bind(bind)
        if isinstance(sql, DBSelect):
            sql = sql.assemble()
        return await self._require_adapter().query(sql, bind)

    async def _fetch_all(self, sql, *bind) -> List[dict]:
        """Fetch all rows on the current adapter (no reconnect)."""
        bind = _unpack_bind(bind)
        if isinstance(sql, DBSelect):
            sql = sql.assemble()
        return await self._require_adapter().fetch_all(sql, bind)

    # ------------------------------------------------------------------ fetch

    async def fetch_all(self, sql, *bind) -> List[dict]:
        """
        Fetch all result rows.

        Connects if needed. If the fetch fails, reconnects once and retries
        once; the outcome of the retry is returned or raised as is.
        A ValidationError (bad bind values) is raised without a retry.

        Args:
            sql: SELECT statement string, or a DBSelect
            *bind: Values for the "?" placeholders

        Returns:
            Rows as dicts
        """
        bind = _unpack_bind(bind)
        if isinstance(sql, DBSelect):
            # Rendered once: the retry may run on a different adapter
            sql = sql.assemble()

        await self.connect_if_not_connected()

        try:
            return await self._fetch_all(sql, bind)
        except ValidationError:
            raise
        except DBIError as e:
            logger.warning(f"fetch_all failed, reconnecting once: {e}")

        stale, self._adapter = self._adapter, None
        if stale is not None:
            await stale.close()

        await self.connect()
        return await self._fetch_all(sql, bind)

    async def fetch_row(self, sql, *bind) -> Optional[dict]:
        """Fetch the first result row, or None if there is none."""
        rows = await self.fetch_all(sql, *bind)
        if rows:
            return rows[0]
        return None

    async def fetch_col(self, sql, *bind) -> List[Any]:
        """Fetch the first column of every result row."""
        rows = await self.fetch_all(sql, *bind)
        if not rows:
            return []
        first_field = next(iter(rows[0]))
        return [row[first_field] for row in rows]

    async def fetch_one(self, sql, *bind) -> Any:
        """
        Fetch the first column of the first result row.

        Returns:
            The value, or NO_RESULT if the result set is empty
        """
        row = await self.fetch_row(sql, *bind)
        if row is None:
            return NO_RESULT
        return row[next(iter(row))]

    # ------------------------------------------------------------------ write

    async def query(self, sql, *bind) -> int:
        """Execute a non-SELECT statement, connecting first if needed."""
        await self.connect_if_not_connected()
        return await self._query(sql, *bind)

    async def insert(self, table_name: str, data: Mapping[str, Any]) -> int:
        """Insert a row, connecting first if needed."""
        await self.connect_if_not_connected()
        return await self._insert(table_name, data)

    async def update(self, table_name: str, data: Mapping[str, Any], where) -> int:
        """Update rows, connecting first if needed."""
        await self.connect_if_not_connected()
        return await self._update(table_name, data, where)

    async def remove(self, table_name: str, where) -> int:
        """Delete rows, connecting first if needed."""
        await self.connect_if_not_connected()
        return await self._remove(table_name, where)

    async def _insert(self, table_name: str, data: Mapping[str, Any]) -> int:
        """
        Insert a table row.

        Args:
            table_name: The table to insert data into
            data: Column-value pairs

        Returns:
            Number of affected rows

        Raises:
            ValidationError: If data is empty
        """
        if not data:
            raise ValidationError("DBWrapper.insert() called without data")

        adapter = self._require_adapter()
        fields = [adapter.escape_field(name) for name in data]
        placeholders = ["?"] * len(fields)

        sql = (
            f"INSERT INTO {adapter.escape_table(table_name)}"
            f"({', '.join(fields)}) VALUES({', '.join(placeholders)})"
        )
        return await self._query(sql, list(data.values()))

    async def _update(self, table_name: str, data: Mapping[str, Any], where) -> int:
        """
        Update table rows matching a WHERE clause.

        Data values are bound; WHERE values are inlined (see _where_expr).

        Raises:
            ValidationError: If data or where is empty
        """
        if not data:
            raise ValidationError("DBWrapper.update() called without data")
        if _is_blank(where):
            raise ValidationError("DBWrapper.update() called without where")

        adapter = self._require_adapter()
        assignments = [f"{adapter.escape_field(name)}=?" for name in data]

        sql = (
            f"UPDATE {adapter.escape_table(table_name)} SET {', '.join(assignments)}"
            f" WHERE {self._where_expr(where)}"
        )
        return await self._query(sql, list(data.values()))

    async def _remove(self, table_name: str, where) -> int:
        """
        Delete table rows matching a WHERE clause.

        Raises:
            ValidationError: If where is empty
        """
        if _is_blank(where):
            raise ValidationError("DBWrapper.remove() called without where")

        adapter = self._require_adapter()
        sql = f"DELETE FROM {adapter.escape_table(table_name)} WHERE {self._where_expr(where)}"
        return await self._query(sql)

    # ------------------------------------------------------------------ helpers

    def escape(self, value: Any) -> str:
        """
        Quote a value for a SQL statement.

        Lists and tuples are escaped item by item and comma-joined.
        DBExpr values are returned verbatim.
        """
        if isinstance(value, DBExpr):
            return str(value)
        adapter = self._require_adapter()
        if isinstance(value, (list, tuple)):
            return ", ".join(adapter.escape(v) for v in value)
        return adapter.escape(value)

    def get_last_insert_id(self) -> Optional[int]:
        return self._require_adapter().get_last_insert_id()

    def get_select(self) -> DBSelect:
        """Return a new DBSelect bound to the current adapter."""
        return self._require_adapter().get_select()

    def _where_expr(self, where):
        """
        Render WHERE terms into one clause.

        Each term is either a raw string, a DBSelect, or a
        [template, value] pair whose "?" placeholders are replaced by the
        escaped value. A single term may be given without a list. Terms are
        parenthesized and joined with AND.
        """
        if not where:
            return where

        if not isinstance(where, list):
            where = [where]

        result = []
        for term in where:
            if isinstance(term, str):
                pass
            elif isinstance(term, DBSelect):
                term = term.assemble()
            elif isinstance(term, (list, tuple)):
                term = str(term[0]).replace("?", self.escape(term[1]))
            result.append(f"({term})")

        return " AND ".join(result)

    def _require_adapter(self) -> DBAdapterAbstract:
        if self._adapter is None:
            raise DBConnectionError("DBWrapper is not connected")
        return self._adapter
