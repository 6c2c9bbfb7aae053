"""
SQLite database adapter using aiosqlite.

Registered as "sqlite3" (and "sqlite").
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from dbi.db.interface import DBAdapterAbstract

logger = logging.getLogger(__name__)

try:
    import aiosqlite
    HAS_AIOSQLITE = True
except ImportError:
    HAS_AIOSQLITE = False
    aiosqlite = None


class SQLiteAdapter(DBAdapterAbstract):
    """
    SQLite adapter.

    Uses aiosqlite for async database operations.
    Automatically creates the database file and parent directories.
    """

    name = "sqlite3"

    DEFAULTS = {
        "path": ":memory:",
    }

    def __init__(self, connection_params: Optional[dict] = None):
        """
        Initialize SQLite adapter.

        Args:
            connection_params: {"path": ...}. Supports ~ expansion;
                               ":memory:" opens an in-memory database.
        """
        if not HAS_AIOSQLITE:
            raise RuntimeError(
                "aiosqlite not installed. Run: pip install dbi-core"
            )

        super().__init__(connection_params)

    @property
    def db_path(self) -> str:
        path = str(self.connection_params["path"])
        if path == ":memory:":
            return path
        return str(Path(path).expanduser())

    async def _connect(self) -> None:
        """Open the database, creating the file if needed."""
        db_path = self.db_path
        if db_path != ":memory:":
            # Ensure parent directory exists
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(db_path)

        await self._conn.execute("PRAGMA foreign_keys = ON")

        if db_path != ":memory:":
            # Use WAL mode for better concurrent access
            await self._conn.execute("PRAGMA journal_mode = WAL")

        # Row factory to return dicts
        self._conn.row_factory = aiosqlite.Row

        logger.info(f"SQLite database opened: {db_path}")

    async def _close(self) -> None:
        await self._conn.close()

    async def _execute(self, sql: str) -> Tuple[int, Optional[int]]:
        cursor = await self._conn.execute(sql)
        await self._conn.commit()

        # rowcount is -1 for statements that touch no rows (DDL, PRAGMA...)
        affected = max(cursor.rowcount, 0)
        insert_id = cursor.lastrowid if self.is_insert(sql) else None
        await cursor.close()
        return affected, insert_id

    async def _fetch(self, sql: str) -> List[dict]:
        cursor = await self._conn.execute(sql)
        rows = await cursor.fetchall()
        await cursor.close()

        # Convert Row objects to dicts
        return [dict(row) for row in rows]
