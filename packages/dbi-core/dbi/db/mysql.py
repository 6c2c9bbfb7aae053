"""
MySQL / MariaDB database adapter using aiomysql.

Registered as "mysql".
"""

import logging
import re
from typing import List, Optional, Tuple

from dbi.db.interface import DBAdapterAbstract

logger = logging.getLogger(__name__)

try:
    import aiomysql
    from pymysql.converters import escape_string
    HAS_AIOMYSQL = True
except ImportError:
    HAS_AIOMYSQL = False
    aiomysql = None


class MySQLAdapter(DBAdapterAbstract):
    """
    MySQL adapter.

    Uses one aiomysql connection in autocommit mode. String literals are
    escaped with the driver's own escape_string (backslash escapes).
    """

    name = "mysql"

    DEFAULTS = {
        "host": "localhost",
        "port": 3306,
        "user": None,
        "password": None,
        "database": None,
        "charset": "utf8mb4",
    }

    IDENTIFIER_QUOTE = "`"

    # Backslash escapes are honoured inside MySQL string literals
    PLACEHOLDER_RE = re.compile(
        r"""'(?:[^'\\]|\\.|'')*'|"(?:[^"\\]|\\.|"")*"|`(?:[^`]|``)*`|\?"""
    )

    def __init__(self, connection_params: Optional[dict] = None):
        if not HAS_AIOMYSQL:
            raise RuntimeError(
                "aiomysql not installed. Run: pip install dbi-core[mysql]"
            )

        super().__init__(connection_params)

    async def _connect(self) -> None:
        params = self.connection_params
        self._conn = await aiomysql.connect(
            host=params["host"],
            port=params["port"],
            user=params["user"],
            password=params["password"] or "",
            db=params["database"],
            charset=params["charset"],
            autocommit=True,
        )
        logger.info(f"MySQL connection opened: {params['host']}:{params['port']}")

    async def _close(self) -> None:
        self._conn.close()

    async def _execute(self, sql: str) -> Tuple[int, Optional[int]]:
        async with self._conn.cursor() as cursor:
            affected = await cursor.execute(sql)
            return affected, cursor.lastrowid

    async def _fetch(self, sql: str) -> List[dict]:
        async with self._conn.cursor(aiomysql.DictCursor) as cursor:
            await cursor.execute(sql)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    def _quote_string(self, value: str) -> str:
        return "'" + escape_string(value) + "'"
