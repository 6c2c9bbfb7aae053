"""
Database adapter registry.

Maps adapter names to adapter classes. Lookups for unknown names fail closed.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Type

from dbi.db.interface import DBAdapterAbstract
from dbi.db.mysql import MySQLAdapter
from dbi.db.postgres import PostgresAdapter
from dbi.db.sqlite import SQLiteAdapter
from dbi.errors import ConfigurationError

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """
    Registry of adapter classes by name.

    Pre-registered adapters:
    - "mysql": MySQLAdapter (aiomysql)
    - "pg" / "postgres" / "postgresql": PostgresAdapter (asyncpg)
    - "sqlite3" / "sqlite": SQLiteAdapter (aiosqlite)
    """

    def __init__(self):
        self._adapters: Dict[str, Type[DBAdapterAbstract]] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        self._adapters["mysql"] = MySQLAdapter
        self._adapters["pg"] = PostgresAdapter
        self._adapters["postgres"] = PostgresAdapter  # Alias
        self._adapters["postgresql"] = PostgresAdapter  # Alias
        self._adapters["sqlite3"] = SQLiteAdapter
        self._adapters["sqlite"] = SQLiteAdapter  # Alias

    def register(self, name: str, adapter_class: Type[DBAdapterAbstract]) -> None:
        """Register an adapter class under a name."""
        if not (isinstance(adapter_class, type) and issubclass(adapter_class, DBAdapterAbstract)):
            raise ConfigurationError(
                f"Adapters must be subclasses of DBAdapterAbstract, got {adapter_class!r}"
            )
        self._adapters[name.lower()] = adapter_class

    def unregister(self, name: str) -> None:
        """Remove an adapter name. Unknown names are ignored."""
        self._adapters.pop(name.lower(), None)

    def __contains__(self, name: Any) -> bool:
        return isinstance(name, str) and name.lower() in self._adapters

    def create(self, name: str, connection_params: Optional[Mapping[str, Any]] = None) -> DBAdapterAbstract:
        """
        Create an unconnected adapter.

        Raises:
            ConfigurationError: If no adapter is registered under name
        """
        if name not in self:
            raise ConfigurationError(
                f'Unknown adapter "{name}" (should be one of {"|".join(self.list_adapters())})'
            )
        adapter_class = self._adapters[name.lower()]
        logger.debug(f"Creating {adapter_class.__name__} for adapter name {name!r}")
        return adapter_class(connection_params)

    def list_adapters(self) -> List[str]:
        """List registered adapter names."""
        return sorted(self._adapters.keys())


# Global registry
adapter_registry = AdapterRegistry()


def get_adapter(name: str, connection_params: Optional[Mapping[str, Any]] = None) -> DBAdapterAbstract:
    """
    Create an unconnected adapter from the global registry.

    Usage:
        adapter = get_adapter("sqlite3", {"path": "data.db"})
        adapter = get_adapter("pg", {"host": "localhost", "database": "app"})
    """
    return adapter_registry.create(name, connection_params)
