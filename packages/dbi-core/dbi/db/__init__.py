"""
Database adapters for MySQL, PostgreSQL and SQLite.
"""

from dbi.db.factory import AdapterRegistry, adapter_registry, get_adapter
from dbi.db.interface import DBAdapterAbstract

__all__ = [
    "AdapterRegistry",
    "DBAdapterAbstract",
    "adapter_registry",
    "get_adapter",
]
