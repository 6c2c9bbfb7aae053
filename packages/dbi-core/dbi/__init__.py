"""
DBI Core Library

One async database API over MySQL, PostgreSQL and SQLite adapters.
"""

__version__ = "0.1.0"

from dbi.errors import (
    ConfigurationError,
    DBConnectionError,
    DBIError,
    QueryError,
    ValidationError,
)
from dbi.expr import DBExpr
from dbi.select import DBSelect
from dbi.config import DBIConfig, load_config
from dbi.db import DBAdapterAbstract, adapter_registry, get_adapter
from dbi.wrapper import NO_RESULT, DBWrapper

__all__ = [
    "ConfigurationError",
    "DBAdapterAbstract",
    "DBConnectionError",
    "DBExpr",
    "DBIConfig",
    "DBIError",
    "DBSelect",
    "DBWrapper",
    "NO_RESULT",
    "QueryError",
    "ValidationError",
    "adapter_registry",
    "get_adapter",
    "load_config",
]
