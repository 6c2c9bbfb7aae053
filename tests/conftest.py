"""
Pytest configuration and fixtures for dbi tests.
"""

import pytest
import sys
from pathlib import Path

# Add packages to path for testing
packages_dir = Path(__file__).parent.parent / "packages"
sys.path.insert(0, str(packages_dir / "dbi-core"))

from dbi.db import DBAdapterAbstract, adapter_registry  # noqa: E402


class Script:
    """
    Scripted backend shared by every ScriptedAdapter built from the same params.

    fetch_results and connect_errors are queues: each entry is consumed by one
    call; an exception entry is raised instead of returned.
    """

    def __init__(self):
        self.connects = 0
        self.closes = 0
        self.connect_errors = []
        self.fetch_results = []
        self.affected = 1
        self.insert_id = None
        self.calls = []  # (sql with placeholders, bind values)
        self.statements = []  # final SQL sent to the "driver"


class ScriptedAdapter(DBAdapterAbstract):
    """In-process adapter driven by a Script found in the connection params."""

    name = "scripted"

    DEFAULTS = {
        "host": "localhost",
    }

    @property
    def script(self) -> Script:
        return self.connection_params["script"]

    def format_sql(self, sql, bind=None):
        self.script.calls.append((sql, list(bind or [])))
        return super().format_sql(sql, bind)

    async def _connect(self):
        self.script.connects += 1
        if self.script.connect_errors:
            error = self.script.connect_errors.pop(0)
            if error is not None:
                raise error
        self._conn = object()

    async def _close(self):
        self.script.closes += 1

    async def _execute(self, sql):
        self.script.statements.append(sql)
        return self.script.affected, self.script.insert_id

    async def _fetch(self, sql):
        self.script.statements.append(sql)
        if not self.script.fetch_results:
            return []
        result = self.script.fetch_results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def script():
    """A fresh scripted backend."""
    return Script()


@pytest.fixture
def scripted_adapter_name():
    """Register ScriptedAdapter for the duration of a test."""
    adapter_registry.register("scripted", ScriptedAdapter)
    yield "scripted"
    adapter_registry.unregister("scripted")


@pytest.fixture
def adapter(script):
    """An unconnected ScriptedAdapter, usable for escaping."""
    return ScriptedAdapter({"script": script})


@pytest.fixture
def wrapper(scripted_adapter_name, script):
    """A DBWrapper bound to the scripted adapter."""
    from dbi.wrapper import DBWrapper

    return DBWrapper(scripted_adapter_name, {"script": script})


@pytest.fixture
async def connected_wrapper(wrapper):
    """A connected DBWrapper bound to the scripted adapter."""
    await wrapper.connect()
    yield wrapper
    await wrapper.close()
