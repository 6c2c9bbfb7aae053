"""
Fluent SELECT statement builder.

    select = (
        wrapper.get_select()
        .from_("user", ["first_name", "last_name"])
        .where("enabled=1")
        .where("id=?", 10)
        .where("last_name LIKE ?", "%Foo%")
        .order("last_name")
        .limit(10)
    )
    rows = await wrapper.fetch_all(select)

Values given to where()/having() are escaped through the adapter that
created the select and inlined when the statement is assembled.
"""

import re
import weakref
from typing import Any, List, Optional, Tuple

from dbi.errors import DBIError
from dbi.expr import DBExpr

_UNSET = object()

_ORDER_RE = re.compile(r"^(.*?)\s+(ASC|DESC)$", re.IGNORECASE)

INNER_JOIN = "INNER JOIN"
LEFT_JOIN = "LEFT JOIN"


class DBSelect:
    """
    Accumulates SELECT clauses and renders them with assemble().

    Holds only a weak reference to its adapter, which is used for escaping.
    """

    def __init__(self, adapter):
        self._adapter_ref = weakref.ref(adapter)
        self.reset()

    @property
    def adapter(self):
        adapter = self._adapter_ref()
        if adapter is None:
            raise DBIError("The adapter this select was created from no longer exists")
        return adapter

    def reset(self, part: Optional[str] = None) -> "DBSelect":
        """
        Clear one clause ("distinct", "columns", "from", "where", "group",
        "having", "order", "limit"), or all of them.
        """
        defaults = {
            "distinct": False,
            "columns": [],
            "from": [],
            "where": [],
            "group": [],
            "having": [],
            "order": [],
            "limit": (None, 0),
        }
        if part is None:
            self._parts = {key: (list(value) if isinstance(value, list) else value) for key, value in defaults.items()}
        elif part in defaults:
            value = defaults[part]
            self._parts[part] = list(value) if isinstance(value, list) else value
        else:
            raise DBIError(f"Unknown select part: {part}")
        return self

    # ------------------------------------------------------------------ builders

    def distinct(self, flag: bool = True) -> "DBSelect":
        self._parts["distinct"] = bool(flag)
        return self

    def from_(self, table, fields="*") -> "DBSelect":
        """
        Set the FROM table and add its columns.

        Args:
            table: Table name, or {alias: table_name}
            fields: "*", a column name, a list of them, a DBExpr,
                    or {alias: column}
        """
        return self._join("FROM", table, None, fields)

    def join(self, table, on: str, fields=None) -> "DBSelect":
        """Add an INNER JOIN ... ON clause."""
        return self._join(INNER_JOIN, table, on, fields)

    def left_join(self, table, on: str, fields=None) -> "DBSelect":
        """Add a LEFT JOIN ... ON clause."""
        return self._join(LEFT_JOIN, table, on, fields)

    def columns(self, fields="*", correlation: Optional[str] = None) -> "DBSelect":
        """Add columns, optionally qualified with a table name or alias."""
        if isinstance(fields, dict):
            items = [(field, alias) for alias, field in fields.items()]
        elif isinstance(fields, (list, tuple)):
            items = [(field, None) for field in fields]
        else:
            items = [(fields, None)]

        for field, alias in items:
            self._parts["columns"].append((correlation, field, alias))
        return self

    def where(self, condition, value: Any = _UNSET) -> "DBSelect":
        """
        Add a WHERE condition joined with AND.

        A "?" in the condition is replaced by the escaped value.
        """
        self._parts["where"].append(("AND", condition, value))
        return self

    def or_where(self, condition, value: Any = _UNSET) -> "DBSelect":
        """Add a WHERE condition joined with OR."""
        self._parts["where"].append(("OR", condition, value))
        return self

    def group(self, spec) -> "DBSelect":
        """Add GROUP BY column(s)."""
        if not isinstance(spec, (list, tuple)):
            spec = [spec]
        self._parts["group"].extend(spec)
        return self

    def having(self, condition, value: Any = _UNSET) -> "DBSelect":
        """Add a HAVING condition joined with AND."""
        self._parts["having"].append(("AND", condition, value))
        return self

    def or_having(self, condition, value: Any = _UNSET) -> "DBSelect":
        self._parts["having"].append(("OR", condition, value))
        return self

    def order(self, spec) -> "DBSelect":
        """
        Add ORDER BY column(s).

        Each entry is a column name with an optional trailing ASC or DESC,
        e.g. "last_name DESC".
        """
        if not isinstance(spec, (list, tuple)):
            spec = [spec]
        for entry in spec:
            if isinstance(entry, DBExpr):
                self._parts["order"].append((entry, None))
                continue
            match = _ORDER_RE.match(str(entry).strip())
            if match:
                self._parts["order"].append((match.group(1), match.group(2).upper()))
            else:
                self._parts["order"].append((str(entry).strip(), "ASC"))
        return self

    def limit(self, count: Optional[int] = None, offset: int = 0) -> "DBSelect":
        """Set LIMIT and OFFSET. A count of None removes the limit."""
        self._parts["limit"] = (int(count) if count is not None else None, int(offset))
        return self

    def limit_page(self, page: int, rows_per_page: int) -> "DBSelect":
        """Set LIMIT and OFFSET from a 1-based page number."""
        page = max(int(page), 1)
        rows_per_page = max(int(rows_per_page), 1)
        return self.limit(rows_per_page, rows_per_page * (page - 1))

    # ------------------------------------------------------------------ rendering

    def assemble(self) -> str:
        """Render the accumulated clauses into one SQL string."""
        adapter = self.adapter
        parts = self._parts

        sql = "SELECT "
        if parts["distinct"]:
            sql += "DISTINCT "
        sql += ", ".join(self._render_column(adapter, col) for col in parts["columns"]) or "*"

        for join_type, table, alias, on in parts["from"]:
            rendered = adapter.escape_table(table)
            if alias:
                rendered += " AS " + adapter.escape_table(alias)
            if join_type == "FROM":
                sql += " FROM " + rendered
            else:
                sql += f" {join_type} {rendered} ON {on}"

        if parts["where"]:
            sql += " WHERE " + self._render_conditions(adapter, parts["where"])

        if parts["group"]:
            sql += " GROUP BY " + ", ".join(self._render_identifier(adapter, g) for g in parts["group"])

        if parts["having"]:
            sql += " HAVING " + self._render_conditions(adapter, parts["having"])

        if parts["order"]:
            rendered = []
            for field, direction in parts["order"]:
                field = self._render_identifier(adapter, field)
                rendered.append(f"{field} {direction}" if direction else field)
            sql += " ORDER BY " + ", ".join(rendered)

        count, offset = parts["limit"]
        if count is not None:
            sql += f" LIMIT {count}"
            if offset:
                sql += f" OFFSET {offset}"

        return sql

    def __str__(self) -> str:
        return self.assemble()

    def _join(self, join_type: str, table, on: Optional[str], fields) -> "DBSelect":
        if isinstance(table, dict):
            (alias, table), = table.items()
        else:
            alias = None

        if join_type == "FROM" and any(entry[0] == "FROM" for entry in self._parts["from"]):
            raise DBIError("A select can only have one FROM table; use join() for more")

        self._parts["from"].append((join_type, table, alias, on))
        if fields:
            self.columns(fields, correlation=alias or table)
        return self

    @staticmethod
    def _render_column(adapter, column: Tuple[Optional[str], Any, Optional[str]]) -> str:
        correlation, field, alias = column
        if isinstance(field, DBExpr):
            rendered = str(field)
        elif "(" in str(field):
            # Function calls such as COUNT(*) are taken as raw expressions
            rendered = str(field)
        elif correlation and "." not in str(field):
            rendered = adapter.escape_table(correlation) + "." + adapter.escape_field(field)
        else:
            rendered = adapter.escape_field(field)

        if alias:
            rendered += " AS " + adapter.escape_field(alias)
        return rendered

    @staticmethod
    def _render_identifier(adapter, field) -> str:
        if isinstance(field, DBExpr) or "(" in str(field):
            return str(field)
        return adapter.escape_field(field)

    @staticmethod
    def _render_conditions(adapter, conditions: List[Tuple[str, Any, Any]]) -> str:
        rendered = ""
        for i, (conjunction, condition, value) in enumerate(conditions):
            if isinstance(condition, DBSelect):
                term = condition.assemble()
            else:
                term = str(condition)
            if value is not _UNSET:
                term = adapter.quote_into(term, value)
            if i:
                rendered += f" {conjunction} "
            rendered += f"({term})"
        return rendered
