"""
Raw SQL expressions.
"""


class DBExpr:
    """
    A raw SQL fragment that must never be escaped.

    Wherever a value is escaped, a DBExpr is emitted verbatim::

        wrapper.insert("user", {"created_at": DBExpr("NOW()")})
    """

    __slots__ = ("_expr",)

    def __init__(self, expr):
        object.__setattr__(self, "_expr", expr)

    def __setattr__(self, name, value):
        raise AttributeError("DBExpr is immutable")

    def __str__(self) -> str:
        return str(self._expr)

    def __repr__(self) -> str:
        return f"DBExpr({self._expr!r})"

    def __eq__(self, other) -> bool:
        if isinstance(other, DBExpr):
            return self._expr == other._expr
        return NotImplemented

    def __hash__(self) -> int:
        return hash((DBExpr, self._expr))
