"""
Tests for the DBSelect builder and DBExpr.
"""

import gc

import pytest


def test_basic_select(adapter):
    """Columns, WHERE terms, ORDER BY and LIMIT in one statement."""
    select = (
        adapter.get_select()
        .from_("user", ["first_name", "last_name"])
        .where("enabled=1")
        .where("id=?", 10)
        .where("last_name LIKE ?", "%Foo%")
        .order("last_name")
        .limit(10)
    )

    assert select.assemble() == (
        'SELECT "user"."first_name", "user"."last_name" FROM "user"'
        " WHERE (enabled=1) AND (id=10) AND (last_name LIKE '%Foo%')"
        ' ORDER BY "last_name" ASC LIMIT 10'
    )


def test_default_columns(adapter):
    assert adapter.get_select().from_("user").assemble() == 'SELECT "user".* FROM "user"'


def test_str_is_assemble(adapter):
    select = adapter.get_select().from_("user", "id")

    assert str(select) == select.assemble()


def test_no_from(adapter):
    from dbi.expr import DBExpr

    assert adapter.get_select().columns(DBExpr("1")).assemble() == "SELECT 1"


def test_distinct_and_aliases(adapter):
    """Column aliases and raw expressions."""
    from dbi.expr import DBExpr

    select = adapter.get_select().distinct().from_("user", {"total": DBExpr("COUNT(*)"), "who": "name"})

    assert select.assemble() == 'SELECT DISTINCT COUNT(*) AS "total", "user"."name" AS "who" FROM "user"'


def test_join(adapter):
    """Joined tables contribute their own qualified columns."""
    select = (
        adapter.get_select()
        .from_({"u": "user"}, ["id"])
        .left_join({"p": "post"}, "p.user_id = u.id", ["title"])
        .join("tag", "tag.post_id = p.id")
    )

    assert select.assemble() == (
        'SELECT "u"."id", "p"."title" FROM "user" AS "u"'
        ' LEFT JOIN "post" AS "p" ON p.user_id = u.id'
        ' INNER JOIN "tag" ON tag.post_id = p.id'
    )


def test_or_where(adapter):
    select = adapter.get_select().from_("user", "id").where("a=?", 1).or_where("b=?", "x")

    assert select.assemble() == 'SELECT "user"."id" FROM "user" WHERE (a=1) OR (b=\'x\')'


def test_where_values(adapter):
    """Lists are flattened, None becomes NULL, expressions are kept raw."""
    from dbi.expr import DBExpr

    select = (
        adapter.get_select()
        .from_("user", "id")
        .where("id IN (?)", [1, 2, 3])
        .where("deleted_at IS ?", None)
        .where("created_at < ?", DBExpr("CURRENT_TIMESTAMP"))
    )

    assert select.assemble() == (
        'SELECT "user"."id" FROM "user"'
        " WHERE (id IN (1, 2, 3)) AND (deleted_at IS NULL) AND (created_at < CURRENT_TIMESTAMP)"
    )


def test_subquery_condition(adapter):
    """A DBSelect condition is rendered as a parenthesized subquery."""
    from dbi.expr import DBExpr

    banned = adapter.get_select().from_("banned", "user_id")
    select = adapter.get_select().from_("user", "id").where(
        "id NOT IN ?", DBExpr("(" + banned.assemble() + ")")
    )

    assert select.assemble() == (
        'SELECT "user"."id" FROM "user" WHERE (id NOT IN (SELECT "banned"."user_id" FROM "banned"))'
    )
    assert adapter.get_select().where(banned).assemble() == (
        'SELECT * WHERE (SELECT "banned"."user_id" FROM "banned")'
    )


def test_group_having_order_page(adapter):
    from dbi.expr import DBExpr

    select = (
        adapter.get_select()
        .from_("post", ["user_id", DBExpr("COUNT(*)")])
        .group("user_id")
        .having("COUNT(*) > ?", 2)
        .order(["user_id DESC", "COUNT(*) asc"])
        .limit_page(3, 20)
    )

    assert select.assemble() == (
        'SELECT "post"."user_id", COUNT(*) FROM "post" GROUP BY "user_id"'
        ' HAVING (COUNT(*) > 2) ORDER BY "user_id" DESC, COUNT(*) ASC LIMIT 20 OFFSET 40'
    )


def test_limit_offset(adapter):
    select = adapter.get_select().from_("user", "id").limit(5, 10)

    assert select.assemble().endswith(" LIMIT 5 OFFSET 10")
    assert select.limit(None).assemble() == 'SELECT "user"."id" FROM "user"'


def test_reset(adapter):
    from dbi.errors import DBIError

    select = adapter.get_select().from_("user", "id").where("id=1").order("id")

    assert select.reset("where").assemble() == 'SELECT "user"."id" FROM "user" ORDER BY "id" ASC'
    assert select.reset().assemble() == "SELECT *"

    with pytest.raises(DBIError):
        select.reset("nope")


def test_single_from(adapter):
    from dbi.errors import DBIError

    select = adapter.get_select().from_("user")

    with pytest.raises(DBIError):
        select.from_("post")


def test_adapter_released(adapter):
    """A select does not keep its adapter alive."""
    from dbi.errors import DBIError

    select = type(adapter)(adapter.connection_params).get_select().from_("user")
    gc.collect()

    with pytest.raises(DBIError):
        select.assemble()


class TestDBExpr:
    """Tests for DBExpr."""

    def test_str(self):
        from dbi.expr import DBExpr

        expr = DBExpr("NOW()")

        assert str(expr) == "NOW()"
        assert repr(expr) == "DBExpr('NOW()')"

    def test_immutable(self):
        from dbi.expr import DBExpr

        expr = DBExpr("NOW()")

        with pytest.raises(AttributeError):
            expr._expr = "1"

    def test_equality(self):
        from dbi.expr import DBExpr

        assert DBExpr("NOW()") == DBExpr("NOW()")
        assert DBExpr("NOW()") != "NOW()"
        assert len({DBExpr("a"), DBExpr("a")}) == 1
