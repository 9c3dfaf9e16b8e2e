import pytest
from sqlalchemy import create_engine

from db import SchemaDescription, describe_schema, render_schema
from errors import SchemaUnavailable


def test_groups_rows_by_table_in_first_seen_order():
    rows = [
        ("orders", "id", "integer"),
        ("customers", "id", "integer"),
        ("orders", "total", "numeric"),
        ("customers", "name", "text"),
    ]
    schema = render_schema(rows)
    assert [t.name for t in schema.tables] == ["orders", "customers"]
    assert schema.tables[0].columns == [("id", "integer"), ("total", "numeric")]
    assert schema.render() == (
        "TABLE orders (\n  id (integer),\n  total (numeric)\n);\n\n"
        "TABLE customers (\n  id (integer),\n  name (text)\n);"
    )


def test_empty_catalog_renders_empty_text():
    assert render_schema([]).render() == ""
    assert str(SchemaDescription()) == ""


def test_describe_schema_sqlite(engine):
    assert describe_schema(engine).render() == (
        "TABLE departments (\n  id (INTEGER),\n  name (TEXT)\n);\n\n"
        "TABLE employees (\n  id (INTEGER),\n  name (TEXT),\n  dept_id (INTEGER)\n);"
    )
    assert engine.pool.checkedout() == 0


def test_describe_schema_is_built_fresh_each_call(engine):
    before = describe_schema(engine)
    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE audit (id INTEGER, note TEXT)")
    after = describe_schema(engine)
    assert [t.name for t in before.tables] == ["departments", "employees"]
    assert [t.name for t in after.tables] == ["audit", "departments", "employees"]


def test_describe_schema_unreachable_database(broken_engine):
    with pytest.raises(SchemaUnavailable) as exc:
        describe_schema(broken_engine)
    assert "unable to open database file" in str(exc.value)
    assert broken_engine.pool.checkedout() == 0


def test_describe_schema_empty_database(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    try:
        assert describe_schema(engine).tables == []
    finally:
        engine.dispose()
