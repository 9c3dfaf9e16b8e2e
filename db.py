"""Database access: engine construction, schema introspection and raw execution.

The engine (and its bounded QueuePool) is the only state that outlives a
request. Whoever builds it owns it and is expected to `dispose()` it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from errors import ExecutionFailed, SchemaUnavailable
from settings import Settings

logger = logging.getLogger("text2sql.db")

Record = Dict[str, Any]

_DIALECT_DISPLAY = {
    "postgresql": "PostgreSQL",
    "mysql": "MySQL",
    "mariadb": "MariaDB",
    "sqlite": "SQLite",
    "mssql": "SQL Server",
    "oracle": "Oracle",
}

_PG_CATALOG_SQL = """
    SELECT
        t.table_name,
        c.column_name,
        c.data_type
    FROM
        information_schema.tables t
    JOIN
        information_schema.columns c
            ON c.table_schema = t.table_schema AND c.table_name = t.table_name
    WHERE
        t.table_schema = :schema AND t.table_type = 'BASE TABLE'
    ORDER BY
        t.table_name, c.ordinal_position
"""

_MYSQL_CATALOG_SQL = """
    SELECT
        t.table_name,
        c.column_name,
        c.data_type
    FROM
        information_schema.tables t
    JOIN
        information_schema.columns c
            ON c.table_schema = t.table_schema AND c.table_name = t.table_name
    WHERE
        t.table_schema = DATABASE() AND t.table_type = 'BASE TABLE'
    ORDER BY
        t.table_name, c.ordinal_position
"""


@dataclass
class TableDescriptor:
    name: str
    columns: List[Tuple[str, str]] = field(default_factory=list)

    def render(self) -> str:
        cols = ",\n".join(f"  {name} ({dtype})" for name, dtype in self.columns)
        return f"TABLE {self.name} (\n{cols}\n);"


@dataclass
class SchemaDescription:
    tables: List[TableDescriptor] = field(default_factory=list)

    def render(self) -> str:
        return "\n\n".join(t.render() for t in self.tables).strip()

    def __str__(self) -> str:
        return self.render()


def create_db_engine(settings: Settings) -> Engine:
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL is not set (or PG_* connection settings are incomplete).")
    return create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
    )


def dialect_display_name(engine: Engine) -> str:
    name = (engine.dialect.name or "").lower()
    return _DIALECT_DISPLAY.get(name, name or "SQL")


def render_schema(rows: Iterable[Tuple[str, str, str]]) -> SchemaDescription:
    """Group (table, column, type) rows by table, first-seen order wins."""
    by_name: Dict[str, TableDescriptor] = {}
    for table_name, column_name, data_type in rows:
        table = by_name.get(table_name)
        if table is None:
            table = by_name[table_name] = TableDescriptor(table_name)
        table.columns.append((column_name, str(data_type)))
    return SchemaDescription(list(by_name.values()))


def _catalog_rows(conn, dialect: str, schema: str) -> List[Tuple[str, str, str]]:
    if dialect == "postgresql":
        return [tuple(r) for r in conn.execute(text(_PG_CATALOG_SQL), {"schema": schema})]
    if dialect in ("mysql", "mariadb"):
        return [tuple(r) for r in conn.execute(text(_MYSQL_CATALOG_SQL))]

    # No information_schema (sqlite and friends): fall back to the inspector.
    insp = inspect(conn)
    rows: List[Tuple[str, str, str]] = []
    for table_name in sorted(insp.get_table_names()):
        for col in insp.get_columns(table_name):
            rows.append((table_name, col["name"], str(col["type"])))
    return rows


def describe_schema(engine: Engine, schema: str = "public") -> SchemaDescription:
    try:
        with engine.connect() as conn:
            rows = _catalog_rows(conn, engine.dialect.name, schema)
    except SQLAlchemyError as e:
        logger.warning("schema_introspection_failed", extra={"error": str(e)})
        raise SchemaUnavailable(f"Could not read database schema: {getattr(e, 'orig', None) or e}") from e
    return render_schema(rows)


def execute_sql(engine: Engine, sql: str) -> List[Record]:
    """Run `sql` verbatim and return its rows as dicts (empty for non-row statements)."""
    try:
        with engine.begin() as conn:
            # no_parameters: hand the text to the driver untouched (%, :name)
            res = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
            if not res.returns_rows:
                return []
            return [dict(m) for m in res.mappings()]
    except SQLAlchemyError as e:
        msg = str(getattr(e, "orig", None) or e).strip()
        raise ExecutionFailed(msg) from e
