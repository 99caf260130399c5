from __future__ import annotations

from typing import List

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from ..errors import SchemaError
from .executor import error_message


def _quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def list_tables(conn: Connection) -> List[str]:
    """Table names in the database's own listing order."""
    if conn.dialect.name == "sqlite":
        rows = conn.execute(text(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        ))
    else:
        rows = conn.exec_driver_sql("SHOW TABLES")
    return [row[0] for row in rows]


def table_definition(conn: Connection, table_name: str) -> str:
    """The CREATE statement the database reports for ``table_name``."""
    if conn.dialect.name == "sqlite":
        row = conn.execute(
            text("SELECT sql FROM sqlite_master WHERE type='table' AND name = :name"),
            {"name": table_name},
        ).fetchone()
        if row is None:
            raise LookupError(f"Table not found: {table_name}")
        return row[0]
    # SHOW CREATE TABLE yields (Table, Create Table); views yield (View, Create View, ...).
    row = conn.exec_driver_sql(f"SHOW CREATE TABLE {_quote_identifier(table_name)}").fetchone()
    if row is None:
        raise LookupError(f"Table not found: {table_name}")
    return row[1]


def read_schema(engine: Engine) -> str:
    """Concatenate every table's definition, each terminated by ``;`` and a blank line.

    One connection is leased for the whole snapshot. Any failure aborts the
    snapshot; no partial text is ever returned.
    """
    try:
        with engine.connect() as conn:
            conn.execution_options(no_parameters=True)
            parts = [
                f"{table_definition(conn, name)};\n\n"
                for name in list_tables(conn)
            ]
    except Exception as e:
        raise SchemaError(f"Failed to fetch schemas: {error_message(e)}") from e
    return "".join(parts)
