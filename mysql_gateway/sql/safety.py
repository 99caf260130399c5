from __future__ import annotations

from ..errors import QueryRejected

READ_ONLY_ERROR = "Error: Only SELECT queries are permitted."


def is_select_only(sql: str | None) -> bool:
    """Lexical guard: the statement must start with ``select`` (any case).

    Leading whitespace is ignored. Nothing else is inspected, so comments
    before the keyword are rejected and anything chained after a leading
    SELECT is let through.
    """
    return (sql or "").strip().lower().startswith("select")


def safe_select_only(sql: str | None) -> str:
    """Return ``sql`` unchanged if the guard permits it, else raise QueryRejected."""
    if not is_select_only(sql):
        raise QueryRejected(READ_ONLY_ERROR)
    return sql
