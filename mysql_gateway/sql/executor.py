from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Union

import pandas as pd
from sqlalchemy.engine import Engine

Params = Optional[Union[Sequence[Any], Mapping[str, Any]]]


def execute_sql_query(engine: Engine, sql: str, params: Params = None) -> pd.DataFrame:
    """Run ``sql`` verbatim on one pooled connection and return the rows as a DataFrame.

    The connection is leased for the duration of the call only. Columns keep
    the driver's Python values (``dtype=object``) so nothing is coerced to
    floats or NaN on the way out.
    """
    with engine.connect() as conn:
        if params is None:
            # Without parameters the DBAPI must not treat '%' as a format marker.
            result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
        elif isinstance(params, Mapping):
            result = conn.exec_driver_sql(sql, dict(params))
        else:
            result = conn.exec_driver_sql(sql, tuple(params))
        if not result.returns_rows:
            return pd.DataFrame()
        columns = list(result.keys())
        rows = [tuple(row) for row in result.fetchall()]
    return pd.DataFrame(rows, columns=columns, dtype=object)


def error_message(exc: BaseException) -> str:
    """The driver's own message for a database failure, without SQLAlchemy's decoration."""
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)
