"""
Tool and resource execution for the gateway.

This is the MCP BOUNDARY: every schema read and every query submitted by a
client goes through GatewayToolExecutor. It owns no connection state of
its own; the pooled engine is injected.
"""

import json
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List

import pandas as pd
from mcp.types import TextContent
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from mysql_gateway.errors import QueryError, QueryRejected
from mysql_gateway.sql.executor import Params, error_message, execute_sql_query
from mysql_gateway.sql.safety import safe_select_only
from mysql_gateway.sql.schema import read_schema

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def rows_to_json(rows: List[Dict[str, Any]]) -> str:
    """Serialize result rows the way clients read them: a JSON array of objects."""
    return json.dumps(rows, default=_json_default)


class GatewayToolExecutor:
    """
    Executes the gateway's tool and resource requests.

    Used by:
    - the protocol server (both stdio and HTTP channels)
    - tests, directly

    Every method leases at most one pooled connection and always returns it.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def execute_sql(self, sql: str, params: Params = None) -> dict:
        """
        Execute a SELECT-only SQL query.

        Args:
            sql: SQL text, forwarded verbatim once the guard permits it
            params: optional DBAPI parameters for placeholders in ``sql``

        Returns:
            dict with success, rows, columns, row_count, dataframe

        Raises:
            QueryRejected: the guard refused ``sql``; no connection was leased
            SQLAlchemyError: the database failed
        """
        # 1. Guard (raises before touching the pool)
        safe_select_only(sql)

        # 2. Execute on one leased connection
        df = execute_sql_query(self.engine, sql, params)

        # 3. Structured result
        return {
            "success": True,
            "rows": df.to_dict(orient="records"),
            "row_count": len(df),
            "columns": list(df.columns),
            "dataframe": df,
        }

    def execute_sql_to_dataframe(self, sql: str, params: Params = None) -> pd.DataFrame:
        """Same guard and execution as execute_sql, returning just the DataFrame."""
        return self.execute_sql(sql, params)["dataframe"]

    def read_only_query(self, sql: str, params: Params = None) -> List[TextContent]:
        """
        The ``read_only_query`` tool.

        Returns the rows as a single JSON text block. Failures are raised as
        QueryRejected or QueryError carrying the message the client sees.
        """
        try:
            result = self.execute_sql(sql, params)
        except QueryRejected:
            logger.warning("Rejected non-SELECT query: %.80r", sql)
            raise
        except SQLAlchemyError as e:
            message = error_message(e)
            logger.error("Database query failed: %s", message)
            raise QueryError(f"Database query failed: {message}") from e
        return [TextContent(type="text", text=rows_to_json(result["rows"]))]

    def read_schemas(self) -> str:
        """The ``mysql://schemas`` resource. Raises SchemaError on any failure."""
        try:
            return read_schema(self.engine)
        except Exception:
            logger.exception("Error fetching schemas")
            raise
