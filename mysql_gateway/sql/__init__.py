"""SQL utilities for MySQL Gateway."""
from .executor import execute_sql_query
from .pool import create_pool, probe, close_pool
from .safety import is_select_only, safe_select_only
from .schema import read_schema

__all__ = [
    "execute_sql_query",
    "create_pool",
    "probe",
    "close_pool",
    "is_select_only",
    "safe_select_only",
    "read_schema",
]
