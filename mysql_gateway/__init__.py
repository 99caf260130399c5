# MySQL Gateway - MCP server for a MySQL database
"""
MySQL Gateway - exposes a database schema resource and a read-only query tool over MCP.
"""

__version__ = "1.1.0"

from .server import create_server
from .tools.executor import GatewayToolExecutor
from .transports.http import SessionRouter, create_app

__all__ = [
    "__version__",
    "create_server",
    "GatewayToolExecutor",
    "SessionRouter",
    "create_app",
]
