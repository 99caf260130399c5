"""
Tools module for MySQL Gateway (MCP boundary).
"""

from .executor import GatewayToolExecutor

__all__ = [
    "GatewayToolExecutor",
]
