from __future__ import annotations

import logging

from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

logger = logging.getLogger(__name__)


async def serve_stdio(server: Server) -> None:
    """Run ``server`` over this process's stdin/stdout until the input closes."""
    async with stdio_server() as (read_stream, write_stream):
        logger.info("MySQL Gateway MCP Server running on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
