"""The MCP protocol server: one resource and one tool over an injected executor."""
from __future__ import annotations

import anyio
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from . import __version__
from .tools.executor import GatewayToolExecutor

SERVER_NAME = "mysql-gateway-server"
SCHEMA_RESOURCE_URI = "mysql://schemas"
READ_ONLY_QUERY_TOOL = "read_only_query"

SCHEMA_RESOURCE = Resource(
    uri=AnyUrl(SCHEMA_RESOURCE_URI),
    name="schema",
    title="Database Schemas",
    description="Provides the `CREATE TABLE` statements for all tables in the connected database.",
    mimeType="text/plain",
)

READ_ONLY_QUERY = Tool(
    name=READ_ONLY_QUERY_TOOL,
    title="Read-Only SQL Query",
    description="Executes a read-only SQL query (MUST start with 'SELECT') on the database.",
    inputSchema={
        "type": "object",
        "properties": {
            "sql": {
                "type": "string",
                "description": "The SQL SELECT statement to execute.",
            }
        },
        "required": ["sql"],
    },
)


def create_server(executor: GatewayToolExecutor) -> Server:
    """Build a protocol server whose handlers delegate to ``executor``.

    Database work runs in worker threads so a slow query never blocks the
    event loop shared by other sessions.
    """
    server = Server(SERVER_NAME, version=__version__)

    @server.list_resources()
    async def handle_list_resources() -> list[Resource]:
        return [SCHEMA_RESOURCE]

    @server.read_resource()
    async def handle_read_resource(uri: AnyUrl):
        if str(uri).rstrip("/") != SCHEMA_RESOURCE_URI:
            raise ValueError(f"Unknown resource URI: {uri}")
        text = await anyio.to_thread.run_sync(executor.read_schemas)
        return [ReadResourceContents(content=text, mime_type="text/plain")]

    @server.list_tools()
    async def handle_list_tools() -> list[Tool]:
        return [READ_ONLY_QUERY]

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
        # Raised errors come back to the client as isError results.
        if name != READ_ONLY_QUERY_TOOL:
            raise ValueError(f"Unknown tool: {name}")
        return await anyio.to_thread.run_sync(executor.read_only_query, arguments.get("sql", ""))

    return server
