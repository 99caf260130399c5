"""
Protocol-level tests: a real MCP client talking to the gateway server in memory.
"""
import json

import pytest
from mcp.shared.exceptions import McpError
from mcp.shared.memory import create_connected_server_and_client_session
from pydantic import AnyUrl

from mysql_gateway.server import (
    READ_ONLY_QUERY_TOOL,
    SCHEMA_RESOURCE_URI,
    SERVER_NAME,
    create_server,
)
from mysql_gateway.sql.safety import READ_ONLY_ERROR
from mysql_gateway.tools.executor import GatewayToolExecutor

pytestmark = [pytest.mark.anyio, pytest.mark.mcp]


@pytest.fixture
def server(executor):
    return create_server(executor)


class TestListings:

    async def test_server_name(self, server):
        assert server.name == SERVER_NAME

    async def test_lists_one_tool(self, server):
        async with create_connected_server_and_client_session(server) as client:
            result = await client.list_tools()

        assert [tool.name for tool in result.tools] == [READ_ONLY_QUERY_TOOL]
        schema = result.tools[0].inputSchema
        assert schema["required"] == ["sql"]
        assert schema["properties"]["sql"]["type"] == "string"

    async def test_lists_one_resource(self, server):
        async with create_connected_server_and_client_session(server) as client:
            result = await client.list_resources()

        assert len(result.resources) == 1
        resource = result.resources[0]
        assert str(resource.uri) == SCHEMA_RESOURCE_URI
        assert resource.mimeType == "text/plain"


class TestToolCalls:

    async def test_select_success_envelope(self, server):
        async with create_connected_server_and_client_session(server) as client:
            result = await client.call_tool(READ_ONLY_QUERY_TOOL, {"sql": "SELECT 1"})

        assert not result.isError
        assert json.loads(result.content[0].text) == [{"1": 1}]

    async def test_rejection_error_envelope(self, server, leases):
        async with create_connected_server_and_client_session(server) as client:
            result = await client.call_tool(READ_ONLY_QUERY_TOOL, {"sql": "DROP TABLE events"})

        assert result.isError is True
        assert result.content[0].text == READ_ONLY_ERROR
        assert leases.checkouts == 0

    async def test_database_error_envelope(self, server):
        async with create_connected_server_and_client_session(server) as client:
            result = await client.call_tool(READ_ONLY_QUERY_TOOL, {"sql": "SELECT nope FROM events"})

        assert result.isError is True
        assert result.content[0].text.startswith("Database query failed: ")

    async def test_session_survives_errors(self, server):
        """Test a failing call does not break later calls on the same session."""
        async with create_connected_server_and_client_session(server) as client:
            failed = await client.call_tool(READ_ONLY_QUERY_TOOL, {"sql": "SELECT * FROM missing"})
            ok = await client.call_tool(READ_ONLY_QUERY_TOOL, {"sql": "SELECT COUNT(*) AS n FROM events"})

        assert failed.isError is True
        assert not ok.isError
        assert json.loads(ok.content[0].text) == [{"n": 3}]


class TestSchemaResource:

    async def test_read_schema(self, server):
        async with create_connected_server_and_client_session(server) as client:
            result = await client.read_resource(AnyUrl(SCHEMA_RESOURCE_URI))

        text = result.contents[0].text
        assert "CREATE TABLE events" in text
        assert "CREATE TABLE attendees" in text

    async def test_read_schema_failure_is_one_error(self, tmp_path, make_engine):
        server = create_server(GatewayToolExecutor(make_engine(tmp_path / "gone" / "db.sqlite")))

        async with create_connected_server_and_client_session(server) as client:
            with pytest.raises(McpError, match="Failed to fetch schemas"):
                await client.read_resource(AnyUrl(SCHEMA_RESOURCE_URI))
