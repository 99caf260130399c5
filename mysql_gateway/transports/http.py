"""
Streamable-HTTP channel.

A single ``/mcp`` route carries all protocol traffic. Requests are routed to
per-session transports by the ``mcp-session-id`` header:

- known id   -> that session's transport
- absent or unknown id -> a new session (fresh id, fresh transport, its own
  protocol-server task), then dispatched to it
- a new session whose first request is refused (anything but a successful
  ``initialize``) is terminated and dropped straight away
- a request after which the transport reports termination (client DELETE)
  removes the session from the index
"""
from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Callable, Dict, List, Optional
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPServerTransport
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str], StreamableHTTPServerTransport]

_SESSION_HEADER_KEY = MCP_SESSION_ID_HEADER.encode("latin-1")


def _without_session_header(scope: Scope) -> Scope:
    headers = [(k, v) for k, v in scope.get("headers", []) if k.lower() != _SESSION_HEADER_KEY]
    return dict(scope, headers=headers)


class SessionRouter:
    """Maps inbound HTTP requests to per-session protocol transports.

    The index is only touched on the event loop. Lookup-or-bind and explicit
    close run under one lock, so no request sees an entry that is half
    registered or being removed. Request handling itself runs outside the
    lock; a long-lived event stream on one session never blocks another.
    """

    def __init__(
        self,
        server: Server,
        json_response: bool = False,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.server = server
        self.json_response = json_response
        self._transport_factory = transport_factory or self._new_transport
        self._sessions: Dict[str, StreamableHTTPServerTransport] = {}
        self._lock = anyio.Lock()
        self._task_group: Optional[TaskGroup] = None

    @property
    def active_sessions(self) -> List[str]:
        return list(self._sessions)

    def _new_transport(self, session_id: str) -> StreamableHTTPServerTransport:
        return StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self.json_response,
        )

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator["SessionRouter"]:
        """Own the task group that session servers run in. Exiting closes every session."""
        if self._task_group is not None:
            raise RuntimeError("SessionRouter is already running")
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            try:
                yield self
            finally:
                tg.cancel_scope.cancel()
                self._task_group = None
                self._sessions.clear()
                logger.info("Session router stopped")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.handle_request(scope, receive, send)

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._task_group is None:
            raise RuntimeError("SessionRouter.run() must be entered before handling requests")

        session_id = Request(scope).headers.get(MCP_SESSION_ID_HEADER)
        async with self._lock:
            transport = self._sessions.get(session_id) if session_id else None
            created = transport is None
            if created:
                if session_id:
                    logger.info("Unknown session id %s, starting a new session", session_id)
                    scope = _without_session_header(scope)
                transport = await self._bind()

        if not created:
            await transport.handle_request(scope, receive, send)
            if transport.is_terminated:
                await self.close(transport.mcp_session_id)
            return

        status = None

        async def send_and_record(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        await transport.handle_request(scope, receive, send_and_record)

        if status is None or status >= 400 or transport.is_terminated:
            # The client never learned this id, so nothing would ever close it.
            logger.info("Discarding session %s: first request answered %s", transport.mcp_session_id, status)
            await self.close(transport.mcp_session_id)

    async def close(self, session_id: str) -> None:
        """Drop ``session_id`` from the index and terminate its transport."""
        async with self._lock:
            transport = self._sessions.pop(session_id, None)
        if transport is None:
            return
        if not transport.is_terminated:
            await transport.terminate()
        logger.info("HTTP session closed: %s", session_id)

    async def _bind(self) -> StreamableHTTPServerTransport:
        session_id = uuid4().hex
        transport = self._transport_factory(session_id)
        await self._task_group.start(self._run_session, session_id, transport)
        self._sessions[session_id] = transport
        logger.info("New HTTP session initialized: %s", session_id)
        return transport

    async def _run_session(
        self,
        session_id: str,
        transport: StreamableHTTPServerTransport,
        *,
        task_status: TaskStatus = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        try:
            async with transport.connect() as (read_stream, write_stream):
                task_status.started()
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                    stateless=False,
                )
        except Exception:
            logger.exception("Session %s crashed", session_id)
        finally:
            # No await between lookup and removal: atomic on the event loop.
            if self._sessions.pop(session_id, None) is not None:
                logger.info("HTTP session ended: %s", session_id)


STATUS_TEXT = "MySQL MCP Server is running. The MCP endpoint is at /mcp."


async def index(request: Request) -> PlainTextResponse:
    return PlainTextResponse(STATUS_TEXT)


def create_app(router: SessionRouter) -> Starlette:
    """Starlette app: ``/`` status line and ``/mcp`` for every protocol method."""

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with router.run():
            yield

    return Starlette(
        routes=[
            Route("/", index, methods=["GET"]),
            Route("/mcp", endpoint=router),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["*"],
                allow_headers=["*"],
                expose_headers=["Mcp-Session-Id"],
            )
        ],
        lifespan=lifespan,
    )
