"""Command-line entry point: ``mysql-gateway --transport stdio|http``."""
from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

import anyio
import uvicorn
from anyio.abc import TaskStatus
from mcp.server.lowlevel import Server
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .config import load_settings
from .errors import ConfigError
from .server import create_server
from .sql.executor import error_message
from .sql.pool import close_pool, create_pool, probe
from .tools.executor import GatewayToolExecutor
from .transports.http import SessionRouter, create_app
from .transports.stdio import serve_stdio

logger = logging.getLogger("mysql_gateway")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mysql-gateway",
        description="Expose a MySQL database to MCP clients: a schema resource and a read-only query tool.",
    )
    parser.add_argument(
        "--transport",
        choices=("stdio", "http"),
        default="stdio",
        help="Channel to serve on (default: stdio)",
    )
    parser.add_argument("--env-file", type=Path, help="Read configuration from this .env file only")
    parser.add_argument("--host", help="HTTP bind address (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="HTTP port (default: PORT or 8080)")
    parser.add_argument(
        "--json-response",
        action="store_true",
        help="Answer HTTP POSTs with plain JSON instead of an event stream",
    )
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(level: str) -> None:
    # stdout carries protocol frames on the stdio channel.
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)


def _exit_after_signal(engine: Engine) -> None:
    """Close the pool and end the process.

    The stdin reader runs in a worker thread that cancellation cannot reach,
    so a signal never unwinds back through ``main``.
    """
    try:
        close_pool(engine)
    except Exception:
        logger.exception("Failed to close the database pool")
        logging.shutdown()
        os._exit(1)
    logger.info("Server has been shut down")
    logging.shutdown()
    os._exit(0)


async def _serve_stdio_until_signal(server: Server, engine: Engine) -> None:
    async with anyio.create_task_group() as tg:

        async def watch_signals(*, task_status: TaskStatus = anyio.TASK_STATUS_IGNORED) -> None:
            signals = [signal.SIGINT, signal.SIGTERM]
            if hasattr(signal, "SIGQUIT"):
                signals.append(signal.SIGQUIT)
            with anyio.open_signal_receiver(*signals) as received:
                task_status.started()
                async for signum in received:
                    logger.info("Received %s, shutting down", signal.Signals(signum).name)
                    _exit_after_signal(engine)

        await tg.start(watch_signals)
        await serve_stdio(server)
        tg.cancel_scope.cancel()


def run_stdio(server: Server, engine: Engine) -> None:
    anyio.run(_serve_stdio_until_signal, server, engine)


def run_http(server: Server, host: str, port: int, json_response: bool = False, log_level: str = "INFO") -> None:
    router = SessionRouter(server, json_response=json_response)
    app = create_app(router)
    logger.info("MySQL Gateway MCP Server running on HTTP, listening on port %d", port)
    logger.info("   - Local:            http://localhost:%d/mcp", port)
    # uvicorn stops accepting connections on SIGINT/SIGTERM and then runs the lifespan shutdown.
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower(), timeout_graceful_shutdown=10)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except ConfigError as e:
        configure_logging(args.log_level or "INFO")
        logger.error("Configuration error: %s", e)
        return 1

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    engine = create_pool(settings)
    server = create_server(GatewayToolExecutor(engine))

    try:
        if args.transport == "http":
            try:
                probe(engine)
            except SQLAlchemyError as e:
                logger.error("Fatal error during server startup: %s", error_message(e))
                return 1
            run_http(
                server,
                host=args.host or settings.host,
                port=args.port or settings.port,
                json_response=args.json_response,
                log_level=log_level,
            )
        else:
            run_stdio(server, engine)
    finally:
        try:
            close_pool(engine)
        except Exception:
            logger.exception("Failed to close the database pool")
            os._exit(1)

    logger.info("Server has been shut down")
    return 0
