"""Connection pool construction and lifecycle."""
from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url

from ..config import Settings

logger = logging.getLogger(__name__)


def database_url(settings: Settings) -> URL:
    if settings.database_url:
        return make_url(settings.database_url)
    return URL.create(
        "mysql+pymysql",
        username=settings.db_user,
        password=settings.db_password or None,
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
    )


def create_pool(settings: Settings) -> Engine:
    """Build the shared engine. Nothing connects until the first lease."""
    url = database_url(settings)
    if url.get_backend_name() == "sqlite":
        # Leases are taken from worker threads.
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=settings.pool_size,
        max_overflow=0,
        pool_timeout=settings.pool_timeout,
        pool_pre_ping=True,
    )


def probe(engine: Engine) -> None:
    """Lease and return one connection; raises if the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection successful (%s)", engine.url.render_as_string(hide_password=True))


def close_pool(engine: Engine) -> None:
    engine.dispose()
    logger.info("Database pool closed")
