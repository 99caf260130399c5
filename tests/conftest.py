"""
Pytest configuration and shared fixtures.
"""
import os

import pytest
import sqlite3

from sqlalchemy import event

from mysql_gateway import config as gateway_config
from mysql_gateway.config import Settings
from mysql_gateway.sql.pool import create_pool
from mysql_gateway.tools.executor import GatewayToolExecutor


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def events_db(tmp_path):
    """
    Create a temporary database with an events table and an attendees table.
    """
    db_path = tmp_path / "events.sqlite"
    conn = sqlite3.connect(str(db_path))

    conn.execute("""
        CREATE TABLE events (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL,
            venue TEXT,
            starts_at TEXT NOT NULL,
            price REAL
        )
    """)
    conn.execute("""
        CREATE TABLE attendees (
            id INTEGER PRIMARY KEY,
            event_id INTEGER NOT NULL REFERENCES events(id),
            name TEXT NOT NULL
        )
    """)

    conn.executemany(
        "INSERT INTO events (title, venue, starts_at, price) VALUES (?, ?, ?, ?)",
        [
            ("PyCon Meetup", "Hall A", "2024-03-01 18:00:00", 0.0),
            ("Database Night", "Hall B", "2024-03-08 19:00:00", 12.5),
            ("Python Sprint", None, "2024-03-15 09:00:00", None),
        ],
    )
    conn.executemany(
        "INSERT INTO attendees (event_id, name) VALUES (?, ?)",
        [(1, "Ada"), (1, "Grace"), (2, "Edsger")],
    )

    conn.commit()
    conn.close()
    return db_path


class LeaseCounter:
    """Counts pool checkouts and checkins on an engine."""

    def __init__(self, engine):
        self.checkouts = 0
        self.checkins = 0
        event.listen(engine, "checkout", self._on_checkout)
        event.listen(engine, "checkin", self._on_checkin)

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy):
        self.checkouts += 1

    def _on_checkin(self, dbapi_connection, connection_record):
        self.checkins += 1

    @property
    def outstanding(self):
        return self.checkouts - self.checkins


def sqlite_settings(db_path):
    return Settings(database_url=f"sqlite:///{db_path}")


@pytest.fixture
def make_engine():
    """Factory for pooled engines over arbitrary SQLite paths; all disposed afterwards."""
    engines = []

    def _make(db_path):
        engine = create_pool(sqlite_settings(db_path))
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.dispose()


@pytest.fixture
def engine(events_db, make_engine):
    """Pooled engine over the events database."""
    return make_engine(events_db)


@pytest.fixture
def leases(engine):
    return LeaseCounter(engine)


@pytest.fixture
def executor(engine):
    return GatewayToolExecutor(engine)


# Markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "mcp: marks tests related to MCP functionality")


GATEWAY_VARS = {
    "DB_HOST", "DB_PORT", "DB_USER", "DB_PASSWORD", "DB_NAME",
    "DATABASE_URL", "HOST", "PORT", "DB_POOL_SIZE", "DB_POOL_TIMEOUT", "LOG_LEVEL",
}


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """
    Isolated os.environ without any gateway variables, cwd in tmp_path,
    and the per-user env file pointed into tmp_path.
    """
    env = {k: v for k, v in os.environ.items() if k not in GATEWAY_VARS}
    monkeypatch.setattr(os, "environ", env)
    monkeypatch.chdir(tmp_path)
    user_file = tmp_path / "home" / ".mysql-gateway" / ".env"
    monkeypatch.setattr(gateway_config, "USER_ENV_FILE", user_file)
    return user_file
