"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any guestbook import so the global
settings (used by guestbook.main) point at an in-memory database.
"""

import os

# Set before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["DB_PATH"] = ":memory:"
os.environ.pop("APP_ADMIN_TOKEN", None)

from datetime import datetime, timezone
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from guestbook.adapters.storage.sqlite import SQLiteVisitorStore
from guestbook.core.app_factory import create_app
from guestbook.core.config import AppSettings, DatabaseSettings, LogSettings, Settings
from guestbook.core.time_source import FixedTimeSource

ADMIN_TOKEN = "test-admin-token"
FIXED_NOW = datetime(2024, 5, 4, 12, 30, tzinfo=timezone.utc)
FIXED_NOW_JSON = "2024-05-04T12:30:00Z"
# Peer address starlette's TestClient reports for every request
TESTCLIENT_ADDRESS = "testclient:50000"


def make_settings(**app_overrides) -> Settings:
    """Build settings for an isolated test app (admin enabled by default)."""
    app_values = {"admin_token": ADMIN_TOKEN, **app_overrides}
    return Settings(
        app=AppSettings(**app_values),
        db=DatabaseSettings(path=":memory:"),
        log=LogSettings(),
    )


def insert_visitor(store: SQLiteVisitorStore, nick: str, group: str | None = None) -> int:
    """Insert a visitor directly, bypassing HTTP and rate limiting."""
    return store.insert(created_at=FIXED_NOW, ip="127.0.0.1:8080", nick=nick, group=group)


@pytest.fixture
def time_source() -> FixedTimeSource:
    return FixedTimeSource(FIXED_NOW)


@pytest.fixture
def store() -> SQLiteVisitorStore:
    """Fresh, initialized in-memory store."""
    visitor_store = SQLiteVisitorStore(":memory:")
    visitor_store.initialize()
    yield visitor_store
    visitor_store.close()


@pytest.fixture
def make_client(store: SQLiteVisitorStore, time_source: FixedTimeSource) -> Callable[..., TestClient]:
    """Factory building a TestClient around a new app sharing the test store."""

    def _make_client(**app_overrides) -> TestClient:
        app = create_app(
            make_settings(**app_overrides),
            store=store,
            time_source=time_source,
            setup_logging=False,
        )
        return TestClient(app)

    return _make_client


@pytest.fixture
def client(make_client) -> TestClient:
    """Client for an app with the admin gate enabled."""
    return make_client()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
