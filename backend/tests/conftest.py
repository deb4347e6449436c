"""
Pytest configuration and shared fixtures for the food station tests.

The database location and log directory are pointed at a temporary directory
before any application module is imported, so settings pick them up.
"""
import asyncio
import os
import tempfile

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="food_station_tests_")
os.environ["SQLITE_DATABASE_URI"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["EXPIRY_REFRESH_ENABLED"] = "false"

from food_station.db import session as db_session  # noqa: E402
from food_station.db.init_db import reset_tables  # noqa: E402


@pytest.fixture(autouse=True)
def clean_database():
    """Drop and recreate every table for each test."""
    asyncio.run(reset_tables())
    yield


@pytest.fixture
def run_db():
    """Run ``fn(db, *args, **kwargs)`` with a fresh session in its own event loop."""
    def _run(fn, *args, **kwargs):
        async def _inner():
            async with db_session.SessionLocal() as db:
                return await fn(db, *args, **kwargs)
        return asyncio.run(_inner())
    return _run


@pytest.fixture
def client():
    """A FastAPI test client with the application lifespan running."""
    from fastapi.testclient import TestClient
    from food_station.main import app

    with TestClient(app) as test_client:
        yield test_client
