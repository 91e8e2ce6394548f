"""Pytest configuration: set test env before any app imports so settings use test values."""

import os
import tempfile

import pytest
import pytest_asyncio

# Set before app.config is used so the module-level app and limiter see test values
_tmp = tempfile.mkdtemp(prefix="filevault_test_")
os.environ.setdefault("FILEVAULT_DB_URL", f"sqlite+aiosqlite:///{os.path.join(_tmp, 'test.db')}")
os.environ.setdefault("FILEVAULT_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("FILEVAULT_CORS_ORIGINS", "http://testserver")


@pytest_asyncio.fixture
async def database(tmp_path):
    """A fresh SQLite database with all tables, disposed after the test."""
    from app.db.session import Database

    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await db.init()
    yield db
    await db.dispose()


@pytest.fixture
def session_factory(database):
    """Return db.session so tests can use async with session_factory() as session."""
    return database.session


@pytest.fixture
def make_user(session_factory):
    """Insert a user row directly (password is a fixed, valid credential) and return it."""
    from app.users.store import UserStore

    counter = {"n": 0}

    async def _make(username=None):
        counter["n"] += 1
        name = username or f"user{counter['n']}"
        async with session_factory() as session:
            return await UserStore(session).create(
                username=name,
                email=f"{name}@example.com",
                password="00" * 32 + "." + "11" * 16,
            )

    return _make
