"""Pytest configuration."""

import os

# Ensure test environment
os.environ.setdefault("SL_DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("SL_CODES_FILE", "test-codes.txt")
os.environ.setdefault("SL_DEBUG", "true")

import pytest
import pytest_asyncio

from shortlinks.config import Settings, get_settings
from shortlinks.core.codes import CodePool, CodeSpace
from shortlinks.core.links import LinkStore
from shortlinks.models.database import build_engine, build_session_maker, create_tables


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """Fresh SQLite database per test."""
    engine = build_engine(Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    await create_tables(engine)
    yield build_session_maker(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def link_store(session_maker):
    return LinkStore(session_maker)


@pytest.fixture
def tiny_pool(tmp_path):
    """Four-code pool: alphabet AB, length 2."""
    pool = CodePool(tmp_path / "codes.txt", CodeSpace("AB", 2))
    pool.initialize()
    return pool


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    """Point the app at throwaway storage; returns a setter for extra SL_ vars."""
    monkeypatch.setenv("SL_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")
    monkeypatch.setenv("SL_CODES_FILE", str(tmp_path / "codes.txt"))
    monkeypatch.setenv("SL_ADMIN_PASSWORD", "hunter2")
    get_settings.cache_clear()

    def _set(**env):
        for key, value in env.items():
            monkeypatch.setenv(f"SL_{key.upper()}", str(value))
        get_settings.cache_clear()

    yield _set
    get_settings.cache_clear()
