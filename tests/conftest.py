"""
Stagehand - Test Configuration (conftest.py)
============================================

What:  Shared pytest fixtures for the test suite.
How:   Environment variables are set before any stagehand import so the
       module-level settings, engine and cache singletons pick them up.

Fixture Hierarchy (all function-scoped):
    ├── fake_redis: in-memory stand-in for a redis.asyncio client
    ├── cache_store: enabled ResponseCacheStore wired to fake_redis
    ├── mock_db_session: AsyncMock session (no real DB needed)
    ├── db_engine / session_factory: in-memory SQLite with the audit hooks
    └── test_client: HTTPX AsyncClient against the FastAPI app
"""

import fnmatch
import os
import time
from datetime import timedelta
from typing import Dict, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Must run before stagehand.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CACHE_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "production"

from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from stagehand.cache.store import ResponseCacheStore  # noqa: E402
from stagehand.config import CacheSettings  # noqa: E402
from stagehand.database import Base, build_session_factory  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Redis test double
# ══════════════════════════════════════════════════════════════════════════

class FakeRedis:
    """
    Dict-backed subset of the redis.asyncio client API used by the store.

    Expiry is tracked with time.monotonic(); expired keys read as missing.
    Payloads are kept as the bytes the store wrote.
    """

    def __init__(self) -> None:
        self.data: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self.closed = False

    def _live(self, key: str) -> bool:
        entry = self.data.get(key)
        if entry is None:
            return False
        expires_at = entry[1]
        if expires_at is not None and expires_at <= time.monotonic():
            del self.data[key]
            return False
        return True

    @staticmethod
    def _seconds(value) -> float:
        if isinstance(value, timedelta):
            return value.total_seconds()
        return float(value)

    async def get(self, key: str) -> Optional[bytes]:
        if not self._live(key):
            return None
        return self.data[key][0]

    async def set(self, key: str, value, ex=None) -> bool:
        if isinstance(value, str):
            value = value.encode("utf-8")
        expires_at = time.monotonic() + self._seconds(ex) if ex is not None else None
        self.data[key] = (value, expires_at)
        return True

    async def delete(self, *keys) -> int:
        removed = 0
        for key in keys:
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            if self._live(key):
                del self.data[key]
                removed += 1
        return removed

    async def exists(self, *keys) -> int:
        return sum(1 for key in keys if self._live(key))

    async def expire(self, key: str, seconds) -> bool:
        if not self._live(key):
            return False
        self.data[key] = (self.data[key][0], time.monotonic() + self._seconds(seconds))
        return True

    async def persist(self, key: str) -> bool:
        if not self._live(key):
            return False
        self.data[key] = (self.data[key][0], None)
        return True

    async def pttl(self, key: str) -> int:
        if not self._live(key):
            return -2
        expires_at = self.data[key][1]
        if expires_at is None:
            return -1
        return int((expires_at - time.monotonic()) * 1000)

    async def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None):
        for key in list(self.data):
            if not self._live(key):
                continue
            # Redis glob and fnmatch agree on *, ? and [..]; backslash escapes differ
            if match is None or _glob_match(key, match):
                yield key.encode("utf-8")

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


def _glob_match(key: str, pattern: str) -> bool:
    """Redis-style glob match: backslash escapes the next character."""
    translated = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            translated.append("[" + pattern[i + 1] + "]")
            i += 2
            continue
        translated.append(ch)
        i += 1
    return fnmatch.fnmatchcase(key, "".join(translated))


# ══════════════════════════════════════════════════════════════════════════
# Cache fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache_config():
    return CacheSettings(
        enabled=True,
        connection_endpoint="redis://test:6379/0",
        default_expiration_minutes=60,
        max_retry_attempts=3,
        retry_delay_ms=0,
        throw_on_error=False,
    )


@pytest.fixture
def cache_store(cache_config, fake_redis):
    """Enabled store backed by the in-memory fake."""
    return ResponseCacheStore(config=cache_config, client=fake_redis)


# ══════════════════════════════════════════════════════════════════════════
# Database fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_handler(mock_db_session):
            mock_db_session.execute.return_value.scalar_one_or_none.return_value = item
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.info = {}
    return session


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite shared by every connection of the test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


# ══════════════════════════════════════════════════════════════════════════
# HTTP fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client():
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from stagehand.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
