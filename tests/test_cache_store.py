"""
Stagehand - Response Cache Store Tests
======================================

What:  Tests for ResponseCacheStore against an in-memory Redis double.
How:   Failure paths use AsyncMock clients raising redis-py exceptions.

What we test:
    ✅ set/get round trip, explicit and default TTLs, never-expiring entries
    ✅ exists/remove/remove_by_pattern/refresh/get_time_to_live
    ✅ Disabled cache and blank keys are no-ops
    ✅ Transient errors are retried; persistent ones degrade or raise
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel
from redis.exceptions import ConnectionError as RedisConnectionError

from stagehand.cache.store import ResponseCacheStore
from stagehand.config import CacheSettings
from stagehand.exceptions import CacheStoreError


class ItemDto(BaseModel):
    id: int
    name: str
    notes: str = ""


def _config(**overrides) -> CacheSettings:
    values = dict(
        enabled=True,
        connection_endpoint="redis://test:6379/0",
        max_retry_attempts=3,
        retry_delay_ms=0,
    )
    values.update(overrides)
    return CacheSettings(**values)


class TestSetAndGet:
    """Tests for storing and reading payloads."""

    @pytest.mark.asyncio
    async def test_round_trip_plain(self, cache_store):
        """Without a target type the JSON structure comes back."""
        await cache_store.set("k", {"id": 5, "name": "x"})
        assert await cache_store.get_as("k") == {"id": 5, "name": "x"}

    @pytest.mark.asyncio
    async def test_round_trip_typed(self, cache_store):
        """With a target type the payload is validated into it."""
        await cache_store.set("k", ItemDto(id=5, name="x"))
        value = await cache_store.get_as("k", ItemDto)
        assert value == ItemDto(id=5, name="x")

    @pytest.mark.asyncio
    async def test_nulls_are_omitted_from_payload(self, cache_store, fake_redis):
        await cache_store.set("k", {"id": 5, "name": None})
        assert fake_redis.data["k"][0] == b'{"id":5}'

    @pytest.mark.asyncio
    async def test_missing_key(self, cache_store):
        assert await cache_store.get("missing") is None
        assert await cache_store.get_as("missing", ItemDto) is None

    @pytest.mark.asyncio
    async def test_undecodable_payload_reads_as_miss(self, cache_store, fake_redis):
        """A payload that does not fit the target type is treated as absent."""
        await fake_redis.set("k", b'{"unexpected": true}')
        assert await cache_store.get_as("k", ItemDto) is None

    @pytest.mark.asyncio
    async def test_explicit_ttl(self, cache_store):
        await cache_store.set("k", 1, ttl=timedelta(minutes=5))
        remaining = await cache_store.get_time_to_live("k")
        assert timedelta(minutes=4) < remaining <= timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_default_ttl_from_config(self, cache_store):
        await cache_store.set("k", 1)
        remaining = await cache_store.get_time_to_live("k")
        assert timedelta(minutes=59) < remaining <= timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_minus_one_never_expires(self, fake_redis):
        store = ResponseCacheStore(_config(default_expiration_minutes=-1), client=fake_redis)
        await store.set("k", 1)
        assert await store.exists("k") is True
        assert await store.get_time_to_live("k") is None


class TestRemoval:
    """Tests for remove, remove_by_pattern and exists."""

    @pytest.mark.asyncio
    async def test_remove(self, cache_store):
        await cache_store.set("k", 1)
        await cache_store.remove("k")
        assert await cache_store.exists("k") is False

    @pytest.mark.asyncio
    async def test_remove_missing_key_is_harmless(self, cache_store):
        await cache_store.remove("never-set")

    @pytest.mark.asyncio
    async def test_remove_by_pattern_counts_and_scopes(self, cache_store):
        """Only keys matching the glob are deleted."""
        await cache_store.set("Items.Queries.GetItem: 1", 1)
        await cache_store.set("Items.Queries.GetItem: 2", 2)
        await cache_store.set("Orders.Queries.GetOrder: 1", 3)

        removed = await cache_store.remove_by_pattern("Items.Queries.*")

        assert removed == 2
        assert await cache_store.exists("Orders.Queries.GetOrder: 1") is True
        assert await cache_store.exists("Items.Queries.GetItem: 1") is False


class TestRefresh:
    """Tests for refresh()."""

    @pytest.mark.asyncio
    async def test_refresh_reapplies_default_expiration(self, cache_store):
        await cache_store.set("k", 1, ttl=timedelta(seconds=30))
        assert await cache_store.refresh("k") is True
        remaining = await cache_store.get_time_to_live("k")
        assert remaining > timedelta(minutes=59)

    @pytest.mark.asyncio
    async def test_refresh_missing_key(self, cache_store):
        assert await cache_store.refresh("missing") is False

    @pytest.mark.asyncio
    async def test_refresh_with_no_expiry_persists(self, fake_redis):
        store = ResponseCacheStore(_config(default_expiration_minutes=-1), client=fake_redis)
        await fake_redis.set("k", b"1", ex=30)
        assert await store.refresh("k") is True
        assert await store.get_time_to_live("k") is None


class TestDisabledCache:
    """Every operation is a no-op while the cache is disabled."""

    def setup_method(self):
        self.client = MagicMock()
        self.store = ResponseCacheStore(CacheSettings(enabled=False), client=self.client)

    @pytest.mark.asyncio
    async def test_operations_do_not_touch_client(self):
        await self.store.set("k", 1)
        assert await self.store.get("k") is None
        assert await self.store.exists("k") is False
        assert await self.store.refresh("k") is False
        assert await self.store.remove_by_pattern("*") == 0
        assert await self.store.get_time_to_live("k") is None
        await self.store.remove("k")
        assert self.client.method_calls == []

    @pytest.mark.asyncio
    async def test_ping_reports_false(self):
        assert await self.store.ping() is False


class TestBlankKeys:
    """Blank keys never reach Redis."""

    @pytest.mark.asyncio
    async def test_blank_keys_are_ignored(self, cache_store, fake_redis):
        await cache_store.set("   ", 1)
        await cache_store.set("", 1)
        assert fake_redis.data == {}
        assert await cache_store.get("") is None
        assert await cache_store.exists(" ") is False


class TestFailurePolicy:
    """Retries, degradation and CACHE_THROW_ON_ERROR."""

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self):
        """A connection error followed by success returns the value."""
        client = MagicMock()
        client.get = AsyncMock(side_effect=[RedisConnectionError("reset"), b'{"id":1}'])
        store = ResponseCacheStore(_config(), client=client)

        assert await store.get_as("k") == {"id": 1}
        assert client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts_and_degrades(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("down"))
        store = ResponseCacheStore(_config(max_retry_attempts=2), client=client)

        assert await store.get("k") is None
        assert client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_non_transient_error_is_not_retried(self):
        client = MagicMock()
        client.exists = AsyncMock(side_effect=RuntimeError("boom"))
        store = ResponseCacheStore(_config(), client=client)

        assert await store.exists("k") is False
        assert client.exists.await_count == 1

    @pytest.mark.asyncio
    async def test_throw_on_error_raises_cache_store_error(self):
        client = MagicMock()
        client.set = AsyncMock(side_effect=RedisConnectionError("down"))
        store = ResponseCacheStore(_config(throw_on_error=True), client=client)

        with pytest.raises(CacheStoreError) as exc_info:
            await store.set("k", 1)

        assert exc_info.value.operation == "set"
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, caplog):
        client = MagicMock()
        client.delete = AsyncMock(side_effect=RuntimeError("boom"))
        store = ResponseCacheStore(_config(), client=client)

        with caplog.at_level("ERROR", logger="stagehand.cache.store"):
            await store.remove("k")

        assert "Cache remove failed for key 'k'" in caplog.text


class TestLifecycle:
    """Tests for ping() and close()."""

    @pytest.mark.asyncio
    async def test_ping(self, cache_store):
        assert await cache_store.ping() is True

    @pytest.mark.asyncio
    async def test_ping_never_raises(self):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("down"))
        store = ResponseCacheStore(_config(), client=client)
        assert await store.ping() is False

    @pytest.mark.asyncio
    async def test_close_releases_client(self, cache_store, fake_redis):
        await cache_store.close()
        assert fake_redis.closed is True


class TestDecodeFailurePolicy:
    """Undecodable payloads follow CACHE_THROW_ON_ERROR too."""

    @pytest.mark.asyncio
    async def test_undecodable_payload_raises_when_configured(self, fake_redis):
        store = ResponseCacheStore(_config(throw_on_error=True), client=fake_redis)
        await fake_redis.set("k", b'{"unexpected": true}')

        with pytest.raises(CacheStoreError) as exc_info:
            await store.get_as("k", ItemDto)

        assert exc_info.value.operation == "get_as"
        assert exc_info.value.key == "k"
