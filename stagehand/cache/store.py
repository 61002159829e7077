"""
Stagehand - Response Cache Store
================================

What:  Redis-backed key/value store for serialized handler responses, with
       TTLs, existence checks and pattern-based eviction.
How:   redis.asyncio client; transient connection/timeout errors are retried
       with tenacity (CACHE_MAX_RETRY_ATTEMPTS, CACHE_RETRY_DELAY_MS).
Who:   CacheReadStage and CacheInvalidationStage; the /health route.

Failure policy (every operation):
    The error is logged. With CACHE_THROW_ON_ERROR it is re-raised as
    CacheStoreError; otherwise the operation degrades to its empty answer
    (None / False / 0) so a cache outage never fails the surrounding request.
    With the cache disabled every operation is a no-op.

Notes:
    - refresh() only re-applies the default expiration. Refreshing on every
      read keeps hot entries alive indefinitely and serves stale data; prefer
      eviction through CacheInvalidating commands.
    - remove_by_pattern() walks the whole keyspace with SCAN (O(total keys)).
      Keep it off hot paths unless the pattern is narrow.
"""

import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from stagehand.cache.serialization import deserialize, serialize
from stagehand.config import CacheSettings, settings
from stagehand.exceptions import CacheStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ResponseCacheStore:
    """
    Async response cache over Redis.

    The client is created lazily from CACHE_CONNECTION_ENDPOINT on first use,
    or injected directly (tests, shared pools).
    """

    SCAN_BATCH_SIZE = 1000

    def __init__(
        self,
        config: Optional[CacheSettings] = None,
        client: Optional[Redis] = None,
    ):
        self.config = config or settings.cache
        self._client = client

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(self.config.connection_endpoint)
            logger.info("Response cache client created for configured endpoint")
        return self._client

    async def close(self) -> None:
        """Release the connection pool (called from the app lifespan)."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Internals ─────────────────────────────────────────────────────────

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError)),
            stop=stop_after_attempt(self.config.max_retry_attempts),
            wait=wait_fixed(self.config.retry_delay_ms / 1000),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _run(
        self,
        operation: str,
        key: Optional[str],
        call: Callable[[], Awaitable[R]],
        default: R,
    ) -> R:
        """Run `call` with retries and apply the failure policy."""
        try:
            async for attempt in self._retrying():
                with attempt:
                    return await call()
        except Exception as e:
            logger.error(
                "Cache %s failed for key '%s': %s",
                operation,
                key,
                str(e),
                exc_info=True,
            )
            if self.config.throw_on_error:
                raise CacheStoreError(operation, key, context={"error": str(e)}) from e
        return default

    def _default_expiry(self) -> Optional[timedelta]:
        minutes = self.config.default_expiration_minutes
        if minutes < 0:
            return None
        return timedelta(minutes=minutes)

    # ── Operations ────────────────────────────────────────────────────────

    async def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        """
        Serialize `value` and store it under `key`.

        `ttl` is an absolute expiration from now; None uses the configured
        default (CACHE_DEFAULT_EXPIRATION_MINUTES, -1 = never expires).
        """
        if not self.enabled or not key or not key.strip():
            return

        async def _set() -> None:
            payload = serialize(value)
            await self.client.set(key, payload, ex=ttl or self._default_expiry())

        await self._run("set", key, _set, None)

    async def get(self, key: str) -> Optional[bytes]:
        if not self.enabled or not key or not key.strip():
            return None

        async def _get() -> Optional[bytes]:
            return await self.client.get(key)

        return await self._run("get", key, _get, None)

    async def get_as(self, key: str, target: Optional[Type[T]] = None) -> Optional[Any]:
        """
        Decoded value for `key`; None on a miss.

        A payload that does not decode follows the failure policy: None, or
        CacheStoreError with CACHE_THROW_ON_ERROR.
        """
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return deserialize(raw, target)
        except ValueError as e:
            logger.warning("Cached payload for key '%s' could not be decoded: %s", key, str(e))
            if self.config.throw_on_error:
                raise CacheStoreError("get_as", key, context={"error": str(e)}) from e
            return None

    async def refresh(self, key: str) -> bool:
        """Re-apply the default expiration to `key` without touching its value."""
        if not self.enabled or not key or not key.strip():
            return False

        async def _refresh() -> bool:
            expiry = self._default_expiry()
            if expiry is None:
                await self.client.persist(key)
                return bool(await self.client.exists(key))
            return bool(await self.client.expire(key, expiry))

        return await self._run("refresh", key, _refresh, False)

    async def remove(self, key: Optional[str]) -> None:
        if not self.enabled or not key or not key.strip():
            return

        async def _remove() -> None:
            await self.client.delete(key)

        await self._run("remove", key, _remove, None)

    async def remove_by_pattern(self, pattern: str) -> int:
        """Delete every key matching the Redis glob `pattern`; returns how many were removed."""
        if not self.enabled or not pattern or not pattern.strip():
            return 0

        async def _remove_matching() -> int:
            removed = 0
            async for matched in self.client.scan_iter(match=pattern, count=self.SCAN_BATCH_SIZE):
                removed += await self.client.delete(matched)
            return removed

        removed = await self._run("remove_by_pattern", pattern, _remove_matching, 0)
        logger.debug("Removed %d cache entries matching '%s'", removed, pattern)
        return removed

    async def exists(self, key: str) -> bool:
        if not self.enabled or not key or not key.strip():
            return False

        async def _exists() -> bool:
            return await self.client.exists(key) > 0

        return await self._run("exists", key, _exists, False)

    async def get_time_to_live(self, key: str) -> Optional[timedelta]:
        """Remaining lifetime of `key`; None when missing or without expiry."""
        if not self.enabled or not key or not key.strip():
            return None

        async def _ttl() -> Optional[timedelta]:
            remaining_ms = await self.client.pttl(key)
            # -2: no such key, -1: key without expiry
            if remaining_ms is None or remaining_ms < 0:
                return None
            return timedelta(milliseconds=remaining_ms)

        return await self._run("get_time_to_live", key, _ttl, None)

    async def ping(self) -> bool:
        """Connectivity probe for the health route; never raises."""
        if not self.enabled:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning("Cache ping failed: %s", str(e))
            return False


# Singleton instance, shared by the cache stages and the health route
response_cache = ResponseCacheStore()
