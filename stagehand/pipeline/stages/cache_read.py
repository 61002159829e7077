"""
Read-through response cache for Cacheable requests.

Hit: the cached payload is decoded (into the request's `response_type` when
declared) and returned without running the rest of the chain.
Miss: the chain runs; a Continue with a non-None value is stored for
`cache_ttl` (24 hours unless the request declares otherwise). ShortCircuit
results are never cached.
"""

import logging
from datetime import timedelta

from stagehand.cache.store import ResponseCacheStore
from stagehand.pipeline.keys import derive_cache_key
from stagehand.pipeline.requests import Cacheable, Request
from stagehand.pipeline.results import Continue, StageResult
from stagehand.pipeline.stages.base import CallNext, Stage

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_TTL = timedelta(hours=24)


class CacheReadStage(Stage):
    def __init__(self, cache: ResponseCacheStore):
        self.cache = cache

    async def handle(self, request: Request, call_next: CallNext) -> StageResult:
        if not self.cache.enabled or not isinstance(request, Cacheable):
            return await call_next()

        key = derive_cache_key(request)
        cached = await self.cache.get_as(key, request.response_type)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return Continue(cached)

        logger.debug("Cache miss for %s", key)
        result = await call_next()
        if isinstance(result, Continue) and result.value is not None:
            await self.cache.set(key, result.value, request.cache_ttl or DEFAULT_RESPONSE_TTL)
        return result
