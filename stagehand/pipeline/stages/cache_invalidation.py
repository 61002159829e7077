"""
Post-execution cache eviction for CacheInvalidating requests.

The rest of the chain always runs first; eviction follows only when it
produced a Continue. Eviction is best effort and not transactional with the
write: between the commit and the end of eviction a stale cached read can
still be served.

Targets, in order of precedence:
    reset_all_cache_entries        every key
    cache_keys / cache_key_pattern / invalidates   exactly what is declared
    nothing declared               the query namespace derived from the name
"""

import logging

from stagehand.cache.store import ResponseCacheStore
from stagehand.pipeline.keys import derive_invalidation_prefix, prefix_pattern
from stagehand.pipeline.requests import CacheInvalidating, Request
from stagehand.pipeline.results import Continue, StageResult
from stagehand.pipeline.stages.base import CallNext, Stage

logger = logging.getLogger(__name__)


class CacheInvalidationStage(Stage):
    def __init__(self, cache: ResponseCacheStore):
        self.cache = cache

    async def handle(self, request: Request, call_next: CallNext) -> StageResult:
        if not self.cache.enabled or not isinstance(request, CacheInvalidating):
            return await call_next()

        result = await call_next()
        if isinstance(result, Continue):
            await self.evict(request)
        return result

    async def evict(self, request: CacheInvalidating) -> int:
        """Remove the entries `request` invalidates; returns how many went."""
        name = request.logical_name()

        if request.reset_all_cache_entries:
            removed = await self.cache.remove_by_pattern("*")
            logger.info("Command %s reset the response cache (%d entries)", name, removed)
            return removed

        removed = 0
        declared = False
        for key in request.cache_keys:
            declared = True
            if await self.cache.exists(key):
                await self.cache.remove(key)
                removed += 1
        if request.cache_key_pattern:
            declared = True
            removed += await self.cache.remove_by_pattern(request.cache_key_pattern)
        for namespace in request.invalidates:
            declared = True
            removed += await self.cache.remove_by_pattern(prefix_pattern(namespace))

        if not declared:
            prefix = derive_invalidation_prefix(name)
            if prefix is None:
                logger.warning(
                    "Command %s declares no cache targets and its name has no "
                    "'Commands' segment; nothing was evicted",
                    name,
                )
                return 0
            removed = await self.cache.remove_by_pattern(prefix_pattern(prefix))

        logger.info("Command %s evicted %d cache entries", name, removed)
        return removed
