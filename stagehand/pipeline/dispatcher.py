"""
Stagehand - Pipeline Dispatcher
===============================

What:  Runs a request through the stage chain and then its handler.
How:   The chain is a declared list of stages, outermost first. execute()
       folds that list around the handler so each stage's `call_next` is the
       remainder of the list; the handler's return value comes back wrapped
       in Continue, unless a stage answered with a ShortCircuit first.

Default order (outermost → innermost):
    ExceptionBoundary → RequestLogging → Authorization → Validation
    → Performance → CacheRead → CacheInvalidation → handler

CacheRead only acts on Cacheable requests and CacheInvalidation only on
CacheInvalidating ones, so for any request at most one of them does work.
Cancellation is ordinary asyncio task cancellation of the caller.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from stagehand.cache.store import ResponseCacheStore, response_cache
from stagehand.config import settings
from stagehand.exceptions import ShortCircuitError
from stagehand.pipeline.requests import Request
from stagehand.pipeline.results import Continue, ShortCircuit, StageResult
from stagehand.pipeline.stages import (
    AuthorizationStage,
    CacheInvalidationStage,
    CacheReadStage,
    CallNext,
    ExceptionBoundaryStage,
    PerformanceStage,
    RequestLoggingStage,
    Stage,
    ValidationStage,
)
from stagehand.pipeline.validators import ValidatorRegistry

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=Request)
Handler = Callable[[RequestT], Awaitable[Any]]


def build_default_stages(
    validators: ValidatorRegistry,
    cache: ResponseCacheStore,
    slow_request_threshold_ms: Optional[int] = None,
) -> List[Stage]:
    """The canonical stage list, outermost first."""
    threshold = slow_request_threshold_ms or settings.slow_request_threshold_ms
    return [
        ExceptionBoundaryStage(),
        RequestLoggingStage(),
        AuthorizationStage(validators),
        ValidationStage(validators),
        PerformanceStage(threshold),
        CacheReadStage(cache),
        CacheInvalidationStage(cache),
    ]


class PipelineDispatcher:
    """
    Composes the stage list around a handler for each request.

    Args:
        validators: Registry both validator stages read from.
        cache:      Response cache for the cache stages.
        stages:     Explicit stage list, outermost first. Defaults to
                    build_default_stages(validators, cache).
    """

    def __init__(
        self,
        validators: Optional[ValidatorRegistry] = None,
        cache: Optional[ResponseCacheStore] = None,
        stages: Optional[Sequence[Stage]] = None,
    ):
        self.validators = validators or ValidatorRegistry()
        self.cache = cache or response_cache
        if stages is None:
            stages = build_default_stages(self.validators, self.cache)
        self.stages: List[Stage] = list(stages)

    async def execute(self, request: RequestT, handler: Handler) -> StageResult:
        """
        Run `request` through every stage and then `handler`.

        Returns Continue(value) or the ShortCircuit of the stage that stopped
        the chain. Exceptions propagate unchanged after the boundary logs them.
        A handler may itself return a Continue or ShortCircuit, which is
        passed through as is.
        """

        async def invoke_handler() -> StageResult:
            value = await handler(request)
            if isinstance(value, (Continue, ShortCircuit)):
                return value
            return Continue(value)

        call_next: CallNext = invoke_handler
        for stage in reversed(self.stages):
            call_next = functools.partial(stage.handle, request, call_next)
        return await call_next()

    async def send(self, request: RequestT, handler: Handler) -> Any:
        """
        Like execute(), but unwraps the value.

        A short-circuit is raised as ShortCircuitError so callers without a
        transport object still get the exact envelope the stage produced.
        """
        result = await self.execute(request, handler)
        if isinstance(result, ShortCircuit):
            raise ShortCircuitError(result.status_code, result.body)
        return result.value
