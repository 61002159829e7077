"""Performance stage: warns about requests slower than the configured threshold."""

import logging
import time

from stagehand.pipeline.requests import Request
from stagehand.pipeline.results import StageResult
from stagehand.pipeline.stages.base import CallNext, Stage

logger = logging.getLogger(__name__)


class PerformanceStage(Stage):
    """Purely observational: never changes the result, never aborts."""

    def __init__(self, threshold_ms: int = 500):
        self.threshold_ms = threshold_ms

    async def handle(self, request: Request, call_next: CallNext) -> StageResult:
        start_time = time.perf_counter()
        try:
            return await call_next()
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            if elapsed_ms > self.threshold_ms:
                logger.warning(
                    "Long running request: %s (%s) took %.0fms",
                    request.logical_name(),
                    type(request).__qualname__,
                    elapsed_ms,
                )
