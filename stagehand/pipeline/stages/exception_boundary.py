"""
Outermost stage: logs every exception escaping the chain, then re-raises it.

The exception object is re-raised untouched (same identity, same traceback);
rendering the 500 envelope is the transport's job (see main.py).
"""

import logging

from stagehand.exceptions import StagehandError
from stagehand.pipeline.requests import Request
from stagehand.pipeline.results import StageResult
from stagehand.pipeline.stages.base import CallNext, Stage, describe

logger = logging.getLogger(__name__)


class ExceptionBoundaryStage(Stage):
    async def handle(self, request: Request, call_next: CallNext) -> StageResult:
        try:
            return await call_next()
        except StagehandError as e:
            level = logging.WARNING if e.status_code < 500 else logging.ERROR
            logger.log(
                level,
                "Request %s (%s) failed with %s: %s | request=%s",
                request.logical_name(),
                type(request).__qualname__,
                type(e).__name__,
                e.message,
                describe(request),
                exc_info=level >= logging.ERROR,
            )
            raise
        except Exception as e:
            logger.error(
                "Unhandled exception for request %s (%s): %s: %s | request=%s",
                request.logical_name(),
                type(request).__qualname__,
                type(e).__name__,
                str(e),
                describe(request),
                exc_info=True,
            )
            raise
