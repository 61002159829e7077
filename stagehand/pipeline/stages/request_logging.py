"""Logs each dispatched request with the acting user before any checks run."""

import logging

from stagehand.middleware.acting_user import acting_user_var
from stagehand.middleware.request_id import request_id_var
from stagehand.pipeline.requests import Request
from stagehand.pipeline.results import StageResult
from stagehand.pipeline.stages.base import CallNext, Stage, describe

logger = logging.getLogger(__name__)


class RequestLoggingStage(Stage):
    async def handle(self, request: Request, call_next: CallNext) -> StageResult:
        logger.info(
            "[%s] Request %s by user %s: %s",
            request_id_var.get(""),
            request.logical_name(),
            acting_user_var.get(None) or "anonymous",
            describe(request),
        )
        return await call_next()
