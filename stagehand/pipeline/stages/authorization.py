"""
Authorization stage: action validators, one at a time, first failure wins.

Validators run sequentially in registration order because a later check may
rely on state an earlier one established. The first non-Continue outcome
becomes a ShortCircuit carrying its status and message; nothing after it
(later validators, inner stages, the handler) runs.
"""

import logging

from stagehand.pipeline.requests import Request
from stagehand.pipeline.results import StageResult, abort
from stagehand.pipeline.stages.base import CallNext, Stage
from stagehand.pipeline.validators import ValidatorRegistry

logger = logging.getLogger(__name__)


class AuthorizationStage(Stage):
    def __init__(self, registry: ValidatorRegistry):
        self.registry = registry

    async def handle(self, request: Request, call_next: CallNext) -> StageResult:
        for validator in self.registry.action_validators_for(type(request)):
            outcome = await validator.validate(request)
            if outcome.can_continue:
                continue

            logger.info(
                "Request %s stopped by %s: %d %s",
                request.logical_name(),
                type(validator).__name__,
                int(outcome.status),
                outcome.message or "",
            )
            return abort(int(outcome.status), outcome.message)

        return await call_next()
