"""
Schema validation stage.

All schema validators registered for the request type run concurrently; once
every one has finished, their field errors are grouped per field with
duplicate messages dropped. Any error at all aborts with 400.
"""

import asyncio
import logging
from typing import Dict, List

from stagehand.pipeline.requests import Request
from stagehand.pipeline.results import StageResult, abort
from stagehand.pipeline.stages.base import CallNext, Stage
from stagehand.pipeline.validators import FieldError, ValidatorRegistry

logger = logging.getLogger(__name__)


def group_field_errors(failures: List[FieldError]) -> Dict[str, List[str]]:
    """{field: [distinct messages]} preserving first-seen order."""
    grouped: Dict[str, List[str]] = {}
    for failure in failures:
        messages = grouped.setdefault(failure.field, [])
        if failure.message not in messages:
            messages.append(failure.message)
    return grouped


class ValidationStage(Stage):
    def __init__(self, registry: ValidatorRegistry):
        self.registry = registry

    async def handle(self, request: Request, call_next: CallNext) -> StageResult:
        validators = self.registry.schema_validators_for(type(request))
        if not validators:
            return await call_next()

        results = await asyncio.gather(*(v.validate(request) for v in validators))
        errors = group_field_errors([failure for batch in results for failure in batch])

        if errors:
            logger.info(
                "Request %s failed validation on %s",
                request.logical_name(),
                ", ".join(errors),
            )
            return abort(
                400,
                "One or more validation errors occurred.",
                title="Validation errors",
                errors=errors,
            )

        return await call_next()
