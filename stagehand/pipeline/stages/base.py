"""
Stage contract shared by every link of the pipeline.

A stage receives the request and `call_next`, a zero-argument coroutine
function that runs the remainder of the chain. It either awaits `call_next`
(and may transform what comes back) or returns its own ShortCircuit without
touching the rest of the chain.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from stagehand.pipeline.requests import Request
from stagehand.pipeline.results import StageResult

CallNext = Callable[[], Awaitable[StageResult]]


def describe(request: Request) -> str:
    """JSON form of `request` for log lines; repr() when it does not serialize."""
    try:
        return request.model_dump_json()
    except Exception:
        return repr(request)


class Stage(ABC):
    @abstractmethod
    async def handle(self, request: Request, call_next: CallNext) -> StageResult:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"
