"""
Stagehand - Stage Results and the Abort Envelope
================================================

What:  The tagged result every stage returns, and the JSON body written when
       a stage terminates the chain early.
How:   A stage returns Continue(value) when the chain ran to completion (or a
       cached value stands in for it) and ShortCircuit(status, body) when it
       stops the chain. The dispatcher threads the result back out unchanged;
       only the transport layer turns a ShortCircuit into an HTTP response.

Wire format of the body (AbortResponse):
    {"title": str, "status": int, "detail": str,
     "errors": {field: [str]} (omitted when absent), "timestamp": ISO-8601}
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, Field

T = TypeVar("T")

# Titles used when a stage aborts with a bare status
STATUS_TITLES: Dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    500: "Internal Server Error",
}

DEFAULT_DETAILS: Dict[int, str] = {
    400: "The request was invalid or malformed",
    401: "Authentication is required to access this resource",
    403: "Access to the requested resource is forbidden",
    404: "The requested resource was not found",
    409: "A conflict occurred while processing the request",
    500: "An unexpected error occurred while processing your request.",
}


class AbortResponse(BaseModel):
    """Structured body shared by every abort path."""

    title: str
    status: int
    detail: str
    errors: Optional[Dict[str, List[str]]] = None
    # Only populated for unhandled errors in development mode
    exception_type: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


@dataclass(frozen=True)
class Continue(Generic[T]):
    """The chain produced a value (from the handler or from the cache)."""

    value: T


@dataclass(frozen=True)
class ShortCircuit:
    """A stage stopped the chain; the handler did not run."""

    status_code: int
    body: AbortResponse


StageResult = Union[Continue[Any], ShortCircuit]


def abort(
    status_code: int,
    detail: Optional[str] = None,
    title: Optional[str] = None,
    errors: Optional[Dict[str, List[str]]] = None,
) -> ShortCircuit:
    """Build a ShortCircuit with a populated envelope."""
    body = AbortResponse(
        title=title or STATUS_TITLES.get(status_code, "Error"),
        status=status_code,
        detail=detail or DEFAULT_DETAILS.get(status_code, ""),
        errors=errors,
    )
    return ShortCircuit(status_code=status_code, body=body)
