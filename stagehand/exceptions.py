"""
Stagehand - Custom Exception Hierarchy
=======================================

What:  Application-specific exceptions, each bound to an HTTP status code.
How:   Each exception carries a message and optional context dict. The
       handlers registered in main.py render every one of them with the
       same abort envelope ({title, status, detail, errors?, timestamp}).
Who:   Raised by handlers, the cache store and the audit interceptor.

Exception Hierarchy:
    StagehandError (base)                → 500
    ├── ValidationError                  → 400 (field-scoped messages)
    ├── BadRequestError                  → 400
    ├── UnauthorizedError                → 401
    ├── ForbiddenError                   → 403
    ├── NotFoundError                    → 404
    ├── ConflictError                    → 409
    │   └── AuditStateError
    │       ├── AlreadyCreatedError
    │       ├── NotYetCreatedError
    │       └── AlreadyDeletedError
    ├── CacheStoreError                  → 500
    └── ShortCircuitError                → status of the carried envelope
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence


class StagehandError(Exception):
    """
    Base exception for all Stagehand application errors.

    Attributes:
        message:  User-facing error description (safe to return in a response)
        context:  Additional debug info (logged, not returned to the client)
    """

    status_code: int = 500
    title: str = "Internal Server Error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(StagehandError):
    """
    Raised when a request fails schema validation.

    `errors` maps each field name to its distinct messages, in first-seen order.
    """

    status_code = 400
    title = "Validation errors"

    def __init__(
        self,
        errors: Mapping[str, Sequence[str]],
        message: str = "One or more validation failures have occurred.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.errors: Dict[str, List[str]] = {
            field: list(messages) for field, messages in errors.items()
        }


class BadRequestError(StagehandError):
    """Raised when a request is malformed; optionally scoped to one field."""

    status_code = 400
    title = "Bad Request"

    def __init__(
        self,
        message: str = "The request was invalid or malformed",
        field: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if field and reason:
            message = f"Property '{field}' is invalid: {reason}"
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
        self.reason = reason

    @property
    def errors(self) -> Optional[Dict[str, List[str]]]:
        if not self.field:
            return None
        return {self.field: [self.reason or self.message]}


class UnauthorizedError(StagehandError):
    """Raised when the caller is not authenticated for the resource."""

    status_code = 401
    title = "Unauthorized"

    def __init__(
        self,
        message: str = "Authentication is required to access this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(StagehandError):
    """Raised when the caller is authenticated but not allowed."""

    status_code = 403
    title = "Forbidden"

    def __init__(
        self,
        resource: Optional[str] = None,
        resource_id: Optional[Any] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = "Access to the requested resource is forbidden"
            if resource:
                message = f'Access denied to resource "{resource}" with identifier ({resource_id})'
        ctx = context or {}
        if resource:
            ctx["resource"] = resource
        super().__init__(message=message, context=ctx)


class NotFoundError(StagehandError):
    """
    Raised when a requested resource does not exist.

    Handlers convert "no row" results into this so the transport renders 404.
    """

    status_code = 404
    title = "Resource Not Found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class ConflictError(StagehandError):
    """Raised when the request conflicts with the current state of a resource."""

    status_code = 409
    title = "Conflict"

    def __init__(
        self,
        message: str = "A conflict occurred while processing the request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


# ── Audit lifecycle failures ─────────────────────────────────────────────

class AuditStateError(ConflictError):
    """An audit transition was attempted from a state that does not allow it."""

    def __init__(self, entity: Any, message: str):
        super().__init__(
            message=message,
            context={"entity": type(entity).__name__},
        )
        self.entity = entity


class AlreadyCreatedError(AuditStateError):
    def __init__(self, entity: Any):
        super().__init__(entity, f"{type(entity).__name__} has already been created")


class NotYetCreatedError(AuditStateError):
    def __init__(self, entity: Any):
        super().__init__(
            entity, f"{type(entity).__name__} cannot be updated before it is created"
        )


class AlreadyDeletedError(AuditStateError):
    def __init__(self, entity: Any):
        super().__init__(entity, f"{type(entity).__name__} has already been deleted")


# ── Infrastructure ───────────────────────────────────────────────────────

class CacheStoreError(StagehandError):
    """
    Raised by the response cache store when CACHE_THROW_ON_ERROR is set.

    With the flag off, store failures are logged and degraded instead.
    """

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["operation"] = operation
        if key is not None:
            ctx["key"] = key
        super().__init__(message=f"Cache operation '{operation}' failed", context=ctx)
        self.operation = operation
        self.key = key


class ShortCircuitError(StagehandError):
    """
    Raised by PipelineDispatcher.send() when a stage short-circuits.

    Carries the abort envelope so callers without a transport object can
    still render the exact response the stage produced.
    """

    def __init__(self, status_code: int, body: Any):
        self.status_code = status_code
        self.body = body
        super().__init__(message=getattr(body, "detail", "") or "Request aborted")
