"""
Stagehand - Acting User Middleware
==================================

What:  Resolves the id of the user on whose behalf a request runs.
How:   Prefers `request.state.user_id` (set by whatever authentication layer
       sits in front), falling back to the header named by
       settings.acting_user_header. The value lands in `acting_user_var`,
       which the audit interceptor and the request logging stage read.

Token validation is not done here; this only carries an already
established identity to the persistence layer.
"""

from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from stagehand.config import settings

acting_user_var: ContextVar[Optional[str]] = ContextVar("acting_user", default=None)


class ActingUserMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        user_id = getattr(request.state, "user_id", None) or request.headers.get(
            settings.acting_user_header
        )
        token = acting_user_var.set(user_id or None)
        try:
            return await call_next(request)
        finally:
            acting_user_var.reset(token)
