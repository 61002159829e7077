"""
Stagehand - Request ID Middleware
=================================

What:  Gives each request a correlation id, readable anywhere downstream
       through `request_id_var` and echoed in the X-Request-ID header.
How:   A non-blank client-supplied X-Request-ID is kept; otherwise a short
       random id is generated. The ContextVar is reset once the response
       is produced, like acting_user_var.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or new_request_id()
        request.state.request_id = rid

        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
