"""
Stagehand - Access Logging Middleware
=====================================

What:  One log line per HTTP request: method, path, status, duration,
       request id and acting user.
How:   Level follows the status class (5xx ERROR, 4xx WARNING, else INFO) so
       short-circuited requests stand out from successful ones. Request
       bodies are never logged here; the pipeline's request logging stage
       covers payloads.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from stagehand.middleware.acting_user import acting_user_var
from stagehand.middleware.request_id import request_id_var

logger = logging.getLogger("stagehand.access")

# Probed every few seconds by orchestrators; not worth a line each
QUIET_PATHS = frozenset({"/health"})


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms [%s] user=%s",
            request.method,
            path,
            status,
            duration_ms,
            request_id_var.get(""),
            acting_user_var.get(None) or "anonymous",
            extra={
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
