"""
VoiceGrade Backend - Request Logging Middleware
=================================================

What:  One structured access line per HTTP request.
How:   Measures wall time around the downstream call and logs method, path,
       status, duration, request id, client IP and whether the caller sent an
       identity. Level follows the status: 5xx ERROR, 4xx WARNING, else INFO.

Never logged: request bodies (audio), transcripts, identity values.

Typical durations:
    - GET /api/transcriptions: 10-50ms
    - POST /api/transcriptions: 2-10s (two upstream calls dominate)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from voicegrade.config import settings
from voicegrade.middleware.request_id import request_id_var

logger = logging.getLogger("voicegrade.access")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its outcome and duration."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        client_ip = request.client.host if request.client else "unknown"
        authenticated = bool(request.headers.get(settings.identity_header, "").strip())
        rid = request_id_var.get("")
        status = response.status_code

        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s (%s)",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            "user" if authenticated else "anonymous",
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "authenticated": authenticated,
            },
        )
        return response
