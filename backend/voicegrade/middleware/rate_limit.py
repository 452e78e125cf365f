"""
VoiceGrade Backend - Submission Rate Limiting Middleware
==========================================================

What:  Sliding-window limit on pipeline submissions.
How:   Only POST /api/transcriptions is counted, since every submission costs
       a transcription call and a grading call upstream. Callers are keyed by
       identity when they have one, otherwise by client IP.

Algorithm: Sliding Window Log
    1. Each key keeps the timestamps of its submissions
    2. Timestamps older than the window are dropped on every check
    3. At the limit: 429 with Retry-After until the oldest entry expires
    4. Otherwise the submission is recorded and passed on

State is in-process memory: correct for a single uvicorn worker only.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from voicegrade.config import settings
from voicegrade.exceptions import RateLimitExceededError
from voicegrade.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

LIMITED_ROUTES = {("POST", "/api/transcriptions")}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding window limiter for pipeline submissions."""

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._submissions: Dict[str, List[float]] = defaultdict(list)

    def _caller_key(self, request: Request) -> str:
        identity = request.headers.get(settings.identity_header, "").strip()
        if identity:
            return f"user:{identity}"
        host = request.client.host if request.client else "unknown"
        return f"ip:{host}"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if (request.method, request.url.path) not in LIMITED_ROUTES:
            return await call_next(request)

        key = self._caller_key(request)
        now = time.time()
        window_start = now - settings.rate_limit_window

        recent = [ts for ts in self._submissions[key] if ts > window_start]
        self._submissions[key] = recent

        if len(recent) >= settings.rate_limit_requests:
            retry_after = int(recent[0] + settings.rate_limit_window - now) + 1
            exc = RateLimitExceededError(retry_after=retry_after)
            logger.warning(
                "Submission limit hit for %s: %d in %ds window",
                key.split(":", 1)[0],
                len(recent),
                settings.rate_limit_window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        recent.append(now)
        self._prune(window_start)
        return await call_next(request)

    def _prune(self, window_start: float) -> None:
        """Drop keys whose newest submission has left the window."""
        stale = [
            key for key, stamps in self._submissions.items()
            if not stamps or stamps[-1] <= window_start
        ]
        for key in stale:
            del self._submissions[key]
