"""
VoiceGrade Backend - Health Check Route
=========================================

What:  Liveness/readiness probe for Docker and load balancers.
How:   SELECT 1 against the database and GET {base}/models on the provider.

Status levels:
    - healthy:   database and provider reachable (HTTP 200)
    - degraded:  provider unreachable or unconfigured (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from voicegrade import __version__
from voicegrade.database import engine
from voicegrade.schemas.transcription import HealthResponse
from voicegrade.services.openai_service import openai_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    """Probe each dependency and report the aggregate status."""
    db_status = "connected"
    provider_status = "available"
    overall = "healthy"

    # ── Database ──────────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Speech provider ───────────────────────────────────────────────────
    if not openai_service.is_configured:
        provider_status = "unconfigured"
    elif not await openai_service.health_check():
        provider_status = "unavailable"

    if provider_status != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        speech_provider=provider_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
