"""
VoiceGrade Backend - Transcription Route Handlers
===================================================

What:  Pipeline submission, history reads and stored-audio download.
Who:   VoiceGradeClient (transcribe_and_rate, recent_transcriptions) and any
       UI rendering the history list.

Caching Strategy:
    - POST /api/transcriptions: never cached
    - GET /api/transcriptions: no-store (changes after every submission)
    - GET /api/transcriptions/{id}: private, 1 hour (records are immutable)
    - GET /api/files/{storage_id}: private, 24 hours (blobs are immutable)
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from voicegrade.auth import get_current_user_id
from voicegrade.database import get_db_session
from voicegrade.exceptions import NotFoundError
from voicegrade.presentation import build_history, to_history_entry
from voicegrade.schemas.transcription import (
    ErrorResponse,
    ProcessRequest,
    TranscriptionRecord,
    TranscriptionResult,
)
from voicegrade.services.pipeline_service import pipeline_service
from voicegrade.services.record_service import MAX_HISTORY_LIMIT, record_service
from voicegrade.services.storage_service import storage_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api", tags=["Transcriptions"])


@router.post(
    "/transcriptions",
    status_code=201,
    response_model=TranscriptionResult,
    response_model_by_alias=True,
    responses={
        404: {"description": "Unknown storage reference", "model": ErrorResponse},
        422: {"description": "No speech detected", "model": ErrorResponse},
        429: {"description": "Submission rate limit exceeded", "model": ErrorResponse},
        502: {"description": "Transcription or grading endpoint failed", "model": ErrorResponse},
    },
    summary="Transcribe and grade an uploaded recording",
)
async def transcribe_and_rate(
    body: ProcessRequest,
    db: AsyncSession = Depends(get_db_session),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> TranscriptionResult:
    """
    Run the full pipeline for one storage reference.

    Error responses (global exception handlers):
        HTTP 404: reference unknown or bound to another identity
        HTTP 422: the transcript came back empty
        HTTP 502: an upstream call answered non-2xx or could not be made
    """
    logger.info("Pipeline requested for storage_id=%s", body.storage_id)
    return await pipeline_service.process(db, body.storage_id, user_id)


@router.get(
    "/transcriptions",
    response_model=List[TranscriptionRecord],
    response_model_by_alias=True,
    summary="Recent transcriptions for the caller",
)
async def recent_transcriptions(
    response: Response,
    limit: int = Query(default=MAX_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    db: AsyncSession = Depends(get_db_session),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> List[TranscriptionRecord]:
    """
    Up to 10 of the caller's records, newest first.

    Anonymous callers get an empty list, not an error.
    """
    records = await record_service.list_recent(db, user_id, limit)
    response.headers["Cache-Control"] = "no-store"
    return build_history(records)


@router.get(
    "/transcriptions/{record_id}",
    response_model=TranscriptionRecord,
    response_model_by_alias=True,
    responses={404: {"description": "Not found", "model": ErrorResponse}},
    summary="One of the caller's transcriptions",
)
async def get_transcription(
    record_id: uuid.UUID,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> TranscriptionRecord:
    record = await record_service.get_record(db, record_id, user_id)
    response.headers["Cache-Control"] = "private, max-age=3600"
    return to_history_entry(record)


@router.get(
    "/files/{storage_id}",
    responses={
        200: {"description": "Stored audio"},
        404: {"description": "Not found", "model": ErrorResponse},
    },
    summary="Download a stored recording",
)
async def serve_audio(
    storage_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> FileResponse:
    """Serve a blob to whoever may process it (same visibility rule)."""
    blob = await storage_service.get_blob(db, storage_id, user_id)
    path = storage_service.resolve_path(blob)
    if not path.exists():
        raise NotFoundError(resource="audio", resource_id=str(storage_id))

    return FileResponse(
        path=str(path),
        media_type=blob.content_type,
        headers={"Cache-Control": "private, max-age=86400"},
    )
