"""
VoiceGrade Backend - Upload Route Handlers
============================================

What:  The storage collaborator's two endpoints.
How:   POST /api/uploads issues a single-use URL pointing back at
       POST /api/uploads/{token}; that endpoint takes the raw request body
       (no multipart) and answers with the storage reference.
Who:   The client's Uploader, once per recording.

Upload Flow:
    1. Client:  POST /api/uploads                → {uploadUrl, expiresAt}
    2. Client:  POST {uploadUrl} (Content-Type: audio/webm, raw bytes)
    3. Server:  validate token, type and size → write file → {storageId}
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voicegrade.auth import get_current_user_id
from voicegrade.database import get_db_session
from voicegrade.schemas.transcription import (
    ErrorResponse,
    UploadResponse,
    UploadTargetResponse,
)
from voicegrade.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Uploads"])


@router.post(
    "/uploads",
    status_code=201,
    response_model=UploadTargetResponse,
    response_model_by_alias=True,
    summary="Issue a single-use upload URL",
)
async def generate_upload_url(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> UploadTargetResponse:
    """
    Create an upload slot bound to the caller's identity.

    The URL accepts exactly one write and expires after UPLOAD_URL_TTL seconds.
    """
    target = await storage_service.generate_upload_url(db, user_id)
    return UploadTargetResponse(
        upload_url=str(request.url_for("upload_audio", token=target.token)),
        expires_at=target.expires_at,
    )


@router.post(
    "/uploads/{token}",
    name="upload_audio",
    status_code=201,
    response_model=UploadResponse,
    response_model_by_alias=True,
    responses={
        400: {"description": "Bad token, non-audio body, or too short/large", "model": ErrorResponse},
    },
    summary="Write the audio for an upload slot",
)
async def upload_audio(
    token: str,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> UploadResponse:
    """
    Store the raw request body as the slot's audio.

    The slot's owner, not the writer, owns the stored blob: the URL itself is
    the capability.
    """
    content = await request.body()
    content_type = request.headers.get("content-type")
    logger.info("Received upload: %d bytes (%s)", len(content), content_type or "no content type")

    blob = await storage_service.store_upload(db, token, content, content_type)
    return UploadResponse(storage_id=blob.id)
