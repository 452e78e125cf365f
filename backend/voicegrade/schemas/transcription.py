"""
VoiceGrade Backend - Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract between client and backend.
How:   FastAPI validates request bodies against these models and serializes
       responses through them (by alias, so the wire uses camelCase names
       such as `originalText` and `grammarScore`).
Who:   Route handlers on the server; VoiceGradeClient parses replies with the
       same models.

Design Decision:
    Schemas are separate from SQLAlchemy models: the wire names differ from
    column names, and presentation fields (score label, tone) are computed
    at read time rather than stored.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


_CONFIG = {"populate_by_name": True, "from_attributes": True}


# ══════════════════════════════════════════════════════════════════════════
# Storage collaborator
# ══════════════════════════════════════════════════════════════════════════


class UploadTargetResponse(BaseModel):
    """
    A single-use write destination.

    Returned by POST /api/uploads. The client POSTs the raw audio body to
    `uploadUrl` before `expiresAt`; the URL stops working after one write.
    """
    upload_url: str = Field(alias="uploadUrl", description="Absolute single-use upload URL")
    expires_at: datetime = Field(alias="expiresAt", description="When the URL stops accepting writes")

    model_config = _CONFIG


class UploadResponse(BaseModel):
    """Opaque storage reference returned after a successful upload."""
    storage_id: uuid.UUID = Field(alias="storageId", description="Storage reference for the pipeline")

    model_config = _CONFIG


# ══════════════════════════════════════════════════════════════════════════
# Pipeline
# ══════════════════════════════════════════════════════════════════════════


class ProcessRequest(BaseModel):
    """Body of POST /api/transcriptions."""
    storage_id: uuid.UUID = Field(alias="storageId", description="Reference returned by the upload")

    model_config = _CONFIG


class TranscriptionResult(BaseModel):
    """
    What:  Outcome of one pipeline run.
    Who:   Returned by POST /api/transcriptions with HTTP 201.

    processingTime is in milliseconds and covers transcription plus grading.
    """
    id: uuid.UUID = Field(description="Record identifier")
    original_text: str = Field(alias="originalText", description="Transcript")
    grammar_score: float = Field(alias="grammarScore", description="Score, nominally 1-10")
    feedback: str = Field(description="Grader's explanation")
    issues: List[str] = Field(default_factory=list, description="Issues found, possibly empty")
    processing_time: int = Field(alias="processingTime", ge=0, description="Round trip in ms")
    score_label: str = Field(alias="scoreLabel", description="Qualitative band for the score")

    model_config = _CONFIG


class TranscriptionRecord(TranscriptionResult):
    """
    What:  One history entry.
    Who:   Returned by GET /api/transcriptions (as a list) and
           GET /api/transcriptions/{id}.
    """
    creation_time: datetime = Field(alias="creationTime", description="When the record was created (UTC)")
    score_tone: str = Field(alias="scoreTone", description="good, fair or poor")


# ══════════════════════════════════════════════════════════════════════════
# Errors & health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "upstream_service_error",
            "message": "Transcription failed: 500",
            "details": {"service": "transcription", "status_code": 500},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    speech_provider: str = Field(description="Provider status: available, unavailable, unconfigured")
    uptime_seconds: float = Field(description="Seconds since service started")
