"""
VoiceGrade Backend - Transcription-and-Grading Pipeline
=========================================================

What:  Turns a storage reference into a persisted, graded transcription.
How:   Composes StorageService, the speech provider and RecordService.
Who:   Called by POST /api/transcriptions.

Orchestration Flow:
    ┌───────────┐    ┌──────────────┐    ┌───────────┐    ┌──────────┐
    │  Storage  │───▶│  Transcribe  │───▶│   Grade   │───▶│  Record  │
    │  (bytes)  │    │  (provider)  │    │ (provider)│    │   (DB)   │
    └───────────┘    └──────────────┘    └───────────┘    └──────────┘

    Each step needs the previous one to succeed. A failure before the record
    step aborts the run: nothing is persisted and nothing is retried.
    Grading replies that cannot be parsed do NOT abort the run; the provider
    substitutes a fallback report and the transcript is still stored.

    There is no idempotency key: submitting the same reference twice makes
    two upstream round trips and two records.
"""

import logging
import time
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from voicegrade.exceptions import EmptyTranscriptError
from voicegrade.presentation import to_result
from voicegrade.schemas.transcription import TranscriptionResult
from voicegrade.services.openai_service import openai_service
from voicegrade.services.record_service import RecordFields, record_service
from voicegrade.services.storage_service import storage_service

logger = logging.getLogger(__name__)


class PipelineService:
    """Stateless orchestrator; safe to share across concurrent requests."""

    async def process(
        self,
        db: AsyncSession,
        storage_id: uuid.UUID,
        owner_id: Optional[str],
    ) -> TranscriptionResult:
        """
        Run upload → transcribe → grade → store for one recording.

        Workflow Steps:
            1. Resolve the storage reference to bytes
            2. Transcribe
            3. Grade the transcript
            4. Measure elapsed time
            5. Persist the record under the caller's identity
            6. Return the result

        Raises:
            NotFoundError: reference unknown or not the caller's
            UpstreamServiceError: transcription or grading endpoint failed
            EmptyTranscriptError: transcription produced no text
            DatabaseError: the record could not be saved
        """
        start_time = time.perf_counter()

        # ── Step 1: Load audio ────────────────────────────────────────────
        blob, audio = await storage_service.read_audio(db, storage_id, owner_id)
        logger.info("Pipeline started for storage_id=%s (%d bytes)", storage_id, len(audio))

        # ── Step 2: Transcribe ────────────────────────────────────────────
        transcript = await openai_service.transcribe(audio, content_type=blob.content_type)
        if not transcript:
            raise EmptyTranscriptError(context={"storage_id": str(storage_id)})

        # ── Step 3: Grade ─────────────────────────────────────────────────
        report = await openai_service.grade(transcript)

        # ── Step 4: Elapsed time ──────────────────────────────────────────
        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        # ── Step 5: Persist ───────────────────────────────────────────────
        record = await record_service.create(
            db,
            RecordFields(
                original_text=transcript,
                grammar_score=report.score,
                feedback=report.feedback,
                issues=report.issues,
                audio_ref=blob.id,
                processing_time_ms=elapsed_ms,
            ),
            owner_id,
        )

        logger.info(
            "Pipeline finished for storage_id=%s in %dms (record=%s)",
            storage_id,
            elapsed_ms,
            record.id,
        )

        # ── Step 6: Respond ───────────────────────────────────────────────
        return to_result(record)


pipeline_service = PipelineService()
