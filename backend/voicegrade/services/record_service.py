"""
VoiceGrade Backend - Record Service (Persistence Layer)
=========================================================

What:  Creates and reads transcription records.
How:   Async SQLAlchemy on the request's session; flushes so the caller gets
       the generated id and timestamp before the request commits.
Who:   PipelineService (create) and the history routes (list, get).

There is no update or delete operation: records are immutable
and retention is unbounded.

Query plan (list_recent):
    SELECT * FROM transcriptions WHERE owner_id = :owner
    ORDER BY created_at DESC LIMIT :limit
    → idx_transcriptions_owner_created
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from voicegrade.config import settings
from voicegrade.exceptions import DatabaseError, NotFoundError
from voicegrade.models.transcription import Transcription

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 10


@dataclass
class RecordFields:
    """Everything the pipeline hands over for a new record."""
    original_text: str
    grammar_score: float
    feedback: str
    audio_ref: uuid.UUID
    processing_time_ms: int
    issues: List[str] = field(default_factory=list)


class RecordService:
    """Stateless; each call receives the request's database session."""

    async def create(
        self,
        db: AsyncSession,
        fields: RecordFields,
        owner_id: Optional[str],
    ) -> Transcription:
        """
        Insert a new immutable record owned by `owner_id` (None = anonymous).

        Grading fields arrive already sanitized by the provider's fallback
        policy; only database failures raise.

        Raises:
            DatabaseError: insert failed.
        """
        record = Transcription(
            owner_id=owner_id,
            original_text=fields.original_text,
            grammar_score=fields.grammar_score,
            feedback=fields.feedback,
            issues=list(fields.issues),
            audio_ref=fields.audio_ref,
            processing_time_ms=max(int(fields.processing_time_ms), 0),
        )
        try:
            db.add(record)
            await db.flush()
        except Exception as e:
            logger.error("Database error creating transcription: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the analysis. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Transcription %s created (score=%s)", record.id, record.grammar_score)
        return record

    async def list_recent(
        self,
        db: AsyncSession,
        owner_id: Optional[str],
        limit: Optional[int] = None,
    ) -> List[Transcription]:
        """
        Most recent records for `owner_id`, newest first.

        Args:
            limit: defaults to HISTORY_LIMIT; clamped into 1..10.

        Returns:
            At most 10 records. An anonymous caller gets [] without a query.
        """
        if owner_id is None:
            return []

        requested = settings.history_limit if limit is None else limit
        page_size = max(1, min(requested, MAX_HISTORY_LIMIT))
        try:
            result = await db.execute(
                select(Transcription)
                .where(Transcription.owner_id == owner_id)
                .order_by(desc(Transcription.created_at), desc(Transcription.id))
                .limit(page_size)
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing transcriptions: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve your history. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_record(
        self,
        db: AsyncSession,
        record_id: uuid.UUID,
        owner_id: Optional[str],
    ) -> Transcription:
        """
        A single record owned by the caller.

        Raises:
            NotFoundError: missing, anonymous caller, or owned by someone else.
            DatabaseError: query failed.
        """
        if owner_id is None:
            raise NotFoundError(resource="transcription", resource_id=str(record_id))

        try:
            result = await db.execute(
                select(Transcription).where(
                    Transcription.id == record_id,
                    Transcription.owner_id == owner_id,
                )
            )
            record = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error fetching transcription %s: %s", record_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the transcription. Please try again.",
                context={"record_id": str(record_id)},
            )

        if record is None:
            raise NotFoundError(resource="transcription", resource_id=str(record_id))
        return record


record_service = RecordService()
