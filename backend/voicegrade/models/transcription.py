"""
VoiceGrade Backend - Transcription SQLAlchemy Model
=====================================================

What:  ORM model for the `transcriptions` table: one row per completed
       transcribe-and-grade run.
Who:   Written by RecordService.create (the pipeline's last step) and read by
       the history endpoints; Alembic reads it for migrations.

Table Design:
    - owner_id: identity of the caller at creation; NULL for anonymous runs.
      Set once and never reassigned.
    - issues: JSON array so the ordered findings list survives round trips on
      both PostgreSQL and SQLite.
    - audio_ref: points at the stored blob; the blob is kept for playback
      and audit even though records are never deleted.
    - No update or delete path exists anywhere in the code base.

    Index on (owner_id, created_at DESC):
        Serves the only list query, "latest N records for this user".
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from voicegrade.database import Base


class Transcription(Base):
    """
    A persisted transcription + grading result.

    Lifecycle:
        1. Created exactly once, after both upstream calls succeed
        2. Never mutated
        3. Never deleted; history reads are bounded by a fixed page size
    """

    __tablename__ = "transcriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Record identifier returned to the client",
    )

    owner_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Authenticated user that submitted the recording, if any",
    )

    original_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Transcript returned by the speech-to-text endpoint",
    )

    # Nominal range 1-10; not enforced, the grader is trusted
    grammar_score: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Grammar score from the grading model (fallback 5)",
    )

    feedback: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Free-text rationale from the grading model",
    )

    issues: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered list of short issue descriptions",
    )

    audio_ref: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("audio_blobs.id"),
        nullable=False,
        comment="Storage reference of the analysed audio",
    )

    processing_time_ms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Wall-clock milliseconds for the transcribe + grade round trip",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When this record was created (UTC)",
    )

    __table_args__ = (
        Index("idx_transcriptions_owner_created", owner_id, created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Transcription(id={self.id}, owner_id={self.owner_id!r}, "
            f"score={self.grammar_score}, created_at='{self.created_at}')>"
        )
