"""
VoiceGrade Backend - Storage SQLAlchemy Models
================================================

What:  Bookkeeping for the storage collaborator.
       - UploadTarget: a single-use, expiring write slot handed to the client.
       - AudioBlob: an uploaded recording; its id is the opaque storage
         reference passed to the pipeline.

Ownership:
    Both rows carry the identity that requested the upload URL. The pipeline
    and the file endpoint refuse blobs owned by somebody else, so a storage
    reference is only usable by the identity that uploaded it.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from voicegrade.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadTarget(Base):
    """
    A single-use upload slot.

    States:
        issued   → consumed_at IS NULL and expires_at in the future
        consumed → consumed_at set by the first successful write
        expired  → expires_at in the past; rejected even if never used
    """

    __tablename__ = "upload_targets"

    token: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="URL-safe random token embedded in the upload URL",
    )
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Identity that requested the upload URL",
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    consumed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<UploadTarget(token={self.token[:8]}..., consumed={self.consumed_at is not None})>"


class AudioBlob(Base):
    """An uploaded audio file stored under STORAGE_ROOT."""

    __tablename__ = "audio_blobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Opaque storage reference",
    )
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Identity bound at upload time",
    )
    # Format: YYYY/MM/DD/<uuid>.<ext>
    relative_path: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Path relative to the storage root",
    )
    content_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="audio/webm",
    )
    size_bytes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<AudioBlob(id={self.id}, size={self.size_bytes}, path='{self.relative_path}')>"
