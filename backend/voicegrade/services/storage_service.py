"""
VoiceGrade Backend - Audio Storage Service
============================================

What:  The storage collaborator: issues single-use upload URLs, accepts the
       audio write, and resolves storage references back to bytes.
How:   Upload slots and blob metadata live in the database; the audio itself
       is written with aiofiles into date-organized directories under
       STORAGE_ROOT with UUID filenames.
Who:   Upload routes (issue + write), PipelineService (read), file route
       (playback).

Upload lifecycle:
    1. generate_upload_url() → UploadTarget row, token returned to client
    2. store_upload(token, ...) → token checked (exists, unused, unexpired),
       size and content type checked, file written, AudioBlob row inserted,
       token marked consumed
    3. read_audio(storage_id, owner) → bytes, only for the uploading identity

Directory Structure:
    storage/
    └── 2024/
        └── 01/
            └── 15/
                └── a1b2c3d4-....webm
"""

import logging
import os
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from voicegrade.config import settings
from voicegrade.exceptions import (
    FileStorageError,
    NotFoundError,
    RecordingTooShortError,
    UploadTargetError,
    ValidationError,
)
from voicegrade.models.storage import AudioBlob, UploadTarget

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "audio/webm"

# Base media type → file extension used on disk
AUDIO_EXTENSIONS = {
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mp4": ".m4a",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
}


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StorageService:
    """
    Manages upload slots and stored audio blobs.

    Stateless apart from the storage root; every call receives the request's
    database session.
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("StorageService initialized with storage_root=%s", self.storage_root)

    # ── Upload slots ──────────────────────────────────────────────────────

    async def generate_upload_url(
        self,
        db: AsyncSession,
        owner_id: Optional[str],
    ) -> UploadTarget:
        """
        Issue a single-use upload slot bound to the caller.

        Returns the UploadTarget row; the route turns its token into a URL.
        """
        target = UploadTarget(
            token=secrets.token_urlsafe(32),
            owner_id=owner_id,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=settings.upload_url_ttl),
        )
        db.add(target)
        await db.flush()
        logger.info(
            "Upload URL issued (owner=%s, expires_at=%s)",
            "yes" if owner_id else "anonymous",
            target.expires_at.isoformat(),
        )
        return target

    async def _claim_target(self, db: AsyncSession, token: str) -> UploadTarget:
        """Load a writable upload slot or raise UploadTargetError."""
        result = await db.execute(select(UploadTarget).where(UploadTarget.token == token))
        target = result.scalar_one_or_none()

        if target is None:
            raise UploadTargetError(context={"reason": "unknown"})
        if target.consumed_at is not None:
            raise UploadTargetError(
                message="Upload URL has already been used. Request a new one.",
                context={"reason": "consumed"},
            )
        if _as_utc(target.expires_at) <= datetime.now(timezone.utc):
            raise UploadTargetError(
                message="Upload URL has expired. Request a new one.",
                context={"reason": "expired"},
            )
        return target

    async def _consume_target(self, db: AsyncSession, target: UploadTarget) -> None:
        """Mark the slot used, unless another writer got there first."""
        now = datetime.now(timezone.utc)
        table = UploadTarget.__table__
        result = await db.execute(
            update(table)
            .where(table.c.token == target.token, table.c.consumed_at.is_(None))
            .values(consumed_at=now)
        )
        if result.rowcount != 1:
            logger.warning("Upload URL claimed by a concurrent write; rejecting")
            raise UploadTargetError(
                message="Upload URL has already been used. Request a new one.",
                context={"reason": "consumed"},
            )
        set_committed_value(target, "consumed_at", now)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_content_type(self, content_type: Optional[str]) -> Tuple[str, str]:
        """
        Normalize the declared content type and pick a file extension.

        Parameters such as `;codecs=opus` are dropped. A missing header is
        treated as audio/webm, the browser recorder's format.

        Returns:
            (base_media_type, extension)

        Raises:
            ValidationError for non-audio types.
        """
        base = (content_type or DEFAULT_CONTENT_TYPE).split(";", 1)[0].strip().lower()
        if not base.startswith("audio/"):
            raise ValidationError(
                message=f"Content type '{base}' is not an audio type.",
                field="body",
                context={"content_type": base},
            )
        return base, AUDIO_EXTENSIONS.get(base, ".bin")

    def validate_size(self, actual_size: int) -> None:
        """
        Reject empty, near-zero-length and oversized recordings.

        Raises:
            RecordingTooShortError below MIN_AUDIO_BYTES
            ValidationError above MAX_AUDIO_SIZE
        """
        if actual_size == 0:
            raise RecordingTooShortError(message="No audio data recorded", size_bytes=0)
        if actual_size < settings.min_audio_bytes:
            raise RecordingTooShortError(size_bytes=actual_size)

        if actual_size > settings.max_audio_size:
            max_mb = settings.max_audio_size / (1024 * 1024)
            raise ValidationError(
                message=f"Recording ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="body",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    # ── File I/O ──────────────────────────────────────────────────────────

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """Create a YYYY/MM/DD/<uuid><ext> path. Returns (absolute, relative)."""
        now = datetime.now(timezone.utc)
        relative_path = f"{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def write_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Write audio bytes to disk.

        Returns:
            (absolute_path, relative_path)

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store audio at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded audio. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

        logger.info("Audio stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    async def cleanup_file(self, file_path: str) -> None:
        """
        Remove a file written for a write that could not be recorded.

        Best-effort: failures are logged, never raised.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    def resolve_path(self, blob: AudioBlob) -> Path:
        """Absolute path of a blob; refuses paths escaping the storage root."""
        path = (self.storage_root / blob.relative_path).resolve()
        if not path.is_relative_to(self.storage_root):
            raise NotFoundError(resource="audio", resource_id=str(blob.id))
        return path

    # ── Public workflow ───────────────────────────────────────────────────

    async def store_upload(
        self,
        db: AsyncSession,
        token: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> AudioBlob:
        """
        Accept the one write allowed for an upload slot.

        Validation order:
            1. Token (unknown / used / expired)
            2. Content type
            3. Size (too short, too large)
            4. Write file, consume token, insert blob

        The token is consumed with a conditional UPDATE, so of two writers
        racing on one URL only the first to claim it stores a blob.

        Returns:
            The new AudioBlob; its id is the storage reference.
        """
        target = await self._claim_target(db, token)
        media_type, extension = self.validate_content_type(content_type)
        self.validate_size(len(content))

        absolute_path, relative_path = await self.write_file(content, extension)
        try:
            await self._consume_target(db, target)
            blob = AudioBlob(
                owner_id=target.owner_id,
                relative_path=relative_path,
                content_type=media_type,
                size_bytes=len(content),
            )
            db.add(blob)
            await db.flush()
        except Exception:
            await self.cleanup_file(absolute_path)
            raise

        logger.info("Upload accepted: storage_id=%s (%d bytes)", blob.id, blob.size_bytes)
        return blob

    async def get_blob(
        self,
        db: AsyncSession,
        storage_id: uuid.UUID,
        owner_id: Optional[str],
    ) -> AudioBlob:
        """
        Look up a blob visible to the caller.

        Blobs bound to an identity are only visible to that identity;
        anonymous blobs are visible to anyone holding the reference.

        Raises:
            NotFoundError when missing or owned by someone else.
        """
        result = await db.execute(select(AudioBlob).where(AudioBlob.id == storage_id))
        blob = result.scalar_one_or_none()

        if blob is None or (blob.owner_id is not None and blob.owner_id != owner_id):
            raise NotFoundError(resource="audio", resource_id=str(storage_id))
        return blob

    async def read_audio(
        self,
        db: AsyncSession,
        storage_id: uuid.UUID,
        owner_id: Optional[str],
    ) -> Tuple[AudioBlob, bytes]:
        """
        Resolve a storage reference to raw bytes.

        Raises:
            NotFoundError: no such blob, not the caller's, or file gone from disk
            FileStorageError: the file exists but cannot be read
        """
        blob = await self.get_blob(db, storage_id, owner_id)
        path = self.resolve_path(blob)

        if not path.exists():
            logger.error("Blob %s has no file at %s", blob.id, blob.relative_path)
            raise NotFoundError(resource="audio", resource_id=str(storage_id))

        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except OSError as e:
            raise FileStorageError(
                message="Failed to read stored audio. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            )
        return blob, data


storage_service = StorageService()
