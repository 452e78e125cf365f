"""
VoiceGrade Client - Uploader
==============================

Two steps per recording: ask the backend for a single-use upload URL, then
POST the blob to it. Any failure surfaces as UploadError and the caller must
not go on to transcription.
"""

import logging
import uuid

from voicegrade.client.api_client import VoiceGradeClient
from voicegrade.client.recorder import RecordedAudio
from voicegrade.exceptions import ApiRequestError, UploadError
from voicegrade.schemas.transcription import UploadTargetResponse

logger = logging.getLogger(__name__)


class Uploader:
    def __init__(self, client: VoiceGradeClient) -> None:
        self.client = client

    async def request_upload_target(self) -> UploadTargetResponse:
        try:
            return await self.client.generate_upload_url()
        except ApiRequestError as e:
            raise UploadError(
                message=f"Failed to get upload URL: {e.message}",
                status_code=e.status_code,
            )

    async def push(self, audio: RecordedAudio, target: UploadTargetResponse) -> uuid.UUID:
        """Write the blob to the target; returns the storage reference."""
        try:
            storage_id = await self.client.upload_audio(
                target.upload_url, audio.data, audio.mime_type
            )
        except ApiRequestError as e:
            raise UploadError(
                message=f"Failed to upload audio: {e.message}",
                status_code=e.status_code,
            )
        logger.info("Uploaded %d bytes as %s", audio.size_bytes, storage_id)
        return storage_id

    async def upload(self, audio: RecordedAudio) -> uuid.UUID:
        target = await self.request_upload_target()
        return await self.push(audio, target)
