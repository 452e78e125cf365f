"""
VoiceGrade Client - Backend API Client
========================================

What:  Async wrapper around the backend's HTTP API.
How:   One httpx.AsyncClient per instance. Replies are parsed into the same
       pydantic schemas the server responds with; failures become
       ApiRequestError carrying the server's `message` when there is one.
Who:   Uploader and RecordingSession, or any script driving the API.
"""

import logging
import uuid
from typing import Any, List, Optional

import httpx

from voicegrade.exceptions import ApiRequestError
from voicegrade.schemas.transcription import (
    TranscriptionRecord,
    TranscriptionResult,
    UploadResponse,
    UploadTargetResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY_HEADER = "X-User-ID"


class VoiceGradeClient:
    """
    Usage:
        async with VoiceGradeClient("http://localhost:8000", user_id="u-1") as client:
            target = await client.generate_upload_url()
            storage_id = await client.upload_audio(target.upload_url, data, "audio/webm")
            result = await client.transcribe_and_rate(storage_id)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        user_id: Optional[str] = None,
        identity_header: str = DEFAULT_IDENTITY_HEADER,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            base_url:        Backend root URL.
            user_id:         Sent as the identity header when set.
            identity_header: Header name the backend reads the identity from.
            timeout:         Seconds; None waits indefinitely, like the pipeline.
            transport:       httpx transport; tests pass an ASGITransport.
        """
        headers = {identity_header: user_id} if user_id else {}
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "VoiceGradeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request and enforce a 2xx answer.

        Raises:
            ApiRequestError: connection, timeout, transport or HTTP status failure.
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.ConnectError:
            raise ApiRequestError(f"Backend at {self.base_url} is not reachable.") from None
        except httpx.TimeoutException:
            raise ApiRequestError("Request timed out.") from None
        except httpx.HTTPError as exc:
            raise ApiRequestError(f"Network error: {exc}") from None

        if response.is_success:
            return response

        message = response.text or f"HTTP {response.status_code}"
        error_code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or str(body.get("detail") or message)
            error_code = body.get("error")

        logger.warning("%s %s failed with %d: %s", method, url, response.status_code, message)
        raise ApiRequestError(message, status_code=response.status_code, error_code=error_code)

    # -- storage --

    async def generate_upload_url(self) -> UploadTargetResponse:
        response = await self._request("POST", "/api/uploads")
        return UploadTargetResponse.model_validate(response.json())

    async def upload_audio(self, upload_url: str, data: bytes, content_type: str) -> uuid.UUID:
        """POST raw audio to an upload URL; returns the storage reference."""
        response = await self._request(
            "POST",
            upload_url,
            content=data,
            headers={"Content-Type": content_type},
        )
        return UploadResponse.model_validate(response.json()).storage_id

    # -- pipeline --

    async def transcribe_and_rate(self, storage_id: uuid.UUID) -> TranscriptionResult:
        response = await self._request(
            "POST",
            "/api/transcriptions",
            json={"storageId": str(storage_id)},
        )
        return TranscriptionResult.model_validate(response.json())

    # -- history --

    async def recent_transcriptions(self) -> List[TranscriptionRecord]:
        response = await self._request("GET", "/api/transcriptions")
        return [TranscriptionRecord.model_validate(item) for item in response.json()]

    async def get_transcription(self, record_id: uuid.UUID) -> TranscriptionRecord:
        response = await self._request("GET", f"/api/transcriptions/{record_id}")
        return TranscriptionRecord.model_validate(response.json())

    # -- health --

    async def health(self) -> dict:
        return (await self._request("GET", "/health")).json()
