"""
VoiceGrade Backend - OpenAI-Compatible Speech Provider
========================================================

What:  Concrete SpeechProvider calling an OpenAI-compatible HTTP API:
       POST {base}/audio/transcriptions and POST {base}/chat/completions.
How:   One shared httpx.AsyncClient with bearer auth. Each call has a typed
       reply model (schemas.upstream); any non-2xx answer becomes an
       UpstreamServiceError carrying the status code and body.
Who:   Instantiated once at import; called by PipelineService.

Failure policy:
    - No retries and no backoff: a failed call aborts the pipeline run.
    - No local timeout unless UPSTREAM_TIMEOUT is set.
    - A 2xx grading reply that cannot be read as a report falls back to a
      fixed report instead of failing.
"""

import json
import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as SchemaError

from voicegrade.config import settings
from voicegrade.exceptions import UpstreamServiceError
from voicegrade.schemas.upstream import (
    ChatCompletionReply,
    GradingReport,
    TranscriptionReply,
)
from voicegrade.services.provider_base import SpeechProvider

logger = logging.getLogger(__name__)


GRADING_SYSTEM_PROMPT = (
    "You are a grammar assessment assistant. Analyze the given text for grammatical "
    "correctness and provide a rating from 1-10 (where 10 is perfect grammar) along with "
    "specific feedback. Format your response as JSON with 'score' (number), 'feedback' "
    "(string), and 'issues' (array of strings). Be constructive and educational in your "
    "feedback."
)

_FILENAMES = {
    "audio/webm": "audio.webm",
    "audio/ogg": "audio.ogg",
    "audio/mp4": "audio.m4a",
    "audio/mpeg": "audio.mp3",
    "audio/wav": "audio.wav",
    "audio/x-wav": "audio.wav",
}


def _strip_code_fence(content: str) -> str:
    """Unwrap ```json ... ``` blocks some models put around JSON."""
    if not content.startswith("```"):
        return content
    lines = content.splitlines()
    body = lines[1:]
    if body and body[-1].strip().startswith("```"):
        body = body[:-1]
    return "\n".join(body).strip()


def parse_grading_content(content: Optional[str]) -> GradingReport:
    """
    Apply the fallback policy to the grader's message content.

        None / blank        → GradingReport.empty_reply()  (score 5, "Unable to analyze")
        not JSON / invalid  → GradingReport.fallback()     (score 5, formatting error)
        valid report        → the report
    """
    if content is None or not content.strip():
        return GradingReport.empty_reply()

    payload = _strip_code_fence(content.strip())
    try:
        return GradingReport.model_validate(json.loads(payload))
    except (json.JSONDecodeError, SchemaError) as e:
        logger.warning(
            "Grading reply was not a valid report (%s); using fallback",
            type(e).__name__,
        )
        return GradingReport.fallback()


class OpenAIService(SpeechProvider):
    """
    OpenAI-compatible implementation of the speech provider.

    Credentials come from settings.resolve_credentials() unless passed in:
    the vendor key wins, else the platform key/base pair.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key:   Override the resolved API key.
            base_url:  Override the resolved base URL.
            transport: httpx transport; tests pass an httpx.MockTransport.
        """
        resolved_key, resolved_base = settings.resolve_credentials()
        self.api_key = api_key if api_key is not None else resolved_key
        self.base_url = (base_url if base_url is not None else resolved_base).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "OpenAIService initialized with base_url=%s, transcription_model=%s, grading_model=%s",
            self.base_url or "<unset>",
            settings.transcription_model,
            settings.grading_model,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=httpx.Timeout(settings.upstream_timeout),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the shared HTTP client. Called on application shutdown."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, service: str, path: str, call_id: str, **kwargs: Any) -> httpx.Response:
        """
        POST to the provider and enforce the 2xx contract.

        Raises:
            UpstreamServiceError for transport errors (status None) and any
            non-2xx response (status and body attached).
        """
        start_time = time.perf_counter()
        try:
            response = await self._get_client().post(path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("[%s] %s request failed: %s", call_id, service, str(e))
            raise UpstreamServiceError(
                service=service,
                body=str(e),
                context={"call_id": call_id, "error_type": type(e).__name__},
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        if not response.is_success:
            logger.error(
                "[%s] %s returned %d after %.0fms: %s",
                call_id,
                service,
                response.status_code,
                duration_ms,
                response.text[:500],
            )
            raise UpstreamServiceError(
                service=service,
                status_code=response.status_code,
                body=response.text,
                context={"call_id": call_id},
            )

        logger.info("[%s] %s completed in %.0fms", call_id, service, duration_ms)
        return response

    async def transcribe(self, audio: bytes, content_type: str = "audio/webm") -> str:
        """
        Send audio to {base}/audio/transcriptions.

        Multipart fields: file, model (TRANSCRIPTION_MODEL), language
        (TRANSCRIPTION_LANGUAGE).

        Returns:
            The transcript, stripped. May be empty.
        """
        call_id = str(uuid.uuid4())[:8]
        filename = _FILENAMES.get(content_type, "audio.webm")
        logger.info("[%s] Transcribing %d bytes (%s)", call_id, len(audio), content_type)

        response = await self._post(
            "transcription",
            "/audio/transcriptions",
            call_id,
            files={"file": (filename, audio, content_type)},
            data={
                "model": settings.transcription_model,
                "language": settings.transcription_language,
            },
        )

        try:
            reply = TranscriptionReply.model_validate(response.json())
        except (ValueError, SchemaError):
            # json.JSONDecodeError is a ValueError
            logger.error("[%s] Transcription reply is not the expected JSON", call_id)
            raise UpstreamServiceError(
                service="transcription",
                status_code=response.status_code,
                body=response.text,
                context={"call_id": call_id, "reason": "unreadable_reply"},
            )

        text = reply.text.strip()
        logger.info("[%s] Transcript has %d chars", call_id, len(text))
        return text

    def build_grading_request(self, transcript: str) -> Dict[str, Any]:
        """JSON body for the chat completion call."""
        return {
            "model": settings.grading_model,
            "messages": [
                {"role": "system", "content": GRADING_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": f'Please rate the grammatical correctness of this text: "{transcript}"',
                },
            ],
            "temperature": settings.grading_temperature,
        }

    async def grade(self, transcript: str) -> GradingReport:
        """
        Ask {base}/chat/completions to grade the transcript.

        Returns:
            The parsed report, or a fallback report when the reply content
            is empty, not JSON, or not shaped like a report.
        """
        call_id = str(uuid.uuid4())[:8]
        response = await self._post(
            "grading",
            "/chat/completions",
            call_id,
            json=self.build_grading_request(transcript),
        )

        try:
            reply = ChatCompletionReply.model_validate(response.json())
        except (ValueError, SchemaError):
            logger.warning("[%s] Chat completion envelope unreadable; using fallback", call_id)
            return GradingReport.fallback()

        report = parse_grading_content(reply.first_content)
        logger.info("[%s] Graded: score=%s, %d issues", call_id, report.score, len(report.issues))
        return report

    async def health_check(self) -> bool:
        """GET {base}/models; True on a 2xx answer."""
        if not self.is_configured:
            return False
        try:
            response = await self._get_client().get("/models")
        except httpx.HTTPError as e:
            logger.warning("Speech provider health check failed: %s", str(e))
            return False
        return response.is_success


openai_service = OpenAIService()
