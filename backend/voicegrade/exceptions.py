"""
VoiceGrade - Custom Exception Hierarchy
=========================================

What:  Application-specific exceptions for every failure kind the service
       and its client can hit.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) turn the server
       side ones into JSON error responses with the right status code.
Who:   Raised by services, routes and the client package.

Exception Hierarchy:
    VoiceGradeError (base)
    ├── ValidationError              → 400 Bad Request
    │   ├── RecordingTooShortError   → 400 (empty / near-zero-length audio)
    │   └── UploadTargetError        → 400 (unknown, expired or used upload URL)
    ├── NotFoundError                → 404 Not Found
    ├── EmptyTranscriptError         → 422 (no speech in the recording)
    ├── UpstreamServiceError         → 502 Bad Gateway (non-2xx from provider)
    ├── FileStorageError             → 500 Internal Server Error
    ├── DatabaseError                → 500 Internal Server Error
    ├── RateLimitExceededError       → 429 Too Many Requests
    ├── DeviceUnavailableError       (client: microphone unavailable)
    ├── RecorderBusyError            (client: recording already active)
    ├── UploadError                  (client: storage write rejected)
    └── ApiRequestError              (client: backend returned an error)
"""

from typing import Any, Dict, Optional


class VoiceGradeError(Exception):
    """
    Base exception for all VoiceGrade errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where a handler opts in)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(VoiceGradeError):
    """
    Raised when client input fails a business rule.

    HTTP: 400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Content type 'text/plain' is not an audio type",
            "details": {"field": "body"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class RecordingTooShortError(ValidationError):
    """
    Raised when a recording is empty or below the minimum byte threshold.

    Detected before anything is submitted. The client raises it without
    touching the network; the upload endpoint raises it as a second guard.
    """

    def __init__(
        self,
        message: str = "Recording too short. Please record for at least 1 second.",
        size_bytes: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if size_bytes is not None:
            ctx["size_bytes"] = size_bytes
        super().__init__(message=message, field="audio", context=ctx)
        self.size_bytes = size_bytes


class UploadTargetError(ValidationError):
    """Raised when an upload URL is unknown, expired, or already used."""

    def __init__(
        self,
        message: str = "Upload URL is invalid or has expired. Request a new one.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field="token", context=context)


class NotFoundError(VoiceGradeError):
    """
    Raised when a requested resource does not exist or is not visible to
    the caller.

    HTTP: 404 Not Found

    Blobs and records owned by another identity are reported as missing
    so their existence is not disclosed.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class EmptyTranscriptError(VoiceGradeError):
    """
    Raised when transcription succeeds but yields no text.

    HTTP: 422 Unprocessable Entity. Grading is not attempted.
    """

    def __init__(
        self,
        message: str = "No speech was detected in the recording. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamServiceError(VoiceGradeError):
    """
    Raised when the transcription or grading endpoint fails.

    HTTP: 502 Bad Gateway

    Attributes:
        service:      "transcription" or "grading"
        status_code:  Upstream HTTP status, None for transport failures
        body:         Upstream response body text (logged, not returned)

    Never retried: the whole pipeline aborts and nothing is persisted.
    """

    def __init__(
        self,
        service: str,
        status_code: Optional[int] = None,
        body: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        if status_code is None:
            message = f"{service.capitalize()} failed: the service could not be reached"
        else:
            message = f"{service.capitalize()} failed: {status_code}"
        ctx = context or {}
        ctx["service"] = service
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.service = service
        self.status_code = status_code
        self.body = body


class FileStorageError(VoiceGradeError):
    """
    Raised when file system operations fail.

    HTTP: 500. The path and OS error stay in context for the logs.
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(VoiceGradeError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500. The message returned to the client is always generic.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(VoiceGradeError):
    """
    Raised when a caller exceeds the submission rate limit.

    HTTP: 429 with a Retry-After header.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before submitting again."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


# ══════════════════════════════════════════════════════════════════════════
# Client-side errors
# ══════════════════════════════════════════════════════════════════════════


class DeviceUnavailableError(VoiceGradeError):
    """Raised when the capture device cannot be acquired (missing or denied)."""

    def __init__(
        self,
        message: str = "Failed to start recording. Please check microphone permissions.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RecorderBusyError(VoiceGradeError):
    """Raised when a recording is started while another one is active."""

    def __init__(self, message: str = "A recording is already in progress."):
        super().__init__(message=message)


class UploadError(VoiceGradeError):
    """Raised when the storage write is rejected or cannot be performed."""

    def __init__(
        self,
        message: str = "Failed to upload audio",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class ApiRequestError(VoiceGradeError):
    """
    Raised by the client when the backend answers with an error or cannot be
    reached.

    Attributes:
        status_code: HTTP status, None for connection/timeout failures
        error_code:  Machine-readable `error` field from the response body
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            context={"status_code": status_code, "error_code": error_code},
        )
        self.status_code = status_code
        self.error_code = error_code
