"""
VoiceGrade Client - Recording Session
=======================================

What:  The state machine behind a record button.
How:   Wires Recorder → Uploader → pipeline call, one action at a time.

State Machine:
    ┌──────┐ start_recording() ┌───────────┐ stop_recording() ┌────────────┐
    │ idle │──────────────────▶│ recording │─────────────────▶│ processing │
    └──────┘                   └───────────┘                  └────────────┘
        ▲                                                            │
        └──────────────────── success or failure ────────────────────┘

While recording, a timer task bumps `recording_time` once per second.
Recordings that are empty or shorter than `min_audio_bytes` stop at the
length check: nothing is uploaded and no pipeline call is made.
"""

import asyncio
import enum
import logging
from typing import Callable, Optional

from voicegrade.client.api_client import VoiceGradeClient
from voicegrade.client.recorder import RecordedAudio, Recorder
from voicegrade.client.uploader import Uploader
from voicegrade.exceptions import RecorderBusyError, RecordingTooShortError, VoiceGradeError
from voicegrade.presentation import format_recording_time
from voicegrade.schemas.transcription import TranscriptionResult

logger = logging.getLogger(__name__)

MIN_AUDIO_BYTES = 1000


class SessionState(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"


class RecordingSession:
    """One user's record → analyze loop."""

    def __init__(
        self,
        client: VoiceGradeClient,
        recorder: Recorder,
        uploader: Optional[Uploader] = None,
        min_audio_bytes: int = MIN_AUDIO_BYTES,
        tick_interval: float = 1.0,
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.client = client
        self.recorder = recorder
        self.uploader = uploader or Uploader(client)
        self.min_audio_bytes = min_audio_bytes
        self.tick_interval = tick_interval
        self.on_tick = on_tick

        self.state = SessionState.IDLE
        self.recording_time = 0
        self.last_result: Optional[TranscriptionResult] = None
        self.last_error: Optional[str] = None
        self._timer_task: Optional[asyncio.Task] = None

    @property
    def display_time(self) -> str:
        """Elapsed recording time as m:ss."""
        return format_recording_time(self.recording_time)

    async def start_recording(self) -> None:
        """
        Raises:
            RecorderBusyError: not idle
            DeviceUnavailableError: microphone missing or denied
        """
        if self.state is not SessionState.IDLE:
            raise RecorderBusyError()

        self.last_error = None
        try:
            await self.recorder.start()
        except VoiceGradeError as e:
            self.last_error = e.message
            raise

        self.recording_time = 0
        self.state = SessionState.RECORDING
        self._timer_task = asyncio.create_task(self._tick())

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self.recording_time += 1
            if self.on_tick is not None:
                self.on_tick(self.recording_time)

    async def _stop_timer(self) -> None:
        if self._timer_task is None:
            return
        task, self._timer_task = self._timer_task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _check_length(self, audio: RecordedAudio) -> None:
        if audio.chunk_count == 0 or audio.size_bytes == 0:
            raise RecordingTooShortError(message="No audio data recorded", size_bytes=0)
        if audio.size_bytes < self.min_audio_bytes:
            raise RecordingTooShortError(size_bytes=audio.size_bytes)

    async def stop_recording(self) -> TranscriptionResult:
        """
        Stop, upload, transcribe and grade.

        The session is back in idle when this returns or raises.

        Raises:
            RecordingTooShortError: empty or too short; nothing was sent
            UploadError: the storage write failed; no pipeline call was made
            ApiRequestError: the pipeline call failed
        """
        if self.state is not SessionState.RECORDING:
            raise RuntimeError("No recording in progress")

        await self._stop_timer()
        self.state = SessionState.PROCESSING
        try:
            audio = await self.recorder.stop()
            self._check_length(audio)

            storage_id = await self.uploader.upload(audio)
            result = await self.client.transcribe_and_rate(storage_id)
            self.last_result = result
            logger.info(
                "Analysis complete: score=%s in %dms",
                result.grammar_score,
                result.processing_time,
            )
            return result
        except VoiceGradeError as e:
            self.last_error = e.message
            logger.warning("Recording session failed: %s", e.message)
            raise
        finally:
            self.state = SessionState.IDLE
