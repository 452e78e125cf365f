"""
VoiceGrade Client - Recorder
==============================

What:  Captures encoded audio from a device into one blob.
How:   start() acquires the AudioSource with echo cancellation and noise
       suppression on, then a background task pulls one encoded chunk every
       `chunk_interval` seconds. stop() flushes a final chunk, releases the
       device and concatenates the chunks.

States:
    idle ──start()──▶ recording ──stop()──▶ idle

Only one recording may be active per Recorder. The device is released on
stop() whether or not capture failed.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import aiofiles

from voicegrade.exceptions import DeviceUnavailableError, RecorderBusyError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "audio/webm;codecs=opus"
DEFAULT_CHUNK_INTERVAL = 1.0


class AudioSource(ABC):
    """A capture device producing already-encoded audio chunks."""

    @abstractmethod
    async def open(self, echo_cancellation: bool = True, noise_suppression: bool = True) -> None:
        """Acquire the device. Raises DeviceUnavailableError when it cannot."""

    @abstractmethod
    async def read_chunk(self) -> bytes:
        """Encoded bytes captured since the last call; b"" when none."""

    @abstractmethod
    async def close(self) -> None:
        """Release the device. Must be safe to call more than once."""


class FileAudioSource(AudioSource):
    """Replays a pre-encoded audio file in fixed-size chunks."""

    def __init__(self, path: str, chunk_size: int = 16_000) -> None:
        self.path = path
        self.chunk_size = chunk_size
        self._file = None

    async def open(self, echo_cancellation: bool = True, noise_suppression: bool = True) -> None:
        try:
            self._file = await aiofiles.open(self.path, "rb")
        except OSError as e:
            raise DeviceUnavailableError(context={"path": self.path, "os_error": str(e)})
        logger.debug(
            "Opened %s (echo_cancellation=%s, noise_suppression=%s)",
            self.path,
            echo_cancellation,
            noise_suppression,
        )

    async def read_chunk(self) -> bytes:
        if self._file is None:
            return b""
        return await self._file.read(self.chunk_size)

    async def close(self) -> None:
        if self._file is not None:
            await self._file.close()
            self._file = None


@dataclass
class RecordedAudio:
    """The finished recording."""
    data: bytes
    mime_type: str
    chunk_count: int
    duration_seconds: float

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class Recorder:
    """Buffers chunks from an AudioSource between start() and stop()."""

    def __init__(
        self,
        source: AudioSource,
        chunk_interval: float = DEFAULT_CHUNK_INTERVAL,
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> None:
        self.source = source
        self.chunk_interval = chunk_interval
        self.mime_type = mime_type
        self._chunks: List[bytes] = []
        self._capture_task: Optional[asyncio.Task] = None
        self._started_at: Optional[float] = None

    @property
    def is_recording(self) -> bool:
        return self._capture_task is not None

    @property
    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    async def start(self) -> None:
        """
        Acquire the device and begin buffering.

        Raises:
            RecorderBusyError: a recording is already active
            DeviceUnavailableError: the device could not be acquired
        """
        if self.is_recording:
            raise RecorderBusyError()

        try:
            await self.source.open(echo_cancellation=True, noise_suppression=True)
        except Exception:
            await self.source.close()
            raise

        self._chunks = []
        self._started_at = time.monotonic()
        self._capture_task = asyncio.create_task(self._capture_loop())
        logger.info("Recording started (%s, %.1fs chunks)", self.mime_type, self.chunk_interval)

    async def _capture_loop(self) -> None:
        while True:
            await asyncio.sleep(self.chunk_interval)
            await self._collect()

    async def _collect(self) -> None:
        chunk = await self.source.read_chunk()
        if chunk:
            self._chunks.append(chunk)

    async def stop(self) -> RecordedAudio:
        """
        Stop capture, release the device and return the recording.

        Re-raises whatever made capture fail, after the device is released.
        """
        if self._capture_task is None:
            raise RuntimeError("No recording in progress")

        task, self._capture_task = self._capture_task, None
        duration = self.elapsed_seconds
        try:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            await self._collect()
        finally:
            await self.source.close()
            self._started_at = None

        audio = RecordedAudio(
            data=b"".join(self._chunks),
            mime_type=self.mime_type,
            chunk_count=len(self._chunks),
            duration_seconds=duration,
        )
        self._chunks = []
        logger.info(
            "Recording stopped: %d chunks, %d bytes, %.1fs",
            audio.chunk_count,
            audio.size_bytes,
            audio.duration_seconds,
        )
        return audio
