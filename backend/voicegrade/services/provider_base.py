"""
VoiceGrade Backend - Abstract Speech Provider Interface
=========================================================

What:  Contract for the two external capabilities the pipeline needs:
       speech-to-text and grammar grading.
How:   Concrete providers inherit from SpeechProvider. OpenAIService talks to
       any OpenAI-compatible base URL; tests substitute mocks.
Who:   Called by PipelineService.
"""

from abc import ABC, abstractmethod

from voicegrade.schemas.upstream import GradingReport


class SpeechProvider(ABC):
    """
    Contract:
        - transcribe() returns the transcript text (possibly empty)
        - grade() returns a GradingReport and applies the fallback policy
          itself; only transport/HTTP failures raise
        - every failure surfaces as UpstreamServiceError; nothing is retried
    """

    @abstractmethod
    async def transcribe(self, audio: bytes, content_type: str = "audio/webm") -> str:
        """
        Convert recorded audio to text.

        Raises:
            UpstreamServiceError: non-2xx status or unreachable endpoint.
        """
        ...

    @abstractmethod
    async def grade(self, transcript: str) -> GradingReport:
        """
        Rate the grammatical correctness of a transcript.

        Returns:
            GradingReport. Unreadable replies yield GradingReport.fallback().

        Raises:
            UpstreamServiceError: non-2xx status or unreachable endpoint.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check; never raises."""
        ...
