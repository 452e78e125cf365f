"""
VoiceGrade Client
==================

What:  Python side of the recording flow: capture, upload, submit.

Components:
    - VoiceGradeClient:  async HTTP client for the backend API
    - Recorder:          buffers encoded chunks from an AudioSource
    - Uploader:          upload URL request + single audio write
    - RecordingSession:  idle → recording → processing → idle
"""

from voicegrade.client.api_client import VoiceGradeClient
from voicegrade.client.recorder import AudioSource, FileAudioSource, RecordedAudio, Recorder
from voicegrade.client.session import RecordingSession, SessionState
from voicegrade.client.uploader import Uploader

__all__ = [
    "AudioSource",
    "FileAudioSource",
    "RecordedAudio",
    "Recorder",
    "RecordingSession",
    "SessionState",
    "Uploader",
    "VoiceGradeClient",
]
