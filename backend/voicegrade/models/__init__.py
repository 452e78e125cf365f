"""ORM models. Importing this package registers every table with Base.metadata."""

from voicegrade.models.storage import AudioBlob, UploadTarget
from voicegrade.models.transcription import Transcription

__all__ = ["AudioBlob", "UploadTarget", "Transcription"]
