"""
VoiceGrade - History View Presentation
========================================

What:  Turns stored records into display-ready entries.
How:   Pure functions; labels and tones are recomputed from the numeric score
       on every read and never stored.

Score bands:
    >= 9  Excellent
    >= 8  Very Good
    >= 7  Good
    >= 6  Fair
    >= 4  Needs Improvement
    else  Poor
"""

from typing import Iterable, List

from voicegrade.models.transcription import Transcription
from voicegrade.schemas.transcription import TranscriptionRecord, TranscriptionResult

_LABEL_BANDS = (
    (9, "Excellent"),
    (8, "Very Good"),
    (7, "Good"),
    (6, "Fair"),
    (4, "Needs Improvement"),
)


def score_label(score: float) -> str:
    """Qualitative band for a grammar score."""
    for threshold, label in _LABEL_BANDS:
        if score >= threshold:
            return label
    return "Poor"


def score_tone(score: float) -> str:
    """Colour band used by the UI: good (>= 8), fair (>= 6), poor."""
    if score >= 8:
        return "good"
    if score >= 6:
        return "fair"
    return "poor"


def format_processing_time(milliseconds: int) -> str:
    """1234 → '1.2s'"""
    return f"{milliseconds / 1000:.1f}s"


def format_recording_time(seconds: int) -> str:
    """Elapsed recording time as m:ss, e.g. 65 → '1:05'."""
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes}:{secs:02d}"


def to_result(record: Transcription) -> TranscriptionResult:
    """Pipeline reply for a freshly created record."""
    return TranscriptionResult(
        id=record.id,
        original_text=record.original_text,
        grammar_score=record.grammar_score,
        feedback=record.feedback,
        issues=list(record.issues or []),
        processing_time=record.processing_time_ms,
        score_label=score_label(record.grammar_score),
    )


def to_history_entry(record: Transcription) -> TranscriptionRecord:
    return TranscriptionRecord(
        id=record.id,
        original_text=record.original_text,
        grammar_score=record.grammar_score,
        feedback=record.feedback,
        issues=list(record.issues or []),
        processing_time=record.processing_time_ms,
        score_label=score_label(record.grammar_score),
        score_tone=score_tone(record.grammar_score),
        creation_time=record.created_at,
    )


def build_history(records: Iterable[Transcription]) -> List[TranscriptionRecord]:
    """
    Map records to history entries, preserving order.

    The list read already returns newest first; no re-sorting happens here.
    """
    return [to_history_entry(record) for record in records]
