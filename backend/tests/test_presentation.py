"""
VoiceGrade - History View Presentation Tests
==============================================
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from voicegrade.models.transcription import Transcription
from voicegrade.presentation import (
    build_history,
    format_processing_time,
    format_recording_time,
    score_label,
    score_tone,
    to_result,
)


@pytest.mark.parametrize(
    "score, label",
    [
        (10, "Excellent"),
        (9, "Excellent"),
        (8.5, "Very Good"),
        (8, "Very Good"),
        (7, "Good"),
        (6.9, "Fair"),
        (6, "Fair"),
        (4, "Needs Improvement"),
        (3.99, "Poor"),
        (1, "Poor"),
        (0, "Poor"),
    ],
)
def test_score_label_bands(score, label):
    assert score_label(score) == label


@pytest.mark.parametrize("score, tone", [(9, "good"), (8, "good"), (7.5, "fair"), (6, "fair"), (5, "poor")])
def test_score_tone_bands(score, tone):
    assert score_tone(score) == tone


def test_scores_outside_nominal_range_still_labelled():
    assert score_label(11) == "Excellent"
    assert score_label(-2) == "Poor"


def test_format_processing_time():
    assert format_processing_time(1234) == "1.2s"
    assert format_processing_time(0) == "0.0s"


def test_format_recording_time():
    assert format_recording_time(0) == "0:00"
    assert format_recording_time(65) == "1:05"
    assert format_recording_time(600) == "10:00"


def _record(text, score, created_at):
    return Transcription(
        id=uuid4(),
        owner_id="user-a",
        original_text=text,
        grammar_score=score,
        feedback="fb",
        issues=["one", "two"],
        audio_ref=uuid4(),
        processing_time_ms=2500,
        created_at=created_at,
    )


def test_build_history_preserves_order_and_fields():
    newer = _record("newer", 9, datetime(2026, 3, 2, tzinfo=timezone.utc))
    older = _record("older", 5, datetime(2026, 3, 1, tzinfo=timezone.utc))

    entries = build_history([newer, older])

    assert [e.original_text for e in entries] == ["newer", "older"]
    assert entries[0].score_label == "Excellent"
    assert entries[0].score_tone == "good"
    assert entries[1].score_tone == "poor"
    assert entries[0].issues == ["one", "two"]
    assert entries[0].creation_time == newer.created_at


def test_result_serializes_with_camel_case_names():
    record = _record("Hello", 7, datetime(2026, 3, 1, tzinfo=timezone.utc))
    payload = to_result(record).model_dump(by_alias=True, mode="json")

    assert payload["originalText"] == "Hello"
    assert payload["grammarScore"] == 7
    assert payload["processingTime"] == 2500
    assert payload["scoreLabel"] == "Good"
    assert payload["issues"] == ["one", "two"]
