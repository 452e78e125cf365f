"""
VoiceGrade Backend - Upstream Provider Schemas
================================================

What:  Typed views of the two external calls' replies, plus the grading
       report the pipeline persists.
How:   OpenAIService validates raw JSON into these models. Anything that does
       not fit GradingReport is replaced by one of the fixed fallbacks.

Fallback policy:
    A 2xx grading reply whose content cannot be read as a report does not
    fail the run. The transcript is kept and the record is stored with
    score 5 and a fixed feedback string.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


FALLBACK_SCORE = 5.0
FALLBACK_FEEDBACK = "Analysis completed but formatting error occurred"
EMPTY_REPLY_FEEDBACK = "Unable to analyze"


class TranscriptionReply(BaseModel):
    """2xx body of POST /audio/transcriptions."""
    text: str = ""


class ChatMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None


class ChatChoice(BaseModel):
    message: ChatMessage


class ChatCompletionReply(BaseModel):
    """2xx body of POST /chat/completions (only the fields we read)."""
    choices: List[ChatChoice] = Field(min_length=1)

    @property
    def first_content(self) -> Optional[str]:
        return self.choices[0].message.content


class GradingReport(BaseModel):
    """
    The grading model's verdict.

    `score` is required and must be finite. `feedback` and `issues` default
    to empty; issue entries are coerced to strings so a grader answering
    with numbers or nulls inside the list does not trip validation.
    """
    score: float = Field(allow_inf_nan=False)
    feedback: str = ""
    issues: List[str] = Field(default_factory=list)

    @field_validator("issues", mode="before")
    @classmethod
    def coerce_issues(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [str(item) for item in v if item is not None]
        return v

    @classmethod
    def fallback(cls) -> "GradingReport":
        """Report used when the reply content is not a valid report."""
        return cls(score=FALLBACK_SCORE, feedback=FALLBACK_FEEDBACK, issues=[])

    @classmethod
    def empty_reply(cls) -> "GradingReport":
        """Report used when the grader returned no content at all."""
        return cls(score=FALLBACK_SCORE, feedback=EMPTY_REPLY_FEEDBACK, issues=[])
