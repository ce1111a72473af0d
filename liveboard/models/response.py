"""Pydantic models for submitted responses and the submission payload."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, field_validator


Sentiment = Literal["positive", "negative", "neutral"]
SENTIMENT_LABELS: tuple[str, ...] = ("positive", "negative", "neutral")


def _timestamp_text(value: object) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")
    return str(value)


class ResponseRecord(BaseModel):
    """One stored submission, exactly as the store returned it."""

    id: int
    case_id: str
    session_id: str
    step: int
    student_name: str
    answer: Optional[str] = None
    sentiment: Optional[Sentiment] = None
    poll_choice: Optional[str] = None
    created_at: str

    @field_validator("created_at", mode="before")
    @classmethod
    def _normalize_created_at(cls, v: object) -> str:
        return _timestamp_text(v)

    @property
    def order_key(self) -> tuple[str, int]:
        """Store order: creation time, id as tie-breaker."""
        return (self.created_at, self.id)


class SubmissionPayload(BaseModel):
    """Submission body. Presence rules are checked by the submission service
    so that missing fields surface as 400 rather than schema errors."""

    case_id: Optional[str] = None
    session_id: Optional[str] = None
    step: Optional[int] = None
    student_name: Optional[str] = None
    answer: Optional[str] = None
    sentiment: Optional[str] = None
    poll_choice: Optional[str] = None


__all__ = ["Sentiment", "SENTIMENT_LABELS", "ResponseRecord", "SubmissionPayload"]
