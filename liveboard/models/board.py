"""Board view payload: topic panels, per-step aggregations and header fields."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from liveboard.models.case_config import StepType


class PollBar(BaseModel):
    label: str
    count: int
    percent: int
    # Relative to the most-voted option
    width: float


class PollTally(BaseModel):
    total: int
    bars: List[PollBar]


class WordEntry(BaseModel):
    key: str
    text: str
    count: int
    student_names: List[str] = Field(default_factory=list)
    sentiment: Optional[str] = None
    size: int = 0


class SentimentColumn(BaseModel):
    label: str
    total: int
    entries: List[WordEntry]


class BoardStep(BaseModel):
    id: int
    question: str
    type: StepType
    response_count: int
    active: bool
    poll: Optional[PollTally] = None
    words: Optional[List[WordEntry]] = None
    sentiment_columns: Optional[List[SentimentColumn]] = None


class BoardPanel(BaseModel):
    topic: str
    color: str
    visible: bool
    steps: List[BoardStep] = Field(default_factory=list)


class BoardSnapshot(BaseModel):
    case_id: str
    session_id: str
    board_title: str
    session_label: str
    connected: bool
    loading: bool
    step_label: Optional[str] = None
    display_mode: Optional[str] = None
    grid_columns: int
    grid_rows: int
    panels: List[BoardPanel]
    version: Optional[int] = None


__all__ = [
    "PollBar",
    "PollTally",
    "WordEntry",
    "SentimentColumn",
    "BoardStep",
    "BoardPanel",
    "BoardSnapshot",
]
