"""Typed case configuration: steps, topics, sessions and sentiment keywords.

A stored configuration is validated once at load time; consumers receive a
``CaseConfig`` whose invariants already hold (dense zero-based step ids,
topics referencing existing steps, non-empty poll options).
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


StepType = Literal["text", "sentiment", "poll"]

COLOR_NAMES: tuple[str, ...] = (
    "purple",
    "blue",
    "green",
    "orange",
    "red",
    "teal",
    "pink",
    "yellow",
    "indigo",
    "cyan",
)
FALLBACK_COLOR = "blue"


class Step(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(ge=0)
    topic: str = ""
    question: str = ""
    type: StepType = "text"
    poll_options: Optional[List[str]] = Field(default=None, alias="pollOptions")

    @model_validator(mode="after")
    def _poll_options_match_type(self) -> "Step":
        if self.type == "poll":
            options = [o.strip() for o in (self.poll_options or []) if o and o.strip()]
            if not options:
                raise ValueError(f"step {self.id}: poll steps require at least one option")
            self.poll_options = options
        else:
            self.poll_options = None
        return self


class Topic(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    color: str = FALLBACK_COLOR
    step_ids: List[int] = Field(default_factory=list, alias="stepIds")

    @property
    def display_color(self) -> str:
        return self.color if self.color in COLOR_NAMES else FALLBACK_COLOR


class SessionRef(BaseModel):
    id: str
    label: str = ""

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if not v:
            raise ValueError("session id must be non-empty")
        return v


class CaseConfig(BaseModel):
    id: str
    title: str
    board_title: str
    description: str
    sessions: List[SessionRef]
    steps: List[Step]
    topics: List[Topic]
    sentiment_positive: List[str]
    sentiment_negative: List[str]

    @model_validator(mode="after")
    def _check_references(self) -> "CaseConfig":
        for index, step in enumerate(self.steps):
            if step.id != index:
                raise ValueError(f"steps must be dense and zero-based: position {index} has id {step.id}")
        known = {s.id for s in self.steps}
        for topic in self.topics:
            missing = [sid for sid in topic.step_ids if sid not in known]
            if missing:
                raise ValueError(f"topic {topic.name!r} references unknown steps {missing}")
        return self

    @property
    def last_step_index(self) -> int:
        return len(self.steps) - 1

    def step(self, step_id: int) -> Step | None:
        if 0 <= step_id < len(self.steps):
            return self.steps[step_id]
        return None

    def session(self, session_id: str) -> SessionRef | None:
        wanted = (session_id or "").strip().upper()
        return next((s for s in self.sessions if s.id == wanted), None)

    def session_label(self, session_id: str) -> str:
        ref = self.session(session_id)
        return ref.label if ref and ref.label else (session_id or "").upper()


class StepDraft(BaseModel):
    """Step as submitted by the setup form; the id is reassigned on save."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    topic: str = ""
    question: str = ""
    type: StepType = "text"
    poll_options: Optional[List[str]] = Field(default=None, alias="pollOptions")


class TopicDraft(BaseModel):
    name: str
    color: str = FALLBACK_COLOR


class CaseConfigDraft(BaseModel):
    """Upsert payload. Omitted fields keep the default case's values."""

    title: Optional[str] = None
    board_title: Optional[str] = None
    description: Optional[str] = None
    sessions: Optional[List[SessionRef]] = None
    steps: Optional[List[StepDraft]] = None
    topics: Optional[List[TopicDraft]] = None
    sentiment_positive: Optional[List[str]] = None
    sentiment_negative: Optional[List[str]] = None


__all__ = [
    "StepType",
    "COLOR_NAMES",
    "FALLBACK_COLOR",
    "Step",
    "Topic",
    "SessionRef",
    "CaseConfig",
    "StepDraft",
    "TopicDraft",
    "CaseConfigDraft",
]
