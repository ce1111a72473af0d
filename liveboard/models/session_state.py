"""SessionState: the per (case, session) control record."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


DisplayMode = Literal["controlled", "live"]

DEFAULT_CURRENT_STEP = 0
DEFAULT_REVEALED_STEP = -1
DEFAULT_DISPLAY_MODE: DisplayMode = "controlled"


class SessionState(BaseModel):
    case_id: str
    session_id: str
    current_step: int = Field(default=DEFAULT_CURRENT_STEP, ge=0)
    revealed_step: int = Field(default=DEFAULT_REVEALED_STEP, ge=-1)
    display_mode: DisplayMode = DEFAULT_DISPLAY_MODE
    # Monotonic write counter assigned by the store
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _reveal_not_ahead(self) -> "SessionState":
        if self.revealed_step > self.current_step:
            raise ValueError("revealed_step must not exceed current_step")
        return self

    def visible_step_ids(self) -> set[int]:
        """Steps the board may show: up to current in live mode, up to the reveal cursor otherwise."""
        last = self.current_step if self.display_mode == "live" else self.revealed_step
        return set(range(0, last + 1))


__all__ = [
    "DisplayMode",
    "SessionState",
    "DEFAULT_CURRENT_STEP",
    "DEFAULT_REVEALED_STEP",
    "DEFAULT_DISPLAY_MODE",
]
