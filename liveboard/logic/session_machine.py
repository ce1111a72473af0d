"""Session state machine.

``next_state`` is the pure transition function; ``SessionStateMachine``
persists its result with a compare-and-swap on ``version`` so every
transition is one atomic row update. Rejected transitions (advance past the
last step, back before step 0, reveal ahead of the current step) are no-ops:
nothing is written and no event is published.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

from liveboard.logic import events
from liveboard.logic.errors import NotFound, StaleState
from liveboard.logic.repository_cases import is_persistent_case
from liveboard.logic.repository_responses import delete_scope_responses
from liveboard.logic.repository_session_state import (
    compare_and_set,
    get_session_state,
    register_session,
    reset_session_state,
)
from liveboard.models.case_config import CaseConfig
from liveboard.models.session_state import SessionState

logger = logging.getLogger(__name__)

Action = Literal["advance", "back", "reveal", "toggle_mode"]
ACTIONS: tuple[str, ...] = ("advance", "back", "reveal", "toggle_mode")


def next_state(state: SessionState, action: Action, last_step_index: int) -> SessionState:
    """Return the state after ``action``; the same object when the action is rejected."""
    if action == "advance":
        if state.current_step >= last_step_index:
            return state
        return state.model_copy(update={"current_step": state.current_step + 1})
    if action == "back":
        if state.current_step <= 0:
            return state
        current = state.current_step - 1
        return state.model_copy(
            update={"current_step": current, "revealed_step": min(state.revealed_step, current)}
        )
    if action == "reveal":
        if state.revealed_step >= state.current_step:
            return state
        return state.model_copy(update={"revealed_step": state.revealed_step + 1})
    if action == "toggle_mode":
        mode = "live" if state.display_mode == "controlled" else "controlled"
        return state.model_copy(update={"display_mode": mode})
    raise ValueError(f"unknown action {action!r}")


def load_session_state(
    case_id: str,
    session_id: str,
    feed: events.ChangeFeed | None = None,
) -> SessionState:
    """Return the stored row, registering it on first read for persistent cases.

    Other case ids get an unsaved default state (version 0); their row is
    created by the first transition.
    """
    state = get_session_state(case_id, session_id)
    if state is not None:
        return state
    if is_persistent_case(case_id):
        return register_session(case_id, session_id, feed=feed)
    return SessionState(case_id=case_id, session_id=session_id)


class SessionStateMachine:
    """Instructor-side transitions for one (case, session) pair."""

    def __init__(
        self,
        config: CaseConfig,
        session_id: str,
        feed: events.ChangeFeed | None = None,
    ) -> None:
        self.config = config
        self.case_id = config.id
        self.session_id = session_id
        self._feed = feed or events.FEED

    def current(self) -> SessionState:
        return load_session_state(self.case_id, self.session_id, feed=self._feed)

    def apply(self, action: Action, expected_version: Optional[int] = None) -> SessionState:
        state = self.current()
        if expected_version is not None and expected_version != state.version:
            raise StaleState(
                f"session state is at version {state.version}, not {expected_version}",
                current_version=state.version,
            )
        target = next_state(state, action, self.config.last_step_index)
        if target is state:
            logger.info(
                "session_transition_noop case_id=%s session_id=%s action=%s",
                self.case_id,
                self.session_id,
                action,
            )
            return state
        if not self._write(state, target):
            raise StaleState("session state changed concurrently; reload and retry", action=action)
        written = target.model_copy(update={"version": state.version + 1})
        logger.info(
            "session_transition case_id=%s session_id=%s action=%s current_step=%s revealed_step=%s mode=%s version=%s",
            self.case_id,
            self.session_id,
            action,
            written.current_step,
            written.revealed_step,
            written.display_mode,
            written.version,
        )
        self._publish_state(written)
        return written

    def _write(self, state: SessionState, target: SessionState) -> bool:
        if compare_and_set(state, target):
            return True
        if get_session_state(self.case_id, self.session_id) is not None:
            return False
        # First write for an unsaved case creates the row at version 0
        register_session(self.case_id, self.session_id, feed=self._feed)
        return compare_and_set(state, target)

    def advance(self, expected_version: Optional[int] = None) -> SessionState:
        return self.apply("advance", expected_version)

    def go_back(self, expected_version: Optional[int] = None) -> SessionState:
        return self.apply("back", expected_version)

    def reveal(self, expected_version: Optional[int] = None) -> SessionState:
        return self.apply("reveal", expected_version)

    def toggle_mode(self, expected_version: Optional[int] = None) -> SessionState:
        return self.apply("toggle_mode", expected_version)

    def reset(self) -> SessionState:
        """Delete the pair's responses, then reinitialize the state row.

        The two writes are separate: a failure between them leaves the
        responses deleted and the state unchanged.
        """
        register_session(self.case_id, self.session_id, feed=self._feed)
        deleted = delete_scope_responses(self.case_id, self.session_id)
        # Bulk delete: subscribers receive no row identity and resync
        self._feed.publish(
            events.RESPONSE,
            events.DELETE,
            case_id=self.case_id,
            session_id=self.session_id,
        )
        state = reset_session_state(self.case_id, self.session_id)
        if state is None:
            raise NotFound(
                f"session {self.session_id!r} vanished during reset",
                case_id=self.case_id,
                session_id=self.session_id,
            )
        logger.info(
            "session_reset case_id=%s session_id=%s responses_deleted=%s version=%s",
            self.case_id,
            self.session_id,
            deleted,
            state.version,
        )
        self._publish_state(state)
        return state

    def _publish_state(self, state: SessionState) -> None:
        self._feed.publish(
            events.SESSION_STATE,
            events.UPDATE,
            case_id=self.case_id,
            session_id=self.session_id,
            new_row=state.model_dump(),
        )


__all__ = ["Action", "ACTIONS", "next_state", "load_session_state", "SessionStateMachine"]
