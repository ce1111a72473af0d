"""Role views over a shared ScopeSync: student, board and instructor.

Each view acquires its scope from a ``SyncHub`` and releases it on ``close``.
Case configuration is read from the store on every render so setup changes
show up without reconnecting.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from liveboard.logic import events
from liveboard.logic.aggregation import build_word_cloud, grid_shape, group_by_sentiment, tally_poll
from liveboard.logic.errors import DuplicateSubmission, ValidationError
from liveboard.logic.name_store import NameStore
from liveboard.logic.repository_cases import get_case_config, require_session
from liveboard.logic.session_machine import SessionStateMachine
from liveboard.logic.submission import submit_response
from liveboard.models.board import BoardPanel, BoardSnapshot, BoardStep
from liveboard.models.case_config import CaseConfig, Step
from liveboard.models.response import ResponseRecord, SubmissionPayload
from liveboard.models.session_state import SessionState
from liveboard.sync.hub import SyncHub
from liveboard.sync.scope import ScopeSync

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "Already submitted for this step"


class _ScopedView:
    def __init__(self, hub: SyncHub, case_id: str, session_id: str) -> None:
        _, normalized = require_session(case_id, session_id)
        self.case_id = case_id
        self.session_id = normalized
        self._hub = hub
        self.scope: ScopeSync = hub.acquire(case_id, normalized)

    @property
    def config(self) -> CaseConfig:
        return get_case_config(self.case_id)

    @property
    def state(self) -> Optional[SessionState]:
        return self.scope.state

    @property
    def loading(self) -> bool:
        return self.scope.loading

    def close(self) -> None:
        self._hub.release(self.scope)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class StudentView(_ScopedView):
    """Answering view: remembered name, current question, submission status."""

    def __init__(
        self,
        hub: SyncHub,
        case_id: str,
        session_id: str,
        names: NameStore | None = None,
        feed: events.ChangeFeed | None = None,
    ) -> None:
        super().__init__(hub, case_id, session_id)
        self._names = names or NameStore.from_config()
        self._feed = feed
        self.submitting = False
        self.message: Optional[str] = None

    @property
    def student_name(self) -> Optional[str]:
        return self._names.get(self.case_id, self.session_id)

    def join(self, name: str) -> str:
        return self._names.remember(self.case_id, self.session_id, name)

    def change_name(self) -> None:
        self._names.forget(self.case_id, self.session_id)
        self.message = None

    @property
    def current_step(self) -> Optional[Step]:
        state = self.state
        if state is None:
            return None
        return self.config.step(state.current_step)

    def has_submitted(self) -> bool:
        name = self.student_name
        step = self.current_step
        if name is None or step is None:
            return False
        return any(r.student_name == name for r in self.scope.responses_for_step(step.id))

    def submit(
        self,
        answer: Optional[str] = None,
        poll_choice: Optional[str] = None,
    ) -> Optional[ResponseRecord]:
        """Submit for the current step; failures land in ``message`` and return None."""
        step = self.current_step
        if step is None:
            self.message = "Discussion hasn't started yet."
            return None
        payload = SubmissionPayload(
            case_id=self.case_id,
            session_id=self.session_id,
            step=step.id,
            student_name=self.student_name,
            answer=answer,
            poll_choice=poll_choice,
        )
        self.submitting = True
        self.message = None
        try:
            return submit_response(payload, self.case_id, feed=self._feed)
        except DuplicateSubmission:
            self.message = ALREADY_SUBMITTED
            return None
        except ValidationError as exc:
            self.message = exc.message
            return None
        finally:
            self.submitting = False


class BoardView(_ScopedView):
    """Passive display: visible steps grouped into topic panels."""

    def render(self) -> BoardSnapshot:
        config = self.config
        state, responses = self.scope.snapshot()
        visible = state.visible_step_ids() if state is not None else set()
        columns, rows = grid_shape(len(config.topics))
        panels: List[BoardPanel] = []
        for topic in config.topics:
            shown = [sid for sid in topic.step_ids if sid in visible]
            steps = []
            for sid in shown:
                step = config.step(sid)
                if step is None:
                    continue
                steps.append(self._render_step(step, state, [r for r in responses if r.step == sid]))
            panels.append(
                BoardPanel(
                    topic=topic.name,
                    color=topic.display_color,
                    visible=bool(shown),
                    steps=steps,
                )
            )
        return BoardSnapshot(
            case_id=self.case_id,
            session_id=self.session_id,
            board_title=config.board_title,
            session_label=config.session_label(self.session_id),
            connected=self.scope.connected,
            loading=state is None,
            step_label=f"Step {state.current_step}/{config.last_step_index}" if state is not None else None,
            display_mode=state.display_mode if state is not None else None,
            grid_columns=columns,
            grid_rows=rows,
            panels=panels,
            version=state.version if state is not None else None,
        )

    @staticmethod
    def _render_step(step: Step, state: Optional[SessionState], responses: List[ResponseRecord]) -> BoardStep:
        view = BoardStep(
            id=step.id,
            question=step.question,
            type=step.type,
            response_count=len(responses),
            active=state is not None and state.current_step == step.id,
        )
        if step.type == "poll":
            view.poll = tally_poll(responses, step.poll_options or [])
            return view
        view.words = build_word_cloud(responses)
        if step.type == "sentiment":
            view.sentiment_columns = group_by_sentiment(view.words)
        return view


class InstructorView(_ScopedView):
    """Control view: transitions plus the current step's response count."""

    def __init__(
        self,
        hub: SyncHub,
        case_id: str,
        session_id: str,
        feed: events.ChangeFeed | None = None,
    ) -> None:
        super().__init__(hub, case_id, session_id)
        self._feed = feed

    @property
    def error(self) -> Optional[str]:
        """Error panel text; None while the scope is healthy."""
        return self.scope.error.message if self.scope.error is not None else None

    @property
    def current_step(self) -> Optional[Step]:
        state = self.state
        return self.config.step(state.current_step) if state is not None else None

    @property
    def response_count(self) -> int:
        state = self.state
        if state is None:
            return 0
        return len(self.scope.responses_for_step(state.current_step))

    def _machine(self) -> SessionStateMachine:
        return SessionStateMachine(self.config, self.session_id, feed=self._feed)

    def _expected(self) -> Optional[int]:
        return self.state.version if self.state is not None else None

    def advance(self) -> SessionState:
        return self._machine().advance(self._expected())

    def go_back(self) -> SessionState:
        return self._machine().go_back(self._expected())

    def reveal(self) -> SessionState:
        return self._machine().reveal(self._expected())

    def toggle_mode(self) -> SessionState:
        return self._machine().toggle_mode(self._expected())

    def reset(self) -> SessionState:
        return self._machine().reset()


__all__ = ["ALREADY_SUBMITTED", "StudentView", "BoardView", "InstructorView"]
