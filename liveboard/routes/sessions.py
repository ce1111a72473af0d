"""Session state reads, instructor transitions and the board payload.

Transitions accept an optional ``If-Match: "<version>"`` header carrying the
SessionState version the caller last observed; a mismatch is a 409. Responses
carry the resulting version as ``ETag``.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Header, Request, Response
from fastapi.responses import JSONResponse

from liveboard.http.error_mapping import INVALID_IF_MATCH
from liveboard.http.problem import problem_response
from liveboard.logic.errors import NotFound, StaleState
from liveboard.logic.repository_cases import is_persistent_case, require_session
from liveboard.logic.session_machine import SessionStateMachine
from liveboard.models.session_state import SessionState
from liveboard.sync.views import BoardView

router = APIRouter()
logger = logging.getLogger(__name__)

# URL segment -> state machine action
TRANSITIONS = {
    "advance": "advance",
    "back": "back",
    "reveal": "reveal",
    "toggle-mode": "toggle_mode",
}


def parse_if_match(value: Optional[str]) -> Optional[int]:
    """Return the version carried by an If-Match header, None when absent.

    Raises ValueError for anything other than an optionally weak, optionally
    quoted non-negative integer.
    """
    if value is None or not value.strip():
        return None
    token = value.strip()
    if token.startswith("W/"):
        token = token[2:]
    token = token.strip('"')
    if not token.isdigit():
        raise ValueError(f"If-Match must carry a session state version, got {value!r}")
    return int(token)


def _etag(state: SessionState) -> str:
    return f'"{state.version}"'


def _state_response(state: SessionState) -> JSONResponse:
    return JSONResponse(state.model_dump(), headers={"ETag": _etag(state)})


@router.get("/cases/{case_id}/sessions/{session_id}/state", summary="Current session state")
def read_session_state(case_id: str, session_id: str) -> Response:
    config, sid = require_session(case_id, session_id)
    return _state_response(SessionStateMachine(config, sid).current())


@router.post("/cases/{case_id}/sessions/{session_id}/state/{action}", summary="Apply an instructor transition")
def transition_session_state(
    case_id: str,
    session_id: str,
    action: str,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
) -> Response:
    """Advance, go back, reveal, toggle the display mode, or reset.

    Rejected transitions (advance at the last step, back at step 0, reveal
    with nothing left to reveal) return the unchanged state with 200.
    """
    try:
        expected = parse_if_match(if_match)
    except ValueError as exc:
        return problem_response(
            INVALID_IF_MATCH["status"], INVALID_IF_MATCH["title"], str(exc), code=INVALID_IF_MATCH["code"]
        )
    if action != "reset" and action not in TRANSITIONS:
        raise NotFound(f"unknown transition {action!r}", action=action)

    config, sid = require_session(case_id, session_id)
    machine = SessionStateMachine(config, sid)
    if action == "reset":
        if expected is not None:
            current = machine.current()
            if current.version != expected:
                raise StaleState(
                    f"session state is at version {current.version}, not {expected}",
                    current_version=current.version,
                )
        state = machine.reset()
    else:
        state = machine.apply(TRANSITIONS[action], expected)  # type: ignore[arg-type]
    return _state_response(state)


@router.get("/cases/{case_id}/sessions/{session_id}/board", summary="Board view payload")
def read_board(case_id: str, session_id: str, request: Request) -> dict:
    """Render the board from the process-wide synchronized scope.

    Scopes of persistent cases (the default case and saved configurations)
    are retained after the first request so later renders are served from
    the cache kept current by change events. Any other case id renders from
    a scope opened for this request only.
    """
    hub = request.app.state.hub
    _, sid = require_session(case_id, session_id)
    if is_persistent_case(case_id):
        hub.retain(case_id, sid)
    with BoardView(hub, case_id, sid) as view:
        return view.render().model_dump()


__all__ = ["router", "parse_if_match", "TRANSITIONS"]
