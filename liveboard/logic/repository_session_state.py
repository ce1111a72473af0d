"""SessionState data access.

Every write is a single statement against one ``session_state`` row and bumps
``version``, the store-assigned serialization order that clients use to
discard stale snapshots.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import text as sql_text

from liveboard.db.base import get_engine, translate_store_errors
from liveboard.logic import events
from liveboard.models.session_state import (
    DEFAULT_CURRENT_STEP,
    DEFAULT_DISPLAY_MODE,
    DEFAULT_REVEALED_STEP,
    SessionState,
)

logger = logging.getLogger(__name__)

_SELECT = (
    "SELECT case_id, session_id, current_step, revealed_step, display_mode, version "
    "FROM session_state WHERE case_id = :case_id AND session_id = :session_id"
)


def _row_to_state(row: Any) -> SessionState:
    return SessionState(
        case_id=row.case_id,
        session_id=row.session_id,
        current_step=int(row.current_step),
        revealed_step=int(row.revealed_step),
        display_mode=row.display_mode,
        version=int(row.version),
    )


def get_session_state(case_id: str, session_id: str) -> SessionState | None:
    with translate_store_errors("get_session_state"):
        eng = get_engine()
        with eng.connect() as conn:
            row = conn.execute(sql_text(_SELECT), {"case_id": case_id, "session_id": session_id}).fetchone()
    return _row_to_state(row) if row is not None else None


def register_session(
    case_id: str,
    session_id: str,
    feed: events.ChangeFeed | None = None,
) -> SessionState:
    """Create the default SessionState row when missing and return the current row."""
    with translate_store_errors("register_session"):
        eng = get_engine()
        with eng.begin() as conn:
            result = conn.execute(
                sql_text(
                    """
                    INSERT INTO session_state (case_id, session_id, current_step, revealed_step, display_mode, version)
                    VALUES (:case_id, :session_id, :current_step, :revealed_step, :display_mode, 0)
                    ON CONFLICT (case_id, session_id) DO NOTHING
                    """
                ),
                {
                    "case_id": case_id,
                    "session_id": session_id,
                    "current_step": DEFAULT_CURRENT_STEP,
                    "revealed_step": DEFAULT_REVEALED_STEP,
                    "display_mode": DEFAULT_DISPLAY_MODE,
                },
            )
            created = result.rowcount == 1
            row = conn.execute(sql_text(_SELECT), {"case_id": case_id, "session_id": session_id}).fetchone()
    state = _row_to_state(row)
    if created:
        logger.info("session_registered case_id=%s session_id=%s", case_id, session_id)
        (feed or events.FEED).publish(
            events.SESSION_STATE,
            events.INSERT,
            case_id=case_id,
            session_id=session_id,
            new_row=state.model_dump(),
        )
    return state


def compare_and_set(expected: SessionState, target: SessionState) -> bool:
    """Write ``target``'s fields if the row still carries ``expected.version``."""
    with translate_store_errors("compare_and_set_session_state"):
        eng = get_engine()
        with eng.begin() as conn:
            result = conn.execute(
                sql_text(
                    """
                    UPDATE session_state
                    SET current_step = :current_step,
                        revealed_step = :revealed_step,
                        display_mode = :display_mode,
                        version = version + 1
                    WHERE case_id = :case_id AND session_id = :session_id AND version = :version
                    """
                ),
                {
                    "current_step": target.current_step,
                    "revealed_step": target.revealed_step,
                    "display_mode": target.display_mode,
                    "case_id": expected.case_id,
                    "session_id": expected.session_id,
                    "version": expected.version,
                },
            )
    return result.rowcount == 1


def reset_session_state(case_id: str, session_id: str) -> SessionState | None:
    """Unconditionally reinitialize the row to defaults; return it, or None if absent."""
    with translate_store_errors("reset_session_state"):
        eng = get_engine()
        with eng.begin() as conn:
            conn.execute(
                sql_text(
                    """
                    UPDATE session_state
                    SET current_step = :current_step,
                        revealed_step = :revealed_step,
                        display_mode = :display_mode,
                        version = version + 1
                    WHERE case_id = :case_id AND session_id = :session_id
                    """
                ),
                {
                    "current_step": DEFAULT_CURRENT_STEP,
                    "revealed_step": DEFAULT_REVEALED_STEP,
                    "display_mode": DEFAULT_DISPLAY_MODE,
                    "case_id": case_id,
                    "session_id": session_id,
                },
            )
            row = conn.execute(sql_text(_SELECT), {"case_id": case_id, "session_id": session_id}).fetchone()
    return _row_to_state(row) if row is not None else None


__all__ = [
    "get_session_state",
    "register_session",
    "compare_and_set",
    "reset_session_state",
]
