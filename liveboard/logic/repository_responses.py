"""Response ledger data access.

Rows are created once and never updated; the only delete path is the bulk
delete issued by a session reset. Uniqueness over (case, session, step,
student_name) is enforced by the ``uq_response_scope_step_student``
constraint.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.exc import IntegrityError

from liveboard.db.base import get_engine, translate_store_errors
from liveboard.logic.errors import DuplicateSubmission
from liveboard.models.response import ResponseRecord

logger = logging.getLogger(__name__)

_COLUMNS = "id, case_id, session_id, step, student_name, answer, sentiment, poll_choice, created_at"


def _row_to_record(row: Any) -> ResponseRecord:
    return ResponseRecord(
        id=int(row.id),
        case_id=row.case_id,
        session_id=row.session_id,
        step=int(row.step),
        student_name=row.student_name,
        answer=row.answer,
        sentiment=row.sentiment,
        poll_choice=row.poll_choice,
        created_at=row.created_at,
    )


def find_existing_response_id(case_id: str, session_id: str, step: int, student_name: str) -> Optional[int]:
    with translate_store_errors("find_existing_response"):
        eng = get_engine()
        with eng.connect() as conn:
            row = conn.execute(
                sql_text(
                    "SELECT id FROM response WHERE case_id = :case_id AND session_id = :session_id "
                    "AND step = :step AND student_name = :student_name"
                ),
                {"case_id": case_id, "session_id": session_id, "step": step, "student_name": student_name},
            ).fetchone()
    return int(row.id) if row is not None else None


def insert_response(
    case_id: str,
    session_id: str,
    step: int,
    student_name: str,
    answer: Optional[str],
    sentiment: Optional[str],
    poll_choice: Optional[str],
) -> ResponseRecord:
    """Insert one response and return it with store-assigned id and created_at.

    Raises DuplicateSubmission when the uniqueness constraint rejects the row.
    """
    key = {"case_id": case_id, "session_id": session_id, "step": step, "student_name": student_name}
    try:
        with translate_store_errors("insert_response"):
            eng = get_engine()
            with eng.begin() as conn:
                conn.execute(
                    sql_text(
                        """
                        INSERT INTO response (case_id, session_id, step, student_name, answer, sentiment, poll_choice)
                        VALUES (:case_id, :session_id, :step, :student_name, :answer, :sentiment, :poll_choice)
                        """
                    ),
                    {**key, "answer": answer, "sentiment": sentiment, "poll_choice": poll_choice},
                )
                row = conn.execute(
                    sql_text(
                        f"SELECT {_COLUMNS} FROM response WHERE case_id = :case_id AND session_id = :session_id "
                        "AND step = :step AND student_name = :student_name"
                    ),
                    key,
                ).fetchone()
    except IntegrityError as exc:
        logger.info(
            "response_duplicate_rejected_by_store case_id=%s session_id=%s step=%s",
            case_id,
            session_id,
            step,
        )
        raise DuplicateSubmission(**key) from exc
    return _row_to_record(row)


def list_responses(case_id: str, session_id: Optional[str] = None) -> list[ResponseRecord]:
    """Return responses for a case (optionally one session) in store order."""
    sql = f"SELECT {_COLUMNS} FROM response WHERE case_id = :case_id"
    params: dict[str, Any] = {"case_id": case_id}
    if session_id is not None:
        sql += " AND session_id = :session_id"
        params["session_id"] = session_id
    sql += " ORDER BY created_at ASC, id ASC"
    with translate_store_errors("list_responses"):
        eng = get_engine()
        with eng.connect() as conn:
            rows = conn.execute(sql_text(sql), params).fetchall()
    return [_row_to_record(r) for r in rows]


def delete_scope_responses(case_id: str, session_id: str) -> int:
    """Bulk-delete every response of a (case, session) pair; return the count removed."""
    with translate_store_errors("delete_scope_responses"):
        eng = get_engine()
        with eng.begin() as conn:
            result = conn.execute(
                sql_text("DELETE FROM response WHERE case_id = :case_id AND session_id = :session_id"),
                {"case_id": case_id, "session_id": session_id},
            )
    return int(result.rowcount or 0)


__all__ = [
    "find_existing_response_id",
    "insert_response",
    "list_responses",
    "delete_scope_responses",
]
