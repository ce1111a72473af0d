"""Student submissions and the response ledger read."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from liveboard.logic.repository_responses import list_responses
from liveboard.logic.submission import submit_response
from liveboard.models.response import SubmissionPayload

router = APIRouter()
logger = logging.getLogger(__name__)


def default_case_id(request: Request) -> str:
    return request.app.state.config.realtime.default_case_id


@router.post("/responses", status_code=201, summary="Submit a response for the current step")
def create_response(payload: SubmissionPayload, request: Request) -> dict:
    """Record one response.

    Returns the stored row (201). Duplicate (case, session, step, student)
    tuples are rejected with 409; missing fields or a payload that does not
    fit the step type with 400; an unknown session with 404.
    """
    record = submit_response(payload, default_case_id(request))
    return record.model_dump()


@router.get("/responses", summary="List responses in store order")
def get_responses(
    request: Request,
    case_id: Optional[str] = Query(default=None),
    session_id: Optional[str] = Query(default=None),
) -> list[dict]:
    case = (case_id or "").strip() or default_case_id(request)
    session = session_id.strip().upper() if session_id and session_id.strip() else None
    return [r.model_dump() for r in list_responses(case, session)]


__all__ = ["router", "default_case_id"]
