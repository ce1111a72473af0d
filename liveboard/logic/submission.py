"""Student submission flow.

Validates the payload against the step it answers, runs the advisory
duplicate pre-check, classifies sentiment at write time and inserts the row.
The store's uniqueness constraint remains the authoritative duplicate guard;
the pre-check only fails fast with the same error.
"""

from __future__ import annotations

import logging
from typing import Optional

from liveboard.logic import events
from liveboard.logic.errors import DuplicateSubmission, ValidationError
from liveboard.logic.repository_cases import require_session
from liveboard.logic.repository_responses import find_existing_response_id, insert_response
from liveboard.logic.sentiment import classify_sentiment
from liveboard.models.case_config import Step
from liveboard.models.response import SENTIMENT_LABELS, ResponseRecord, SubmissionPayload

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _resolve_values(
    step: Step,
    payload: SubmissionPayload,
    positive: list[str],
    negative: list[str],
) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Return (answer, sentiment, poll_choice) for the step's type."""
    answer = _clean(payload.answer)
    poll_choice = _clean(payload.poll_choice)
    if payload.sentiment is not None and payload.sentiment not in SENTIMENT_LABELS:
        raise ValidationError(f"sentiment must be one of {list(SENTIMENT_LABELS)}", field="sentiment")

    if step.type == "poll":
        if answer is not None:
            raise ValidationError("poll steps take poll_choice, not answer", field="answer")
        if poll_choice is None or poll_choice not in (step.poll_options or []):
            raise ValidationError(f"poll_choice must be one of {step.poll_options}", field="poll_choice")
        return None, None, poll_choice

    if poll_choice is not None:
        raise ValidationError(f"{step.type} steps take answer, not poll_choice", field="poll_choice")
    if answer is None:
        raise ValidationError("answer is required", field="answer")
    if step.type == "sentiment":
        return answer, classify_sentiment(answer, positive, negative), None
    return answer, None, None


def submit_response(
    payload: SubmissionPayload,
    default_case_id: str,
    feed: events.ChangeFeed | None = None,
) -> ResponseRecord:
    """Record one student response and announce it on the change feed."""
    student_name = _clean(payload.student_name)
    if student_name is None or payload.step is None or _clean(payload.session_id) is None:
        raise ValidationError("Missing required fields: session_id, step and student_name are required")

    case_id = _clean(payload.case_id) or default_case_id
    config, session_id = require_session(case_id, payload.session_id or "")
    step = config.step(payload.step)
    if step is None:
        raise ValidationError(f"unknown step {payload.step} for case {case_id!r}", field="step")

    answer, sentiment, poll_choice = _resolve_values(
        step, payload, config.sentiment_positive, config.sentiment_negative
    )

    if find_existing_response_id(case_id, session_id, step.id, student_name) is not None:
        logger.info(
            "response_duplicate_precheck case_id=%s session_id=%s step=%s",
            case_id,
            session_id,
            step.id,
        )
        raise DuplicateSubmission(case_id=case_id, session_id=session_id, step=step.id)

    record = insert_response(case_id, session_id, step.id, student_name, answer, sentiment, poll_choice)
    logger.info(
        "response_submitted id=%s case_id=%s session_id=%s step=%s type=%s sentiment=%s",
        record.id,
        case_id,
        session_id,
        step.id,
        step.type,
        sentiment,
    )
    (feed or events.FEED).publish(
        events.RESPONSE,
        events.INSERT,
        case_id=case_id,
        session_id=session_id,
        new_row=record.model_dump(),
    )
    return record


__all__ = ["submit_response"]
