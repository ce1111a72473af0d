"""Case configuration data access.

Resolves a case's steps, topics and sessions from ``case_config`` and falls
back to the default case when the record is absent. Individual missing fields
of a stored record are substituted from the default field by field.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text as sql_text

from liveboard.db.base import get_engine, translate_store_errors
from liveboard.logic import events
from liveboard.logic.errors import NotFound, ValidationError
from liveboard.logic.repository_session_state import register_session
from liveboard.models.case_config import CaseConfig, CaseConfigDraft, SessionRef, Step, Topic
from liveboard.models.defaults import DEFAULT_CASE_ID, default_case_config

logger = logging.getLogger(__name__)

_JSON_FIELDS = {
    "sessions": "sessions_json",
    "steps": "steps_json",
    "topics": "topics_json",
    "sentiment_positive": "sentiment_positive_json",
    "sentiment_negative": "sentiment_negative_json",
}
_TEXT_FIELDS = ("title", "board_title", "description")


def _load_json(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    return json.loads(raw)


def _record_to_config(case_id: str, row: Any) -> CaseConfig:
    default = default_case_config(case_id)
    data: dict[str, Any] = {"id": case_id}
    for field in _TEXT_FIELDS:
        value = getattr(row, field)
        data[field] = value if value is not None else getattr(default, field)
    for field, column in _JSON_FIELDS.items():
        value = _load_json(getattr(row, column))
        data[field] = value if value is not None else getattr(default, field)
    return CaseConfig.model_validate(data)


def get_case_config(case_id: str) -> CaseConfig:
    """Return the validated configuration for ``case_id``.

    Absent records and records that fail validation resolve to the default
    case carrying ``case_id``; store connectivity failures propagate.
    """
    with translate_store_errors("get_case_config"):
        eng = get_engine()
        with eng.connect() as conn:
            row = conn.execute(
                sql_text(
                    "SELECT id, title, board_title, description, sessions_json, steps_json, "
                    "topics_json, sentiment_positive_json, sentiment_negative_json "
                    "FROM case_config WHERE id = :id"
                ),
                {"id": case_id},
            ).fetchone()
    if row is None:
        return default_case_config(case_id)
    try:
        return _record_to_config(case_id, row)
    except (PydanticValidationError, json.JSONDecodeError):
        logger.error("case_config_invalid case_id=%s; using defaults", case_id, exc_info=True)
        return default_case_config(case_id)


def has_stored_config(case_id: str) -> bool:
    with translate_store_errors("has_stored_config"):
        eng = get_engine()
        with eng.connect() as conn:
            row = conn.execute(sql_text("SELECT 1 FROM case_config WHERE id = :id"), {"id": case_id}).fetchone()
    return row is not None


def is_persistent_case(case_id: str) -> bool:
    """True for the built-in default case and for cases with a saved configuration.

    Only these get SessionState rows on read; any other case id resolves to
    the default configuration without writing anything until a transition.
    """
    return case_id == DEFAULT_CASE_ID or has_stored_config(case_id)


def normalize_case_config(case_id: str, draft: CaseConfigDraft) -> CaseConfig:
    """Build a saveable configuration from an editor draft.

    Step ids are reassigned from list position and each topic's step ids are
    recomputed from step membership; hand-edited ids are never trusted.
    """
    default = default_case_config(case_id)
    steps_in = draft.steps if draft.steps is not None else default.steps
    topics_in = draft.topics if draft.topics is not None else default.topics
    try:
        steps = [
            Step(
                id=index,
                topic=s.topic,
                question=s.question,
                type=s.type,
                poll_options=s.poll_options,
            )
            for index, s in enumerate(steps_in)
        ]
        topics = [
            Topic(
                name=t.name,
                color=t.color,
                step_ids=[s.id for s in steps if s.topic == t.name],
            )
            for t in topics_in
        ]
        sessions = draft.sessions if draft.sessions is not None else default.sessions
        seen: set[str] = set()
        for ref in sessions:
            if ref.id in seen:
                raise ValidationError(f"duplicate session id {ref.id!r}", field="sessions")
            seen.add(ref.id)
        return CaseConfig(
            id=case_id,
            title=draft.title if draft.title is not None else default.title,
            board_title=draft.board_title if draft.board_title is not None else default.board_title,
            description=draft.description if draft.description is not None else default.description,
            sessions=[SessionRef(id=s.id, label=s.label) for s in sessions],
            steps=steps,
            topics=topics,
            sentiment_positive=(
                draft.sentiment_positive if draft.sentiment_positive is not None else default.sentiment_positive
            ),
            sentiment_negative=(
                draft.sentiment_negative if draft.sentiment_negative is not None else default.sentiment_negative
            ),
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid case configuration: {exc.errors()[0].get('msg')}") from exc


def save_case_config(
    case_id: str,
    draft: CaseConfigDraft,
    feed: events.ChangeFeed | None = None,
) -> CaseConfig:
    """Upsert the whole configuration and register SessionState rows for new sessions."""
    config = normalize_case_config(case_id, draft)
    params = {
        "id": case_id,
        "title": config.title,
        "board_title": config.board_title,
        "description": config.description,
        "sessions_json": json.dumps([s.model_dump() for s in config.sessions]),
        "steps_json": json.dumps([s.model_dump() for s in config.steps]),
        "topics_json": json.dumps([t.model_dump() for t in config.topics]),
        "sentiment_positive_json": json.dumps(config.sentiment_positive),
        "sentiment_negative_json": json.dumps(config.sentiment_negative),
    }
    with translate_store_errors("save_case_config"):
        eng = get_engine()
        with eng.begin() as conn:
            conn.execute(
                sql_text(
                    """
                    INSERT INTO case_config (
                        id, title, board_title, description, sessions_json, steps_json,
                        topics_json, sentiment_positive_json, sentiment_negative_json
                    ) VALUES (
                        :id, :title, :board_title, :description, :sessions_json, :steps_json,
                        :topics_json, :sentiment_positive_json, :sentiment_negative_json
                    )
                    ON CONFLICT (id) DO UPDATE SET
                        title = excluded.title,
                        board_title = excluded.board_title,
                        description = excluded.description,
                        sessions_json = excluded.sessions_json,
                        steps_json = excluded.steps_json,
                        topics_json = excluded.topics_json,
                        sentiment_positive_json = excluded.sentiment_positive_json,
                        sentiment_negative_json = excluded.sentiment_negative_json
                    """
                ),
                params,
            )
    logger.info(
        "case_config_saved case_id=%s steps=%s sessions=%s",
        case_id,
        len(config.steps),
        len(config.sessions),
    )
    for ref in config.sessions:
        register_session(case_id, ref.id, feed=feed)
    (feed or events.FEED).publish(
        events.CASE_CONFIG,
        events.UPDATE,
        case_id=case_id,
        new_row=config.model_dump(),
    )
    return config


def require_session(case_id: str, session_id: str) -> tuple[CaseConfig, str]:
    """Resolve the case config and the normalized session id, or raise NotFound."""
    wanted = (session_id or "").strip().upper()
    if not wanted:
        raise NotFound("session id is required", case_id=case_id)
    config = get_case_config(case_id)
    if config.sessions and config.session(wanted) is None:
        raise NotFound(f"unknown session {wanted!r} for case {case_id!r}", case_id=case_id, session_id=wanted)
    return config, wanted


__all__ = [
    "get_case_config",
    "has_stored_config",
    "is_persistent_case",
    "normalize_case_config",
    "save_case_config",
    "require_session",
]
