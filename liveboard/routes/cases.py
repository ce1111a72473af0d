"""Case configuration: read, whole-record upsert and session listing."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from liveboard.logic.repository_cases import get_case_config, save_case_config
from liveboard.logic.repository_session_state import get_session_state
from liveboard.models.case_config import CaseConfigDraft

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/cases/{case_id}/config", summary="Resolved case configuration")
def read_case_config(case_id: str) -> dict:
    return get_case_config(case_id).model_dump()


@router.put("/cases/{case_id}/config", summary="Upsert the case configuration")
def write_case_config(case_id: str, draft: CaseConfigDraft) -> dict:
    """Replace the whole configuration.

    Step ids are reassigned by position and topic step lists recomputed, so
    the stored record always satisfies the configuration invariants.
    """
    return save_case_config(case_id, draft).model_dump()


@router.get("/cases/{case_id}/sessions", summary="Sessions of a case with their current state")
def list_case_sessions(case_id: str) -> list[dict]:
    config = get_case_config(case_id)
    out = []
    for ref in config.sessions:
        state = get_session_state(case_id, ref.id)
        out.append(
            {
                "id": ref.id,
                "label": ref.label or ref.id,
                "state": state.model_dump() if state is not None else None,
            }
        )
    return out


__all__ = ["router"]
