"""Change-event envelope delivered to subscribers of the change feed."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel


TableName = Literal["case_config", "session_state", "response"]
EventKind = Literal["insert", "update", "delete"]


class ChangeEvent(BaseModel):
    table: TableName
    event: EventKind
    case_id: str
    # None for case-wide events (case_config)
    session_id: Optional[str] = None
    new_row: Optional[Dict[str, Any]] = None
    # Bulk deletes omit row-level detail
    old_row: Optional[Dict[str, Any]] = None
    seq: int = 0

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": "change",
            "table": self.table,
            "event": self.event,
            "new_row": self.new_row,
            "old_row": self.old_row,
            "seq": self.seq,
        }


__all__ = ["TableName", "EventKind", "ChangeEvent"]
