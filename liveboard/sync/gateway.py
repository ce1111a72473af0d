"""Store access used by the sync layer: the two bootstrap queries plus the
change-feed subscription calls."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Protocol

from liveboard.logic import events
from liveboard.logic.repository_responses import list_responses
from liveboard.logic.session_machine import load_session_state
from liveboard.models.events import ChangeEvent
from liveboard.models.response import ResponseRecord
from liveboard.models.session_state import SessionState


class StoreGateway(Protocol):
    def fetch_state(self, case_id: str, session_id: str) -> SessionState: ...

    def fetch_responses(self, case_id: str, session_id: str) -> List[ResponseRecord]: ...

    def subscribe(
        self,
        table: str,
        case_id: str,
        session_id: Optional[str],
        callback: Callable[[ChangeEvent], None],
    ) -> Any: ...

    def unsubscribe(self, handle: Any) -> None: ...


class LocalStoreGateway:
    """Gateway over the repositories and an in-process change feed."""

    def __init__(self, feed: events.ChangeFeed | None = None) -> None:
        self.feed = feed or events.FEED

    def fetch_state(self, case_id: str, session_id: str) -> SessionState:
        return load_session_state(case_id, session_id, feed=self.feed)

    def fetch_responses(self, case_id: str, session_id: str) -> List[ResponseRecord]:
        return list_responses(case_id, session_id)

    def subscribe(
        self,
        table: str,
        case_id: str,
        session_id: Optional[str],
        callback: Callable[[ChangeEvent], None],
    ) -> events.Subscription:
        return self.feed.subscribe(table, case_id, callback, session_id=session_id)  # type: ignore[arg-type]

    def unsubscribe(self, handle: events.Subscription) -> None:
        self.feed.unsubscribe(handle)


__all__ = ["StoreGateway", "LocalStoreGateway"]
