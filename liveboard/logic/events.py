"""Change feed: table/scope filtered publish-subscribe over committed writes.

Services publish one event per committed write (after commit, never inside
the transaction). Subscribers register a callback for one table and a case,
optionally narrowed to one session. Delivery is synchronous on the
publisher's thread, in publish order.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from liveboard.models.events import ChangeEvent, EventKind, TableName

logger = logging.getLogger(__name__)

CASE_CONFIG = "case_config"
SESSION_STATE = "session_state"
RESPONSE = "response"

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"

# Recent events retained for test observation
BUFFER_LIMIT = 1000

Callback = Callable[[ChangeEvent], None]


class Subscription:
    __slots__ = ("id", "table", "case_id", "session_id", "callback", "active")

    def __init__(
        self,
        sub_id: int,
        table: TableName,
        case_id: str,
        session_id: Optional[str],
        callback: Callback,
    ) -> None:
        self.id = sub_id
        self.table = table
        self.case_id = case_id
        self.session_id = session_id
        self.callback = callback
        self.active = True

    def matches(self, event: ChangeEvent) -> bool:
        if not self.active or event.table != self.table or event.case_id != self.case_id:
            return False
        if self.session_id is None or event.session_id is None:
            return True
        return event.session_id == self.session_id


class ChangeFeed:
    def __init__(self, buffer_limit: int = BUFFER_LIMIT) -> None:
        self._lock = threading.Lock()
        self._subs: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._seq = itertools.count(1)
        self.buffer: Deque[Dict[str, Any]] = deque(maxlen=buffer_limit)

    def subscribe(
        self,
        table: TableName,
        case_id: str,
        callback: Callback,
        session_id: Optional[str] = None,
    ) -> Subscription:
        with self._lock:
            sub = Subscription(next(self._ids), table, case_id, session_id, callback)
            self._subs[sub.id] = sub
        logger.info(
            "feed_subscribed id=%s table=%s case_id=%s session_id=%s",
            sub.id,
            table,
            case_id,
            session_id,
        )
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            sub.active = False
            self._subs.pop(sub.id, None)
        logger.info("feed_unsubscribed id=%s table=%s", sub.id, sub.table)

    def subscription_count(self, table: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for s in self._subs.values() if table is None or s.table == table)

    def publish(
        self,
        table: TableName,
        event: EventKind,
        *,
        case_id: str,
        session_id: Optional[str] = None,
        new_row: Optional[Dict[str, Any]] = None,
        old_row: Optional[Dict[str, Any]] = None,
    ) -> ChangeEvent:
        with self._lock:
            change = ChangeEvent(
                table=table,
                event=event,
                case_id=case_id,
                session_id=session_id,
                new_row=new_row,
                old_row=old_row,
                seq=next(self._seq),
            )
            self.buffer.append(change.model_dump())
            targets = [s for s in self._subs.values() if s.matches(change)]
        logger.info(
            "event_publish seq=%s table=%s event=%s case_id=%s session_id=%s subscribers=%s",
            change.seq,
            table,
            event,
            case_id,
            session_id,
            len(targets),
        )
        for sub in targets:
            try:
                sub.callback(change)
            except Exception:
                logger.error("event_subscriber_failed id=%s seq=%s", sub.id, change.seq, exc_info=True)
        return change

    def clear(self) -> None:
        with self._lock:
            for sub in self._subs.values():
                sub.active = False
            self._subs.clear()
            self.buffer.clear()


# Process-wide feed used by the services and the realtime route
FEED = ChangeFeed()


def publish(table: TableName, event: EventKind, **kwargs: Any) -> ChangeEvent:
    """Publish on the process-wide feed."""
    return FEED.publish(table, event, **kwargs)


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered change events; optionally clear the buffer."""
    events = list(FEED.buffer)
    if clear:
        FEED.buffer.clear()
    return events


__all__ = [
    "CASE_CONFIG",
    "SESSION_STATE",
    "RESPONSE",
    "INSERT",
    "UPDATE",
    "DELETE",
    "Subscription",
    "ChangeFeed",
    "FEED",
    "publish",
    "get_buffered_events",
]
