"""Per (case, session) client cache kept consistent with the store.

Protocol:

1. Subscribe to ``session_state`` and ``response`` changes for the scope.
2. Bootstrap: one point query for the SessionState, one range query for the
   responses in store order.
3. Merge each change event into the cache:
   - session_state: replace the snapshot unless the event's version is older
     than the cached one;
   - response insert: add unless the id is already cached, placed by
     ``(created_at, id)``;
   - response delete: drop the response cache and re-run the range query.
4. Teardown: unsubscribe both streams.

Subscribing happens before the bootstrap and under the scope lock, so an
event published while the bootstrap runs is applied after it rather than
lost in the gap. A failed bootstrap (or resync) leaves the scope not ready:
events are dropped and the snapshot stays as it was until ``reconnect``
bootstraps successfully. Listeners hear only events that changed the cache.
"""

from __future__ import annotations

import bisect
import logging
import threading
from typing import Any, Callable, List, Optional, Tuple

from liveboard.logic import events
from liveboard.logic.errors import StoreConnectionError
from liveboard.models.events import ChangeEvent
from liveboard.models.response import ResponseRecord
from liveboard.models.session_state import SessionState
from liveboard.sync.gateway import StoreGateway

logger = logging.getLogger(__name__)

Listener = Callable[[ChangeEvent], None]


class ScopeSync:
    def __init__(self, case_id: str, session_id: str, gateway: StoreGateway) -> None:
        self.case_id = case_id
        self.session_id = session_id
        self._gateway = gateway
        self._lock = threading.RLock()
        self._handles: List[Any] = []
        self._listeners: List[Listener] = []
        self._bootstrapping = False
        # Set by a successful bootstrap; events are dropped while False
        self._ready = False
        self._pending: List[ChangeEvent] = []
        self.state: Optional[SessionState] = None
        self._responses: List[ResponseRecord] = []
        self._ids: set[int] = set()
        self.connected = False
        self.error: Optional[StoreConnectionError] = None

    # Lifecycle

    def start(self) -> None:
        with self._lock:
            if self._handles:
                return
            self._ready = False
            self._handles = [
                self._gateway.subscribe(events.SESSION_STATE, self.case_id, self.session_id, self.handle_event),
                self._gateway.subscribe(events.RESPONSE, self.case_id, self.session_id, self.handle_event),
            ]
            self.connected = True
            self._bootstrap()
        logger.info("sync_started case_id=%s session_id=%s", self.case_id, self.session_id)

    def stop(self) -> None:
        """Unsubscribe; the cache is kept as a stale snapshot."""
        with self._lock:
            handles, self._handles = self._handles, []
            for handle in handles:
                self._gateway.unsubscribe(handle)
            self.connected = False
            self._ready = False
            self._pending = []
        if handles:
            logger.info("sync_stopped case_id=%s session_id=%s", self.case_id, self.session_id)

    def reconnect(self) -> None:
        self.stop()
        self.start()

    @property
    def started(self) -> bool:
        return bool(self._handles)

    def _bootstrap(self) -> None:
        self._bootstrapping = True
        try:
            state = self._gateway.fetch_state(self.case_id, self.session_id)
            responses = self._gateway.fetch_responses(self.case_id, self.session_id)
        except StoreConnectionError as exc:
            self.error = exc
            # The cache cannot mirror the store until a reconnect bootstraps again
            self._pending = []
            logger.error(
                "sync_bootstrap_failed case_id=%s session_id=%s error=%s",
                self.case_id,
                self.session_id,
                exc,
            )
            return
        finally:
            self._bootstrapping = False
        self.error = None
        self._ready = True
        if self.state is None or state.version >= self.state.version:
            self.state = state
        self._replace_responses(responses)
        pending, self._pending = self._pending, []
        for event in pending:
            self._apply(event)
        logger.info(
            "sync_bootstrapped case_id=%s session_id=%s version=%s responses=%s",
            self.case_id,
            self.session_id,
            state.version,
            len(responses),
        )

    # Event merge

    def handle_event(self, event: ChangeEvent) -> None:
        with self._lock:
            if not self._handles:
                return
            if self._bootstrapping:
                self._pending.append(event)
                return
            if not self._ready:
                logger.info(
                    "sync_event_dropped case_id=%s session_id=%s table=%s seq=%s",
                    self.case_id,
                    self.session_id,
                    event.table,
                    event.seq,
                )
                return
            if not self._apply(event):
                return
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.error(
                        "sync_listener_failed case_id=%s session_id=%s seq=%s",
                        self.case_id,
                        self.session_id,
                        event.seq,
                        exc_info=True,
                    )

    def _apply(self, event: ChangeEvent) -> bool:
        """Merge ``event`` into the cache; return whether the cache changed."""
        if event.table == events.SESSION_STATE:
            if event.new_row is None:
                return False
            incoming = SessionState.model_validate(event.new_row)
            if self.state is not None and incoming.version < self.state.version:
                logger.info(
                    "sync_stale_state_discarded case_id=%s session_id=%s cached=%s incoming=%s",
                    self.case_id,
                    self.session_id,
                    self.state.version,
                    incoming.version,
                )
                return False
            if incoming == self.state:
                return False
            self.state = incoming
            return True
        if event.table == events.RESPONSE:
            if event.event == events.INSERT and event.new_row is not None:
                return self._add_response(ResponseRecord.model_validate(event.new_row))
            if event.event == events.DELETE:
                return self._resync_responses()
        return False

    def _add_response(self, record: ResponseRecord) -> bool:
        if record.id in self._ids:
            return False
        keys = [r.order_key for r in self._responses]
        self._responses.insert(bisect.bisect_right(keys, record.order_key), record)
        self._ids.add(record.id)
        return True

    def _replace_responses(self, responses: List[ResponseRecord]) -> None:
        ordered = sorted(responses, key=lambda r: r.order_key)
        self._responses = ordered
        self._ids = {r.id for r in ordered}

    def _resync_responses(self) -> bool:
        try:
            responses = self._gateway.fetch_responses(self.case_id, self.session_id)
        except StoreConnectionError as exc:
            self.error = exc
            # Rows may have been deleted; stop merging until a reconnect
            self._ready = False
            logger.error("sync_resync_failed case_id=%s session_id=%s", self.case_id, self.session_id)
            return False
        self._replace_responses(responses)
        logger.info(
            "sync_resync case_id=%s session_id=%s responses=%s",
            self.case_id,
            self.session_id,
            len(responses),
        )
        return True

    # Reads

    @property
    def loading(self) -> bool:
        return self.state is None

    @property
    def responses(self) -> List[ResponseRecord]:
        with self._lock:
            return list(self._responses)

    def responses_for_step(self, step: int) -> List[ResponseRecord]:
        with self._lock:
            return [r for r in self._responses if r.step == step]

    def snapshot(self) -> Tuple[Optional[SessionState], List[ResponseRecord]]:
        with self._lock:
            return self.state, list(self._responses)

    def add_listener(self, listener: Listener) -> Tuple[Optional[SessionState], List[ResponseRecord]]:
        """Register ``listener`` for applied events and return the snapshot it continues from."""
        with self._lock:
            self._listeners.append(listener)
            return self.state, list(self._responses)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)


__all__ = ["ScopeSync", "Listener"]
