"""One shared ScopeSync per (case, session) in a process, reference counted."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Set, Tuple

from liveboard.sync.gateway import LocalStoreGateway, StoreGateway
from liveboard.sync.scope import ScopeSync

logger = logging.getLogger(__name__)

ScopeKey = Tuple[str, str]


def scope_key(case_id: str, session_id: str) -> ScopeKey:
    return (case_id, (session_id or "").strip().upper())


class SyncHub:
    def __init__(self, gateway: StoreGateway | None = None) -> None:
        self.gateway = gateway or LocalStoreGateway()
        self._lock = threading.Lock()
        self._scopes: Dict[ScopeKey, ScopeSync] = {}
        self._refs: Dict[ScopeKey, int] = {}
        self._retained: Set[ScopeKey] = set()

    def acquire(self, case_id: str, session_id: str) -> ScopeSync:
        key = scope_key(case_id, session_id)
        with self._lock:
            scope = self._scopes.get(key)
            if scope is None:
                scope = ScopeSync(key[0], key[1], self.gateway)
                self._scopes[key] = scope
                self._refs[key] = 0
            self._refs[key] += 1
        # Bootstrap runs outside the hub lock
        scope.start()
        return scope

    def release(self, scope: ScopeSync) -> None:
        key = (scope.case_id, scope.session_id)
        with self._lock:
            if self._scopes.get(key) is not scope:
                return
            self._refs[key] -= 1
            if self._refs[key] > 0:
                return
            del self._scopes[key]
            del self._refs[key]
        scope.stop()
        logger.info("sync_scope_closed case_id=%s session_id=%s", key[0], key[1])

    def retain(self, case_id: str, session_id: str) -> ScopeSync:
        """Acquire a scope that stays open until ``close``; repeated calls share one reference."""
        key = scope_key(case_id, session_id)
        with self._lock:
            scope = self._scopes.get(key) if key in self._retained else None
        if scope is not None:
            if not scope.started:
                scope.start()
            return scope
        scope = self.acquire(case_id, session_id)
        with self._lock:
            if key in self._retained:
                already = True
            else:
                self._retained.add(key)
                already = False
        if already:
            self.release(scope)
        return scope

    @contextmanager
    def scope(self, case_id: str, session_id: str) -> Iterator[ScopeSync]:
        scope = self.acquire(case_id, session_id)
        try:
            yield scope
        finally:
            self.release(scope)

    def refcount(self, case_id: str, session_id: str) -> int:
        with self._lock:
            return self._refs.get(scope_key(case_id, session_id), 0)

    def close(self) -> None:
        with self._lock:
            scopes = list(self._scopes.values())
            self._scopes.clear()
            self._refs.clear()
            self._retained.clear()
        for scope in scopes:
            scope.stop()


__all__ = ["SyncHub", "scope_key"]
