from __future__ import annotations

"""Functional test bootstrap for the live discussion board.

All functional tests share one file-backed SQLite database. The environment
is pointed at it before any import of ``liveboard`` so the engine singleton
resolves to the same URL; SQLite migrations are applied once per session with
a journal kept beside the database file. Every test starts from empty tables
and a change feed with no subscribers.
"""

import os
import pathlib

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_TMP = _ROOT / "tmp"
_DB_FILE = _TMP / "functional_tests.db"
_JOURNAL = _TMP / "functional_tests_journal.json"
_TMP.mkdir(parents=True, exist_ok=True)
for _stale in (_DB_FILE, _JOURNAL):
    if _stale.exists():
        _stale.unlink()

# Use a file-backed SQLite DB so worker threads see one database
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Migrations are applied explicitly below
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"
os.environ["LIVEBOARD_CLIENT_STATE_DIR"] = str(_TMP / "client_state")


def _apply_sqlite_migrations() -> None:
    from liveboard.db.base import get_engine
    from liveboard.db.migrations_runner import apply_migrations

    engine = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(engine, migrations_dir=str(_ROOT / "sqlite_migrations"), journal_path=str(_JOURNAL))


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap():
    """Session-level bootstrap: apply migrations once for the shared DB."""
    _apply_sqlite_migrations()
    yield


@pytest.fixture(autouse=True)
def clean_store():
    from liveboard.db.base import delete_all_rows
    from liveboard.logic import events

    delete_all_rows()
    events.FEED.clear()
    yield
    events.FEED.clear()


@pytest.fixture()
def client():
    from fastapi.testclient import TestClient

    from liveboard.main import create_app

    with TestClient(create_app()) as c:
        yield c


@pytest.fixture()
def hub():
    from liveboard.sync.hub import SyncHub

    h = SyncHub()
    yield h
    h.close()


@pytest.fixture()
def name_store_factory(tmp_path):
    """Return a factory building one NameStore per simulated student device."""
    from liveboard.logic.name_store import NameStore

    def make(device: str) -> NameStore:
        return NameStore(tmp_path / device)

    return make
