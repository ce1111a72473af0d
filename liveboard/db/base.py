"""SQLAlchemy engine and store error translation.

The service targets PostgreSQL in production but supports SQLite for local
development and CI. Repositories issue SQL through ``text()`` against the
shared engine; no declarative models are defined here.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _db_url() -> str:
    env_url = os.getenv("TEST_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    from liveboard.config import load_config

    return load_config().database.dsn


# Module-level cached Engine to ensure a single shared engine per URL
_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def get_engine(url: str | None = None) -> Engine:
    """Return a singleton SQLAlchemy Engine for the given URL.

    Reuses a module-level Engine so repositories share the same pool.
    For SQLite in-memory URLs, use a StaticPool to keep a single connection
    alive across sessions and threads during tests.
    """
    global _ENGINE, _ENGINE_URL
    resolved_url = url or _db_url()

    if _ENGINE is None or _ENGINE_URL != resolved_url:
        kwargs: dict = {"future": True, "pool_pre_ping": True}
        if resolved_url.startswith("sqlite"):
            # Worker threads share pooled connections
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in resolved_url:
                kwargs["poolclass"] = StaticPool
        _ENGINE = create_engine(resolved_url, **kwargs)
        _ENGINE_URL = resolved_url
        logger.info("db_engine_created dialect=%s", _ENGINE.dialect.name)

    return _ENGINE


@contextmanager
def translate_store_errors(operation: str) -> Generator[None, None, None]:
    """Re-raise driver connectivity failures as ``StoreConnectionError``.

    Integrity violations pass through untouched so callers can map them to
    domain conflicts.
    """
    from liveboard.logic.errors import StoreConnectionError

    try:
        yield
    except IntegrityError:
        raise
    except (OperationalError, InterfaceError) as exc:
        logger.error("store_unavailable operation=%s", operation, exc_info=True)
        raise StoreConnectionError(f"store unavailable during {operation}", operation=operation) from exc


# Child tables first
STORE_TABLES = ("response", "session_state", "case_config")


def delete_all_rows(tables: tuple[str, ...] = STORE_TABLES) -> None:
    """Empty the given tables in one transaction. Test support only."""
    with translate_store_errors("delete_all_rows"):
        with get_engine().begin() as conn:
            for table in tables:
                conn.execute(sql_text(f"DELETE FROM {table}"))
