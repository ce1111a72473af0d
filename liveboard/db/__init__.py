"""Database bootstrap utilities for the live discussion board.

Exposes the shared engine and the migrations runner that applies SQL files
from the local ``migrations/`` (PostgreSQL) or ``sqlite_migrations/``
(SQLite) directory.
"""

from liveboard.db.base import get_engine, translate_store_errors
from liveboard.db.migrations_runner import apply_migrations, migrations_dir_for

__all__ = [
    "get_engine",
    "translate_store_errors",
    "apply_migrations",
    "migrations_dir_for",
]
