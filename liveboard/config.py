"""Configuration utilities for the live discussion board.

This module loads application configuration with the following rules:
- Primary source: `liveboard_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("liveboard_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Recoverable: log and ignore the unreadable override
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


def _truthy(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


class DatabaseConfig(BaseModel):
    dsn: str
    auto_apply_migrations: bool = Field(default=False)

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class RealtimeConfig(BaseModel):
    default_case_id: str = Field(default="default", min_length=1)
    # Per-connection buffer of change events awaiting delivery on a websocket
    ws_queue_max: int = Field(default=1000, gt=0)


class ClientConfig(BaseModel):
    state_dir: str = Field(default=".liveboard")

    @field_validator("state_dir")
    @classmethod
    def state_dir_must_be_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("client.state_dir must be a non-empty string")
        return v


class HttpConfig(BaseModel):
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class AppConfig(BaseModel):
    database: DatabaseConfig
    realtime: RealtimeConfig
    client: ClientConfig
    http: HttpConfig = Field(default_factory=HttpConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) liveboard_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    # Database
    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )
    auto_migrate_text = (
        _env("AUTO_APPLY_MIGRATIONS")
        or _read_config_file("database.auto_apply_migrations")
        or _base("database.auto_apply_migrations", "false")
    )

    # Realtime fan-out
    default_case_id = (
        _env("LIVEBOARD_DEFAULT_CASE_ID")
        or _read_config_file("realtime.default_case_id")
        or _base("realtime.default_case_id", "default")
    )
    ws_queue_max_text = (
        _env("LIVEBOARD_WS_QUEUE_MAX")
        or _read_config_file("realtime.ws_queue_max")
        or _base("realtime.ws_queue_max", "1000")
    )

    # Client-local state (remembered display names)
    state_dir = (
        _env("LIVEBOARD_CLIENT_STATE_DIR")
        or _read_config_file("client.state_dir")
        or _base("client.state_dir", ".liveboard")
    )

    # Browser origins, comma separated
    cors_text = (
        _env("LIVEBOARD_CORS_ORIGINS")
        or _read_config_file("http.cors_origins")
        or _base("http.cors_origins", "*")
    )

    try:
        cfg = AppConfig(
            database=DatabaseConfig(dsn=dsn, auto_apply_migrations=_truthy(auto_migrate_text)),
            realtime=RealtimeConfig(
                default_case_id=str(default_case_id).strip(),
                ws_queue_max=int(str(ws_queue_max_text).strip()),
            ),
            client=ClientConfig(state_dir=str(state_dir)),
            http=HttpConfig(cors_origins=[o.strip() for o in str(cors_text).split(",") if o.strip()] or ["*"]),
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "RealtimeConfig",
    "ClientConfig",
    "HttpConfig",
    "load_config",
]
