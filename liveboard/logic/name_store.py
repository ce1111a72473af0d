"""Client-local remembered display names.

One JSON object per state directory maps ``student_name_{case}_{session}``
to the name a student last joined with. Writes replace the file atomically.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional

from liveboard.config import AppConfig, load_config

logger = logging.getLogger(__name__)

FILE_NAME = "names.json"


def name_key(case_id: str, session_id: str) -> str:
    return f"student_name_{case_id}_{(session_id or '').strip().upper()}"


class NameStore:
    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.path = Path(directory) / FILE_NAME
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AppConfig | None = None) -> "NameStore":
        """Store under the configured client state directory."""
        return cls((config or load_config()).client.state_dir)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.error("name_store_unreadable path=%s", str(self.path), exc_info=True)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def _write(self, content: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(content, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, case_id: str, session_id: str) -> Optional[str]:
        with self._lock:
            return self._load().get(name_key(case_id, session_id))

    def remember(self, case_id: str, session_id: str, name: str) -> str:
        """Persist the trimmed name; blank names are rejected with ValueError."""
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValueError("name must be non-empty")
        with self._lock:
            content = self._load()
            content[name_key(case_id, session_id)] = trimmed
            self._write(content)
        return trimmed

    def forget(self, case_id: str, session_id: str) -> None:
        with self._lock:
            content = self._load()
            if content.pop(name_key(case_id, session_id), None) is not None:
                self._write(content)


__all__ = ["NameStore", "name_key", "FILE_NAME"]
