"""JSON file for user-editable studio settings.

Holds prompt templates, activity lists and counts, archetypes and the
per-installation pseudo user ID.  API keys are deliberately not accepted
here; they come from ``st.secrets`` / environment via ``src.config``.
"""
from __future__ import annotations

import json
import logging
import secrets
import threading
import time
from pathlib import Path
from typing import Any

_logger = logging.getLogger(__name__)

KNOWN_KEYS = frozenset({"prompts", "activities", "activity_counts", "archetypes", "user_id"})


class SettingsStore:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            _logger.warning("Could not read settings from %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            _logger.warning("Could not write settings to %s: %s", self.path, exc)

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        if key not in KNOWN_KEYS:
            raise KeyError(f"Unknown settings key: {key}")
        with self._lock:
            data = self.load()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self.load()
            if data.pop(key, None) is not None:
                self._write(data)

    def get_or_create_user_id(self) -> str:
        with self._lock:
            data = self.load()
            user_id = str(data.get("user_id") or "").strip()
            if user_id:
                return user_id
            user_id = f"user_{int(time.time() * 1000)}_{secrets.token_hex(5)}"
            data["user_id"] = user_id
            self._write(data)
            return user_id
