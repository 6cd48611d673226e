"""Small JSON-backed key/value store for settings that survive restarts."""

import json
import logging
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


class SettingsStore:
    """Key/value settings persisted to a JSON file.

    A missing or unreadable file reads as empty, and failed writes are
    logged and dropped: the player works without it, it just forgets.
    Safe to share between the UI thread and worker threads.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data = self._load()

    def _load(self) -> dict:
        try:
            if not self.path.exists():
                return {}
            with self.path.open('r', encoding='utf-8') as f:
                data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring settings file %s: not a JSON object", self.path)
        except (OSError, ValueError) as e:
            logger.warning("Could not read settings from %s: %s", self.path, e)
        return {}

    def _save(self) -> None:
        # caller holds self._lock
        try:
            with self.path.open('w', encoding='utf-8') as f:
                json.dump(self._data, f)
        except (OSError, TypeError) as e:
            logger.warning("Could not save settings to %s: %s", self.path, e)

    def get(self, key: str, default=None):
        with self._lock:
            return self._data.get(key, default)

    def put(self, key: str, value) -> None:
        with self._lock:
            self._data[key] = value
            self._save()

    def delete(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._save()
