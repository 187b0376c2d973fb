"""
CoreCheck - Namespaced JSON file cache.

Backs the option store. One file per namespace under the state directory;
writes go through a temp file and os.replace so readers never see a
half-written file.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonFileCache:
    """Key/value cache persisted as a single JSON object, no expiry."""

    def __init__(self, state_dir: Path, namespace: str) -> None:
        self.path = Path(state_dir) / f"{namespace}.json"
        self.namespace = namespace
        self._lock = threading.Lock()

    def _load(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Unreadable cache %s, treating as empty: %s", self.path, e)
            return {}

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.namespace}-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError:
            logger.exception("Failed to save cache %s", self.path)
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise

    def get_all(self) -> dict[str, Any]:
        with self._lock:
            return self._load()

    def get(self, key: str, default: Any = None) -> Any:
        return self.get_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

