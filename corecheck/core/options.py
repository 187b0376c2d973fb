"""
CoreCheck - Persistent option store (scalar get/set).
"""

from pathlib import Path
from typing import Any

from corecheck.core.storage import JsonFileCache

OPTIONS_NAMESPACE = "options"


class OptionStore:
    """Simple scalar options; no transactional guarantees."""

    def __init__(self, state_dir: Path) -> None:
        self._cache = JsonFileCache(state_dir, OPTIONS_NAMESPACE)

    def get(self, name: str, default: Any = None) -> Any:
        return self._cache.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._cache.set(name, value)
