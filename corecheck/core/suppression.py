"""
CoreCheck - Suppression store.

Persistent cache of paths the operator accepted ("marked as fixed") despite
being flagged. Keys are the MD5 of the normalized relative path; each entry
is its own file, so membership tests never need the full entries.
"""

import hashlib
import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Optional

from corecheck.core.exemptions import normalize_path
from corecheck.core.models import Classification, SuppressionEntry
from corecheck.core.options import OptionStore

logger = logging.getLogger(__name__)

SUPPRESSION_NAMESPACE = "integrity"
STARTUP_OPTION = "integrity_startup"
_KEY_RE = re.compile(r"^[0-9a-f]{32}$")
DEFAULT_LANGUAGE = "en_US"

# Suppressed whether or not they exist.
ALWAYS_SUPPRESSED = (
    "php.ini",
    ".htaccess",
    ".htpasswd",
    ".ftpquota",
    "wp-includes/.htaccess",
    "wp-admin/setup-config.php",
    "wp-config.php",
    "sitemap.xml",
    "sitemap.xml.gz",
    "readme.html",
    "error_log",
)

# Suppressed only when present on disk.
SUPPRESSED_IF_PRESENT = (
    "wp-pass.php",
    "wp-rss.php",
    "wp-feed.php",
    "wp-register.php",
    "wp-atom.php",
    "wp-commentsrss2.php",
    "wp-rss2.php",
    "wp-rdf.php",
    "404.php",
    "503.php",
    "500.php",
    "500.shtml",
    "400.shtml",
    "401.shtml",
    "402.shtml",
    "403.shtml",
    "404.shtml",
    "405.shtml",
    "406.shtml",
    "407.shtml",
    "408.shtml",
    "409.shtml",
    "healthcheck.html",
)

# Localized builds ship these with language-specific content.
LOCALIZED_CORE_FILES = (
    "wp-includes/version.php",
    "wp-config-sample.php",
)


def key_for(relative_path: str) -> str:
    """Deterministic fixed-length key for a relative path."""
    return hashlib.md5(normalize_path(relative_path).encode("utf-8")).hexdigest()


class SuppressionStore:
    """
    First-write-wins store of SuppressionEntry values, one JSON file per key
    under <state_dir>/<namespace>/. Entries are created with O_EXCL, so
    concurrent writers in any process either win a key or see it taken;
    writers for distinct paths never touch each other's files.
    """

    def __init__(self, state_dir: Path, namespace: str = SUPPRESSION_NAMESPACE) -> None:
        self.directory = Path(state_dir) / namespace

    def _entry_path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid suppression key: {key!r}")
        return self.directory / f"{key}.json"

    def add(self, key: str, entry: SuppressionEntry) -> bool:
        path = self._entry_path(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            return False
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entry.to_dict(), f, sort_keys=True)
        except OSError:
            logger.exception("Failed to write suppression %s", path)
            try:
                os.unlink(path)
            except OSError:
                pass
            raise
        return True

    def suppress(
        self,
        relative_path: str,
        classification: str,
        suppressed_at: Optional[int] = None,
    ) -> bool:
        """Build the entry for a path and add it. False if already suppressed."""
        path = normalize_path(relative_path)
        if isinstance(classification, Classification):
            classification = classification.value
        entry = SuppressionEntry(
            key=key_for(path),
            relative_path=path,
            classification_at_suppression=classification,
            suppressed_at=int(time.time()) if suppressed_at is None else suppressed_at,
        )
        return self.add(entry.key, entry)

    def keys(self) -> set[str]:
        if not self.directory.is_dir():
            return set()
        return {p.stem for p in self.directory.glob("*.json") if _KEY_RE.match(p.stem)}

    def get_all(self) -> dict[str, SuppressionEntry]:
        entries: dict[str, SuppressionEntry] = {}
        for key in self.keys():
            path = self.directory / f"{key}.json"
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Unreadable suppression entry %s: %s", path, e)
                continue
            if isinstance(data, dict):
                entries[key] = SuppressionEntry.from_dict(key, data)
        return entries

    def contains(self, relative_path: str) -> bool:
        return self._entry_path(key_for(relative_path)).is_file()

    def remove(self, relative_path: str) -> bool:
        """Un-suppress a path. False if it was not suppressed."""
        try:
            os.unlink(self._entry_path(key_for(relative_path)))
        except FileNotFoundError:
            return False
        return True


def apply_startup_suppressions(
    store: SuppressionStore,
    options: OptionStore,
    root: Path,
    language: str = DEFAULT_LANGUAGE,
) -> int:
    """
    Pre-populate suppressions for known-benign paths, once per state dir.

    Returns the number of new entries written (0 when already applied).
    """
    if options.get(STARTUP_OPTION) == "done":
        return 0

    root = Path(root)
    candidates = list(ALWAYS_SUPPRESSED)
    candidates += [p for p in SUPPRESSED_IF_PRESENT if (root / p).exists()]
    if language and language != DEFAULT_LANGUAGE:
        candidates += [p for p in LOCALIZED_CORE_FILES if (root / p).exists()]

    added = 0
    for path in candidates:
        if store.suppress(path, Classification.ADDED.value):
            added += 1

    options.set(STARTUP_OPTION, "done")
    logger.info("Startup suppressions applied: %d new entries", added)
    return added
