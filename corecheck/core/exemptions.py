"""
CoreCheck - Path exemption rules.

Decides whether a relative path is excluded from integrity checking entirely:
plugin backups, database dumps, top-level static assets, the themes/plugins
subtree, site-verification pages and favicons.
"""

import re
from typing import Iterable, Optional

DEFAULT_EXEMPT_PATTERNS = (
    r"^sucuri-[0-9a-z\-]+\.php$",
    r"^\S+-sucuri-db-dump-gzip-[0-9]{10}-[0-9a-z]{32}\.gz$",
    r"^([^/]*)\.(pdf|css|txt|jpg|gif|png|jpeg)$",
    r"^wp-content/(themes|plugins)/.+",
    r"^google[0-9a-z]{16}\.html$",
    r"^pinterest-[0-9a-z]{5}\.html$",
    r"\.ico$",
)


def normalize_path(path: str) -> str:
    """Unify separators and strip a leading './'."""
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


class PathClassifier:
    """Ordered list of precompiled exemption patterns; first match wins."""

    def __init__(self, extra_patterns: Optional[Iterable[str]] = None) -> None:
        patterns = list(DEFAULT_EXEMPT_PATTERNS) + list(extra_patterns or [])
        self._rules = tuple(re.compile(p) for p in patterns)

    @property
    def patterns(self) -> list[str]:
        return [r.pattern for r in self._rules]

    def is_exempt(self, relative_path: str) -> bool:
        path = normalize_path(relative_path)
        for rule in self._rules:
            if rule.search(path):
                return True
        return False
