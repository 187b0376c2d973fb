"""
CoreCheck - Installation version and language detection.

Reads wp-includes/version.php for $wp_version and $wp_local_package.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

VERSION_FILE = "wp-includes/version.php"
_VERSION_RE = re.compile(r"""\$wp_version\s*=\s*['"]([^'"]+)['"]""")
_LOCALE_RE = re.compile(r"""\$wp_local_package\s*=\s*['"]([^'"]+)['"]""")


@dataclass
class InstallationInfo:
    version: Optional[str] = None
    locale: Optional[str] = None


def detect_installation(root: Path) -> InstallationInfo:
    """Return the version and local package found in version.php, or empty fields."""
    path = Path(root) / VERSION_FILE
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return InstallationInfo()
    version = _VERSION_RE.search(text)
    locale = _LOCALE_RE.search(text)
    return InstallationInfo(
        version=version.group(1) if version else None,
        locale=locale.group(1) if locale else None,
    )
