"""
CoreCheck - Line-level diff of a local file against its original release content.
"""

import difflib
import logging
from pathlib import Path
from typing import Optional

from corecheck.core.errors import NotComparable
from corecheck.core.exemptions import normalize_path
from corecheck.core.manifest import DEFAULT_LOCALE, ManifestProvider
from corecheck.core.reconciler import PathResolver

logger = logging.getLogger(__name__)


def _lines(content: bytes) -> list[str]:
    return content.decode("utf-8", errors="replace").splitlines(keepends=True)


class DiffRenderer:
    """Renders a unified diff (original -> local) for one manifest file."""

    def __init__(
        self,
        root: Path,
        manifest_provider: ManifestProvider,
        content_dir: Optional[Path] = None,
        locale: str = DEFAULT_LOCALE,
        context_lines: int = 3,
    ) -> None:
        self.manifest_provider = manifest_provider
        self.resolver = PathResolver(Path(root), content_dir)
        self.locale = locale
        self.context_lines = context_lines

    def diff(self, relative_path: str, version: str) -> str:
        rel_path = normalize_path(relative_path)
        manifest = self.manifest_provider.get_manifest(version, self.locale)
        if not manifest:
            raise NotComparable(f"Version {version} is not supported.")
        if rel_path not in manifest:
            raise NotComparable(f"{rel_path} is not part of the official release.")
        local_path = self.resolver.resolve(rel_path)
        if not local_path.is_file():
            raise NotComparable(f"Cannot check the integrity of a non-existing file: {rel_path}")
        original = self.manifest_provider.get_original_content(rel_path, version)
        if original is None:
            raise NotComparable(f"Original content of {rel_path} is unavailable.")
        try:
            local = local_path.read_bytes()
        except OSError as e:
            raise NotComparable(f"Cannot read {rel_path}: {e}") from e

        rendered = "".join(
            difflib.unified_diff(
                _lines(original),
                _lines(local),
                fromfile=f"original/{rel_path}",
                tofile=f"local/{rel_path}",
                n=self.context_lines,
            )
        )
        logger.debug("Diff for %s: %d chars", rel_path, len(rendered))
        return rendered
