"""
CoreCheck - Checksum tree builder.

Walks directories and produces a mapping of normalized relative path to
FileRecord (checksum, size, modification time). Hashing runs on a bounded
thread pool since file I/O dominates the cost.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, Optional

from corecheck.core.hashing import HashEngine
from corecheck.core.models import FileRecord

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 8


class ChecksumTreeBuilder:
    """
    Builds checksum trees. Symlinks and special files are skipped; a file
    that cannot be stat'ed or read is omitted rather than aborting the walk.
    """

    def __init__(
        self,
        hash_engine: Optional[HashEngine] = None,
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        self.hash_engine = hash_engine or HashEngine()
        self.workers = max(1, workers)

    def _iter_files(self, directory: Path, recursive: bool) -> Iterator[Path]:
        try:
            entries = list(os.scandir(directory))
        except OSError as e:
            logger.warning("Cannot list %s: %s", directory, e)
            return
        for entry in entries:
            try:
                if entry.is_symlink():
                    continue
                if entry.is_file(follow_symlinks=False):
                    yield Path(entry.path)
                elif recursive and entry.is_dir(follow_symlinks=False):
                    yield from self._iter_files(Path(entry.path), recursive)
            except OSError as e:
                logger.warning("Skipping %s: %s", entry.path, e)

    def _record(self, path: Path, base: Path) -> Optional[FileRecord]:
        try:
            stat = path.stat()
        except OSError as e:
            logger.warning("Skipping %s: %s", path, e)
            return None
        checksum = self.hash_engine.compute_file_hash(path)
        if checksum is None:
            return None
        return FileRecord(
            relative_path=path.relative_to(base).as_posix(),
            checksum=checksum,
            modified_at=stat.st_mtime,
            size_bytes=stat.st_size,
        )

    def build_tree(
        self,
        root: Path,
        recursive: bool = False,
        base: Optional[Path] = None,
    ) -> dict[str, FileRecord]:
        """
        Hash every regular file under root.

        Args:
            root: Directory to walk.
            recursive: Descend into subdirectories when True; top-level files only otherwise.
            base: Directory keys are relative to; defaults to root.

        Returns:
            Dict mapping POSIX relative path to FileRecord.
        """
        root = Path(root)
        base = Path(base) if base is not None else root
        if not root.is_dir():
            logger.warning("Not a directory: %s", root)
            return {}

        files = list(self._iter_files(root, recursive))
        tree: dict[str, FileRecord] = {}
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            for record in executor.map(lambda p: self._record(p, base), files):
                if record is not None:
                    tree[record.relative_path] = record
        logger.debug("Hashed %d/%d files under %s", len(tree), len(files), root)
        return tree

    def build_installation_tree(
        self, root: Path, core_dirs: list[str]
    ) -> dict[str, FileRecord]:
        """
        Merge a non-recursive walk of the installation root with recursive
        walks of each core subdirectory. Keys are relative to root.
        """
        root = Path(root)
        merged = self.build_tree(root, recursive=False)
        for name in core_dirs:
            subtree = self.build_tree(root / name, recursive=True, base=root)
            for rel_path, record in subtree.items():
                if rel_path in merged:
                    logger.warning("Duplicate tree entry ignored: %s", rel_path)
                    continue
                merged[rel_path] = record
        return merged
