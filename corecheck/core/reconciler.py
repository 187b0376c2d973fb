"""
CoreCheck - Reconciliation engine.

Compares the release manifest against the local checksum tree and the
suppression store, producing four disjoint sets:

- stable:   local checksum equals the manifest checksum
- modified: present in both, checksums differ (or local file unreadable)
- removed:  in the manifest, absent locally
- added:    present under the scanned roots, absent from the manifest
"""

import logging
import os
from pathlib import Path
from typing import Optional, Protocol, Sequence

from corecheck.core.errors import ManifestUnavailable
from corecheck.core.exemptions import PathClassifier, normalize_path
from corecheck.core.manifest import DEFAULT_LOCALE, ManifestProvider
from corecheck.core.models import (
    AuditEvent,
    Classification,
    FileRecord,
    ReconciliationResult,
    Severity,
)
from corecheck.core.options import OptionStore
from corecheck.core.scanner import ChecksumTreeBuilder
from corecheck.core.suppression import SuppressionStore, apply_startup_suppressions, key_for

logger = logging.getLogger(__name__)

CORE_DIRECTORIES = ("wp-admin", "wp-includes")
CANONICAL_CONTENT_DIR = "wp-content"


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None:
        ...


def is_writable(path: Path) -> bool:
    return os.access(path, os.W_OK)


class PathResolver:
    """
    Maps a manifest-relative path to its on-disk location, honoring a
    customization directory that was moved or renamed.
    """

    def __init__(self, root: Path, content_dir: Optional[Path] = None) -> None:
        self.root = Path(root)
        self.content_dir = Path(content_dir) if content_dir is not None else None

    def resolve(self, relative_path: str) -> Path:
        direct = self.root / relative_path
        if (
            self.content_dir is not None
            and CANONICAL_CONTENT_DIR in relative_path
            and not os.path.lexists(direct)
        ):
            rewritten = relative_path.replace(CANONICAL_CONTENT_DIR, self.content_dir.name)
            return self.content_dir.parent / rewritten
        return direct


class ReconciliationEngine:
    """Merges manifest, local tree and suppression state into classifications."""

    def __init__(
        self,
        root: Path,
        manifest_provider: ManifestProvider,
        suppressions: SuppressionStore,
        classifier: Optional[PathClassifier] = None,
        tree_builder: Optional[ChecksumTreeBuilder] = None,
        core_dirs: Sequence[str] = CORE_DIRECTORIES,
        content_dir: Optional[Path] = None,
        locale: str = DEFAULT_LOCALE,
        options: Optional[OptionStore] = None,
        audit: Optional[AuditSink] = None,
    ) -> None:
        self.root = Path(root)
        self.manifest_provider = manifest_provider
        self.suppressions = suppressions
        self.classifier = classifier or PathClassifier()
        self.tree_builder = tree_builder or ChecksumTreeBuilder()
        self.core_dirs = list(core_dirs)
        self.resolver = PathResolver(self.root, content_dir)
        self.locale = locale
        self.options = options
        self.audit = audit

    def _load_manifest(self, version: str) -> dict[str, str]:
        manifest = self.manifest_provider.get_manifest(version, self.locale)
        if not manifest:
            raise ManifestUnavailable(version, "version unsupported or manifest service unreachable")
        return {normalize_path(p): checksum for p, checksum in manifest.items()}

    def _local_checksum(self, rel_path: str, full_path: Path, tree: dict[str, FileRecord]) -> Optional[str]:
        record = tree.get(rel_path)
        if record is not None and full_path == self.root / rel_path:
            return record.checksum
        return self.tree_builder.hash_engine.compute_file_hash(full_path)

    @staticmethod
    def _mtime(path: Path) -> float:
        try:
            return path.stat().st_mtime
        except OSError:
            return 0

    @staticmethod
    def _size(path: Path) -> Optional[int]:
        try:
            return path.stat().st_size
        except OSError:
            return None

    def _is_case_alias(
        self, rel_path: str, manifest_lower: dict[str, str], tree: dict[str, FileRecord]
    ) -> bool:
        """
        True when rel_path is a differently-cased spelling of a manifest path for
        the same file. A manifest spelling the walk also listed is a separate
        directory entry (a distinct file or a hard link), never an alias.
        """
        canonical = manifest_lower.get(rel_path.lower())
        if canonical is None or canonical == rel_path or canonical in tree:
            return False
        try:
            return os.path.samefile(self.root / rel_path, self.resolver.resolve(canonical))
        except OSError:
            return False

    def reconcile(self, version: str) -> ReconciliationResult:
        """
        Classify every non-exempt path from the manifest and the local tree.

        Raises:
            ManifestUnavailable: the manifest could not be obtained.
        """
        manifest = self._load_manifest(version)
        if self.options is not None:
            apply_startup_suppressions(self.suppressions, self.options, self.root, self.locale)

        tree = self.tree_builder.build_installation_tree(self.root, self.core_dirs)
        suppressed_keys = self.suppressions.keys()
        result = ReconciliationResult(version=version)

        for rel_path, expected in manifest.items():
            if self.classifier.is_exempt(rel_path):
                continue
            full_path = self.resolver.resolve(rel_path)
            suppressed = key_for(rel_path) in suppressed_keys
            if os.path.exists(full_path):
                local = self._local_checksum(rel_path, full_path, tree)
                if local is not None and local == expected:
                    result.stable.append(
                        FileRecord(relative_path=rel_path, checksum=local, suppressed=suppressed)
                    )
                else:
                    result.modified.append(
                        FileRecord(
                            relative_path=rel_path,
                            checksum=local,
                            modified_at=self._mtime(full_path),
                            size_bytes=self._size(full_path),
                            fixable=is_writable(full_path),
                            suppressed=suppressed,
                        )
                    )
            else:
                result.removed.append(
                    FileRecord(
                        relative_path=rel_path,
                        fixable=is_writable(full_path.parent),
                        suppressed=suppressed,
                    )
                )

        manifest_lower = {p.lower(): p for p in manifest}
        for rel_path, record in tree.items():
            rel_path = normalize_path(rel_path)
            if rel_path in manifest or self.classifier.is_exempt(rel_path):
                continue
            if self._is_case_alias(rel_path, manifest_lower, tree):
                continue
            result.added.append(
                FileRecord(
                    relative_path=rel_path,
                    checksum=record.checksum,
                    modified_at=record.modified_at,
                    size_bytes=record.size_bytes,
                    fixable=is_writable(self.root / rel_path),
                    suppressed=key_for(rel_path) in suppressed_keys,
                )
            )

        logger.info(
            "Reconciled %s: %d stable, %d modified, %d removed, %d added (%d suppressed)",
            version,
            len(result.stable),
            len(result.modified),
            len(result.removed),
            len(result.added),
            result.suppressed_count,
        )
        return result

    def scan(self, version: str) -> ReconciliationResult:
        """Scheduled-scan entry point: reconcile and report actionable discrepancies."""
        try:
            result = self.reconcile(version)
        except ManifestUnavailable as e:
            if self.audit is not None:
                self.audit.emit(AuditEvent(severity=Severity.ERROR, message=str(e), event="scan_checksums"))
            raise
        actionable = result.actionable()
        if actionable and self.audit is not None:
            counts = {c.value: 0 for c in (Classification.ADDED, Classification.MODIFIED, Classification.REMOVED)}
            for classification, _ in actionable:
                counts[classification.value] += 1
            self.audit.emit(
                AuditEvent(
                    severity=Severity.WARNING,
                    message="Core integrity check found %d affected files" % len(actionable),
                    event="scan_checksums",
                    metadata={"version": version, **counts},
                )
            )
        return result
