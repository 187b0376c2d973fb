"""
CoreCheck - Remediation controller.

Applies operator-confirmed bulk actions (restore, delete, mark as fixed) to a
set of flagged entries. Individual file failures reduce the processed count
but never abort the batch; each batch yields one audit event for the affected
paths plus one summary event.
"""

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Optional, Union

from corecheck.core.errors import FileOpResult, InvalidRequest
from corecheck.core.exemptions import normalize_path
from corecheck.core.manifest import ManifestProvider
from corecheck.core.models import (
    AuditEvent,
    FlaggedEntry,
    RemediationAction,
    RemediationResult,
    Severity,
)
from corecheck.core.reconciler import AuditSink, PathResolver
from corecheck.core.suppression import SuppressionStore

logger = logging.getLogger(__name__)

ACTION_TITLES = {
    RemediationAction.RESTORE: "Core file restored",
    RemediationAction.DELETE: "Non-core file deleted",
    RemediationAction.MARK_FIXED: "Core file marked as fixed",
}

ACTION_SEVERITY = {
    RemediationAction.RESTORE: Severity.INFO,
    RemediationAction.DELETE: Severity.NOTICE,
    RemediationAction.MARK_FIXED: Severity.WARNING,
}


def make_parent_dirs(path: Path) -> FileOpResult:
    """Best-effort creation of path's parent directories."""
    parent = path.parent
    if parent.is_dir():
        return FileOpResult.success(str(parent))
    try:
        parent.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as e:
        return FileOpResult.failure(str(parent), "mkdir", str(e))
    return FileOpResult.success(str(parent))


def write_file(path: Path, content: bytes) -> FileOpResult:
    """Replace path's content atomically (temp file in the same directory, then rename)."""
    tmp: Optional[str] = None
    try:
        fd, tmp = tempfile.mkstemp(prefix=".corecheck-", dir=str(path.parent))
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        if path.exists():
            os.chmod(tmp, path.stat().st_mode & 0o7777)
        else:
            os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except OSError as e:
        if tmp is not None:
            try:
                os.unlink(tmp)
            except OSError:
                pass
        return FileOpResult.failure(str(path), "write", str(e))
    return FileOpResult.success(str(path))


def delete_file(path: Path) -> FileOpResult:
    try:
        os.unlink(path)
    except OSError as e:
        return FileOpResult.failure(str(path), "delete", str(e))
    return FileOpResult.success(str(path))


def _is_confined(relative_path: str) -> bool:
    """Reject absolute paths and parent-directory traversal."""
    pure = PurePosixPath(relative_path)
    return not pure.is_absolute() and ".." not in pure.parts and relative_path.strip() != ""


class RemediationController:
    """The only component that mutates the filesystem or suppression store on operator request."""

    def __init__(
        self,
        root: Path,
        manifest_provider: ManifestProvider,
        suppressions: SuppressionStore,
        version: str,
        audit: AuditSink,
        content_dir: Optional[Path] = None,
    ) -> None:
        self.root = Path(root)
        self.manifest_provider = manifest_provider
        self.suppressions = suppressions
        self.version = version
        self.audit = audit
        self.resolver = PathResolver(self.root, content_dir)

    @staticmethod
    def decode_entries(entries: Iterable[Union[str, FlaggedEntry]]) -> list[FlaggedEntry]:
        """Decode wire-encoded entries at the boundary; malformed ones are skipped."""
        decoded: list[FlaggedEntry] = []
        for raw in entries:
            entry = raw if isinstance(raw, FlaggedEntry) else FlaggedEntry.decode(raw)
            if entry is None:
                logger.warning("Skipping malformed entry: %r", raw)
                continue
            decoded.append(entry)
        return decoded

    def _restore(self, entry: FlaggedEntry, full_path: Path) -> Optional[FileOpResult]:
        content = self.manifest_provider.get_original_content(entry.relative_path, self.version)
        if content is None:
            logger.warning("No original content for %s", entry.relative_path)
            return None
        mkdir = make_parent_dirs(full_path)
        if not mkdir.ok:
            logger.warning("%s", mkdir.error)
            return None
        return write_file(full_path, content)

    def _mark_fixed(self, entry: FlaggedEntry, full_path: Path) -> FileOpResult:
        try:
            added = self.suppressions.suppress(entry.relative_path, entry.classification.value)
        except OSError as e:
            return FileOpResult.failure(str(full_path), "suppress", str(e))
        if not added:
            return FileOpResult.failure(str(full_path), "suppress", "already suppressed")
        return FileOpResult.success(str(full_path))

    def apply(
        self,
        action: Union[str, RemediationAction],
        entries: Iterable[Union[str, FlaggedEntry]],
        confirmed: bool = True,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> RemediationResult:
        """
        Run one remediation batch.

        Raises:
            InvalidRequest: not confirmed, unknown action, or no entries. No mutation happens.
        """
        if not confirmed:
            raise InvalidRequest("You need to confirm that you understand the risk of this operation.")
        if not isinstance(action, RemediationAction):
            action = RemediationAction.parse(action)
        raw_entries = list(entries or [])
        if not raw_entries:
            raise InvalidRequest("No files were selected.")

        result = RemediationResult(action=action, selected_count=len(raw_entries))
        stop = should_stop or (lambda: False)

        for entry in self.decode_entries(raw_entries):
            if stop():
                logger.warning("Remediation interrupted after %d entries", result.processed_count)
                break
            rel_path = normalize_path(entry.relative_path)
            if not _is_confined(rel_path):
                logger.warning("Skipping path outside the installation: %s", entry.relative_path)
                continue
            entry = FlaggedEntry(entry.classification, rel_path)
            full_path = self.resolver.resolve(rel_path)

            if action is RemediationAction.RESTORE:
                op = self._restore(entry, full_path)
                if op is None:
                    continue
                result.affected_paths.append(str(full_path))
            elif action is RemediationAction.DELETE:
                op = delete_file(full_path)
                if op.ok:
                    result.affected_paths.append(str(full_path))
            elif action is RemediationAction.MARK_FIXED:
                op = self._mark_fixed(entry, full_path)
                result.affected_paths.append(str(full_path))
            else:
                raise InvalidRequest(f"Unhandled action: {action}")

            if op.ok:
                result.processed_count += 1
            else:
                logger.warning("%s", op.error)

        self._report(result)
        return result

    def _report(self, result: RemediationResult) -> None:
        if result.affected_paths:
            template = "%s: (multiple entries): %s" if len(result.affected_paths) > 1 else "%s: %s"
            message = template % (ACTION_TITLES[result.action], ",".join(result.affected_paths))
            self.audit.emit(
                AuditEvent(
                    severity=ACTION_SEVERITY[result.action],
                    message=message,
                    event=f"integrity_{result.action.value}",
                    metadata={"paths": list(result.affected_paths)},
                )
            )
        self.audit.emit(
            AuditEvent(
                severity=Severity.INFO,
                message="%d out of %d files were successfully processed."
                % (result.processed_count, result.selected_count),
                event="integrity_summary",
                metadata={"action": result.action.value},
            )
        )
