"""
CoreCheck - Shared data models (records, classifications, events).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from corecheck.core.errors import InvalidRequest

ENTRY_DELIMITER = "@"


class Classification(str, Enum):
    """Integrity classification of a single relative path."""

    STABLE = "stable"
    MODIFIED = "modified"
    REMOVED = "removed"
    ADDED = "added"


class Severity(str, Enum):
    """Audit severity tiers, ascending."""

    INFO = "INFO"
    NOTICE = "NOTICE"
    WARNING = "WARNING"
    ERROR = "ERROR"


class RemediationAction(str, Enum):
    """Operator actions accepted by the remediation controller."""

    RESTORE = "restore"
    DELETE = "delete"
    MARK_FIXED = "fixed"

    @classmethod
    def parse(cls, name: Optional[str]) -> "RemediationAction":
        """Map an action name from the request surface; reject unknown names."""
        if name is None:
            raise InvalidRequest("Action requested is not supported.")
        normalized = str(name).strip()
        aliases = {"markFixed": "fixed", "mark_fixed": "fixed", "mark-fixed": "fixed"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidRequest("Action requested is not supported.") from None


@dataclass
class FileRecord:
    """One file observed locally or expected from the manifest."""

    relative_path: str
    checksum: Optional[str] = None
    modified_at: float = 0
    size_bytes: Optional[int] = None
    fixable: bool = False
    suppressed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "relative_path": self.relative_path,
            "checksum": self.checksum,
            "modified_at": self.modified_at,
            "size_bytes": self.size_bytes,
            "fixable": self.fixable,
            "suppressed": self.suppressed,
        }


@dataclass
class SuppressionEntry:
    """A path the operator accepted despite being flagged."""

    key: str
    relative_path: str
    classification_at_suppression: str
    suppressed_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.relative_path,
            "file_status": self.classification_at_suppression,
            "ignored_at": self.suppressed_at,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "SuppressionEntry":
        return cls(
            key=key,
            relative_path=str(data.get("file_path", "")),
            classification_at_suppression=str(data.get("file_status", "")),
            suppressed_at=int(data.get("ignored_at", 0) or 0),
        )


@dataclass(frozen=True)
class FlaggedEntry:
    """Typed form of the `classification@path` wire encoding."""

    classification: Classification
    relative_path: str

    @classmethod
    def decode(cls, raw: str) -> Optional["FlaggedEntry"]:
        """
        Split on the first delimiter into exactly two non-empty parts.

        Returns None for malformed input; callers skip those entries.
        """
        if not isinstance(raw, str) or ENTRY_DELIMITER not in raw:
            return None
        status, path = raw.split(ENTRY_DELIMITER, 1)
        if not status or not path:
            return None
        try:
            classification = Classification(status)
        except ValueError:
            return None
        return cls(classification=classification, relative_path=path)

    def encode(self) -> str:
        return f"{self.classification.value}{ENTRY_DELIMITER}{self.relative_path}"


@dataclass
class ReconciliationResult:
    """Four disjoint classification lists produced by one reconciliation."""

    version: str
    added: list[FileRecord] = field(default_factory=list)
    removed: list[FileRecord] = field(default_factory=list)
    modified: list[FileRecord] = field(default_factory=list)
    stable: list[FileRecord] = field(default_factory=list)

    def by_classification(self) -> dict[Classification, list[FileRecord]]:
        return {
            Classification.ADDED: self.added,
            Classification.REMOVED: self.removed,
            Classification.MODIFIED: self.modified,
            Classification.STABLE: self.stable,
        }

    def actionable(self) -> list[tuple[Classification, FileRecord]]:
        """Non-stable, non-suppressed records tagged with their classification."""
        items: list[tuple[Classification, FileRecord]] = []
        for classification, records in self.by_classification().items():
            if classification is Classification.STABLE:
                continue
            items.extend((classification, r) for r in records if not r.suppressed)
        return items

    @property
    def suppressed_count(self) -> int:
        return sum(
            1
            for records in (self.added, self.removed, self.modified)
            for r in records
            if r.suppressed
        )

    @property
    def not_fixable_count(self) -> int:
        return sum(1 for _, r in self.actionable() if not r.fixable)

    @property
    def is_clean(self) -> bool:
        return not self.actionable()

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            **{c.value: [r.to_dict() for r in rs] for c, rs in self.by_classification().items()},
        }


@dataclass
class RemediationResult:
    """Outcome of one remediation batch."""

    action: RemediationAction
    processed_count: int = 0
    selected_count: int = 0
    affected_paths: list[str] = field(default_factory=list)


@dataclass
class AuditEvent:
    """Structured audit message handed to the event sink."""

    severity: Severity
    message: str
    event: str = "integrity"
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "severity": self.severity.value,
            "message": self.message,
            "metadata": self.metadata,
        }
