"""
CoreCheck - Error taxonomy.

ManifestUnavailable, NotComparable and InvalidRequest abort a whole call.
PartialIO is a value describing one failed file operation; it is returned,
never raised.
"""

from dataclasses import dataclass
from typing import Optional


class IntegrityError(Exception):
    """Base class for errors that abort an integrity operation."""


class ManifestUnavailable(IntegrityError):
    """The release manifest could not be obtained (unreachable, timeout, unsupported version)."""

    def __init__(self, version: str, reason: str = "") -> None:
        self.version = version
        self.reason = reason
        msg = f"Manifest unavailable for version {version!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NotComparable(IntegrityError):
    """A diff was requested for a path that cannot be compared."""


class InvalidRequest(IntegrityError):
    """Malformed remediation batch: unconfirmed, unknown action, or no entries."""


@dataclass
class PartialIO:
    """Non-fatal failure of a single file read/write/delete."""

    path: str
    operation: str
    reason: str

    def __str__(self) -> str:
        return f"{self.operation} failed for {self.path}: {self.reason}"


@dataclass
class FileOpResult:
    """Success/failure of one best-effort file mutation."""

    ok: bool
    path: str
    error: Optional[PartialIO] = None

    @classmethod
    def success(cls, path: str) -> "FileOpResult":
        return cls(ok=True, path=path)

    @classmethod
    def failure(cls, path: str, operation: str, reason: str) -> "FileOpResult":
        return cls(ok=False, path=path, error=PartialIO(path=path, operation=operation, reason=reason))
