"""
CoreCheck - Integrity Verification Core Module.

Provides checksum tree building, manifest reconciliation, suppression
storage, remediation and diffing for core installation files.
"""

from corecheck.core.alerts import AuditLog
from corecheck.core.diff import DiffRenderer
from corecheck.core.exemptions import PathClassifier
from corecheck.core.hashing import HashEngine
from corecheck.core.manifest import HttpManifestProvider, LocalManifestProvider
from corecheck.core.reconciler import ReconciliationEngine
from corecheck.core.remediation import RemediationController
from corecheck.core.scanner import ChecksumTreeBuilder
from corecheck.core.suppression import SuppressionStore

__all__ = [
    "AuditLog",
    "ChecksumTreeBuilder",
    "DiffRenderer",
    "HashEngine",
    "HttpManifestProvider",
    "LocalManifestProvider",
    "PathClassifier",
    "ReconciliationEngine",
    "RemediationController",
    "SuppressionStore",
]
