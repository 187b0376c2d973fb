"""Shared test fixtures for CoreCheck tests."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path

import pytest

from corecheck.core.manifest import LocalManifestProvider
from corecheck.core.models import AuditEvent
from corecheck.core.options import OptionStore
from corecheck.core.reconciler import ReconciliationEngine
from corecheck.core.remediation import RemediationController
from corecheck.core.suppression import SuppressionStore

VERSION = "6.4.2"

RELEASE_FILES = {
    "index.php": b"<?php\n// front controller\nrequire 'wp-blog-header.php';\n",
    "wp-login.php": b"<?php\n// login\n",
    "wp-admin/admin.php": b"<?php\n// admin bootstrap\n",
    "wp-admin/includes/file.php": b"<?php\n// file helpers\n",
    "wp-includes/version.php": b"<?php\n$wp_version = '6.4.2';\n$wp_local_package = 'en_US';\n",
    "wp-includes/functions.php": b"<?php\nfunction a() {}\nfunction b() {}\n",
    "wp-content/index.php": b"<?php\n// Silence is golden.\n",
    "wp-content/themes/twenty/style.php": b"<?php\n// theme\n",
}


def md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def write_files(base: Path, files: dict[str, bytes]) -> None:
    for rel, data in files.items():
        path = base / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


class MemoryAuditLog:
    """Collects emitted audit events in a list."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)


@dataclass
class Installation:
    root: Path
    release_dir: Path
    manifest_path: Path
    state_dir: Path
    provider: LocalManifestProvider
    suppressions: SuppressionStore
    audit: MemoryAuditLog

    def engine(self, **kwargs) -> ReconciliationEngine:
        return ReconciliationEngine(
            root=self.root,
            manifest_provider=self.provider,
            suppressions=self.suppressions,
            audit=self.audit,
            **kwargs,
        )

    def controller(self, **kwargs) -> RemediationController:
        return RemediationController(
            root=self.root,
            manifest_provider=self.provider,
            suppressions=self.suppressions,
            version=VERSION,
            audit=self.audit,
            **kwargs,
        )

    def options(self) -> OptionStore:
        return OptionStore(self.state_dir)


def make_installation(tmp_path: Path, manifest: dict[str, str], release: dict[str, bytes], local: dict[str, bytes]) -> Installation:
    root = tmp_path / "site"
    release_dir = tmp_path / "release"
    state_dir = tmp_path / "state"
    root.mkdir()
    release_dir.mkdir()
    write_files(release_dir, release)
    write_files(root, local)
    manifest_path = tmp_path / "checksums.json"
    manifest_path.write_text(json.dumps({"checksums": manifest}), encoding="utf-8")
    return Installation(
        root=root,
        release_dir=release_dir,
        manifest_path=manifest_path,
        state_dir=state_dir,
        provider=LocalManifestProvider(manifest_path, release_dir),
        suppressions=SuppressionStore(state_dir),
        audit=MemoryAuditLog(),
    )


@pytest.fixture
def installation(tmp_path: Path) -> Installation:
    """A pristine installation matching the release exactly."""
    manifest = {rel: md5(data) for rel, data in RELEASE_FILES.items()}
    return make_installation(tmp_path, manifest, RELEASE_FILES, RELEASE_FILES)
