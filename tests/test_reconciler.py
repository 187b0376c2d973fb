"""Tests for manifest reconciliation."""

from __future__ import annotations

import os

import pytest

from corecheck.core.errors import ManifestUnavailable
from corecheck.core.hashing import HashEngine
from corecheck.core.models import Classification, Severity
from corecheck.core.suppression import STARTUP_OPTION

from conftest import RELEASE_FILES, VERSION, make_installation, md5, write_files


def _paths(records):
    return sorted(r.relative_path for r in records)


def test_basic_scenario(tmp_path):
    inst = make_installation(
        tmp_path,
        manifest={"a.php": "h1", "b.php": "h2"},
        release={},
        local={},
    )
    (inst.root / "a.php").write_bytes(b"one")
    (inst.root / "c.php").write_bytes(b"three")
    inst.manifest_path.write_text(
        '{"checksums": {"a.php": "%s", "b.php": "%s"}}' % (md5(b"one"), md5(b"two")),
        encoding="utf-8",
    )
    result = inst.engine().reconcile(VERSION)
    assert _paths(result.stable) == ["a.php"]
    assert _paths(result.removed) == ["b.php"]
    assert _paths(result.added) == ["c.php"]
    assert result.modified == []


def test_pristine_installation_is_clean(installation):
    result = installation.engine().reconcile(VERSION)
    assert result.is_clean
    assert result.modified == result.removed == result.added == []
    # themes subtree is exempt
    assert "wp-content/themes/twenty/style.php" not in _paths(result.stable)
    assert "wp-content/index.php" in _paths(result.stable)


def test_classifications_are_disjoint_and_complete(installation):
    root = installation.root
    (root / "wp-admin/admin.php").write_bytes(b"<?php evil();\n")
    (root / "wp-includes/functions.php").unlink()
    write_files(root, {"wp-includes/shell.php": b"x", "wp-admin/images/logo.png": b"png", "cache/x.php": b"c"})

    result = installation.engine().reconcile(VERSION)

    assert _paths(result.modified) == ["wp-admin/admin.php"]
    assert _paths(result.removed) == ["wp-includes/functions.php"]
    assert _paths(result.added) == ["wp-admin/images/logo.png", "wp-includes/shell.php"]
    sets = [set(_paths(rs)) for rs in (result.stable, result.modified, result.removed, result.added)]
    union = set().union(*sets)
    assert sum(len(s) for s in sets) == len(union)
    expected = {p for p in RELEASE_FILES if not p.startswith("wp-content/themes/")}
    expected |= {"wp-includes/shell.php", "wp-admin/images/logo.png"}
    assert union == expected


def test_modified_record_details(installation):
    path = installation.root / "wp-admin/admin.php"
    path.write_bytes(b"changed")
    os.utime(path, (1_600_000_000, 1_600_000_000))
    record = installation.engine().reconcile(VERSION).modified[0]
    assert record.modified_at == 1_600_000_000
    assert record.size_bytes == len(b"changed")
    assert record.fixable is True
    assert record.checksum == md5(b"changed")


def test_stable_ignores_mtime(installation):
    path = installation.root / "index.php"
    os.utime(path, (0, 0))
    result = installation.engine().reconcile(VERSION)
    assert "index.php" in _paths(result.stable)


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
def test_unreadable_core_file_is_modified_not_stable(installation):
    path = installation.root / "wp-login.php"
    path.chmod(0)
    try:
        result = installation.engine().reconcile(VERSION)
    finally:
        path.chmod(0o644)
    assert "wp-login.php" in _paths(result.modified)
    assert "wp-login.php" not in _paths(result.stable)


def test_unhashable_core_file_is_modified_not_stable(installation, monkeypatch):
    original = HashEngine.compute_file_hash

    def failing_hash(self, file_path):
        if file_path.name == "wp-login.php":
            return None
        return original(self, file_path)

    monkeypatch.setattr(HashEngine, "compute_file_hash", failing_hash)
    result = installation.engine().reconcile(VERSION)
    record = next(r for r in result.modified if r.relative_path == "wp-login.php")
    assert record.checksum is None
    assert "wp-login.php" not in _paths(result.stable)
    assert "wp-login.php" not in _paths(result.added)


def test_suppressed_entries_hidden_but_counted(installation):
    (installation.root / "wp-includes/shell.php").write_bytes(b"x")
    installation.suppressions.suppress("wp-includes/shell.php", "added")
    result = installation.engine().reconcile(VERSION)
    assert _paths(result.added) == ["wp-includes/shell.php"]
    assert result.added[0].suppressed
    assert result.actionable() == []
    assert result.suppressed_count == 1
    assert result.is_clean


def test_manifest_unavailable_is_not_clean(installation):
    installation.manifest_path.write_text('{"checksums": false}', encoding="utf-8")
    with pytest.raises(ManifestUnavailable):
        installation.engine().reconcile(VERSION)


def test_scan_reports_manifest_failure(installation):
    installation.manifest_path.unlink()
    with pytest.raises(ManifestUnavailable):
        installation.engine().scan(VERSION)
    assert installation.audit.events[-1].severity is Severity.ERROR


def test_scan_emits_one_event_for_discrepancies(installation):
    (installation.root / "index.php").write_bytes(b"tampered")
    (installation.root / "extra.php").write_bytes(b"new")
    installation.engine().scan(VERSION)
    assert len(installation.audit.events) == 1
    event = installation.audit.events[0]
    assert event.severity is Severity.WARNING
    assert event.event == "scan_checksums"
    assert event.metadata["modified"] == 1
    assert event.metadata["added"] == 1


def test_scan_silent_when_clean(installation):
    installation.engine().scan(VERSION)
    assert installation.audit.events == []


def test_renamed_content_directory(tmp_path):
    manifest = {rel: md5(data) for rel, data in RELEASE_FILES.items()}
    local = {k: v for k, v in RELEASE_FILES.items() if not k.startswith("wp-content/")}
    inst = make_installation(tmp_path, manifest, RELEASE_FILES, local)
    content_dir = tmp_path / "site" / "content"
    write_files(content_dir, {"index.php": RELEASE_FILES["wp-content/index.php"]})

    without = inst.engine().reconcile(VERSION)
    assert "wp-content/index.php" in _paths(without.removed)

    result = inst.engine(content_dir=content_dir).reconcile(VERSION)
    assert "wp-content/index.php" in _paths(result.stable)
    assert result.removed == []
    assert result.added == []


def test_startup_suppressions_applied_with_options(installation):
    (installation.root / "wp-config.php").write_bytes(b"<?php // secrets")
    options = installation.options()
    result = installation.engine(options=options).reconcile(VERSION)
    assert options.get(STARTUP_OPTION) == "done"
    assert result.is_clean
    assert result.suppressed_count == 1


def test_removed_fixable_checks_parent_directory(installation):
    (installation.root / "wp-admin/includes/file.php").unlink()
    (installation.root / "wp-admin/includes").rmdir()
    result = installation.engine().reconcile(VERSION)
    record = next(r for r in result.removed if r.relative_path == "wp-admin/includes/file.php")
    assert record.fixable is False
    assert record.modified_at == 0


def test_result_classification_map(installation):
    result = installation.engine().reconcile(VERSION)
    assert set(result.by_classification()) == set(Classification)
    assert result.to_dict()["version"] == VERSION


def _case_sensitive(directory):
    marker = directory / "casecheck.tmp"
    marker.write_bytes(b"")
    try:
        return not (directory / "CASECHECK.TMP").exists()
    finally:
        marker.unlink()


posix_only = pytest.mark.skipif(
    os.name == "nt", reason="needs POSIX links"
)


@posix_only
def test_distinct_case_variant_is_removed_plus_added(installation):
    admin_dir = installation.root / "wp-admin"
    if not _case_sensitive(admin_dir):
        pytest.skip("filesystem is case-insensitive")
    (admin_dir / "admin.php").unlink()
    (admin_dir / "Admin.php").write_bytes(RELEASE_FILES["wp-admin/admin.php"])

    result = installation.engine().reconcile(VERSION)

    assert "wp-admin/admin.php" in _paths(result.removed)
    assert "wp-admin/Admin.php" in _paths(result.added)
    assert "wp-admin/admin.php" not in _paths(result.stable)


@posix_only
def test_hard_linked_case_variant_is_still_added(installation):
    admin_dir = installation.root / "wp-admin"
    if not _case_sensitive(admin_dir):
        pytest.skip("filesystem is case-insensitive")
    try:
        os.link(admin_dir / "admin.php", admin_dir / "Admin.php")
    except OSError as e:
        pytest.skip(f"hard links unsupported: {e}")

    result = installation.engine().reconcile(VERSION)

    assert "wp-admin/admin.php" in _paths(result.stable)
    assert _paths(result.added) == ["wp-admin/Admin.php"]


@posix_only
def test_manifest_casing_wins_for_true_alias(installation):
    admin_dir = installation.root / "wp-admin"
    if not _case_sensitive(admin_dir):
        pytest.skip("filesystem is case-insensitive")
    # The walk only sees Admin.php; admin.php resolves to the same file.
    (admin_dir / "admin.php").rename(admin_dir / "Admin.php")
    try:
        os.symlink("Admin.php", admin_dir / "admin.php")
    except OSError as e:
        pytest.skip(f"symlinks unsupported: {e}")

    result = installation.engine().reconcile(VERSION)

    assert "wp-admin/admin.php" in _paths(result.stable)
    assert result.added == []
    assert result.is_clean
