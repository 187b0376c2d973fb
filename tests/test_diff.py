"""Tests for the line-level diff renderer."""

from __future__ import annotations

import pytest

from corecheck.core.diff import DiffRenderer
from corecheck.core.errors import NotComparable

from conftest import VERSION


def _renderer(inst):
    return DiffRenderer(inst.root, inst.provider)


def test_identical_file_has_empty_diff(installation):
    assert _renderer(installation).diff("index.php", VERSION) == ""


def test_modified_file_diff(installation):
    (installation.root / "wp-includes/functions.php").write_bytes(
        b"<?php\nfunction a() {}\neval($_POST['x']);\nfunction b() {}\n"
    )
    text = _renderer(installation).diff("wp-includes/functions.php", VERSION)
    assert "--- original/wp-includes/functions.php" in text
    assert "+++ local/wp-includes/functions.php" in text
    assert "+eval($_POST['x']);" in text


def test_path_not_in_manifest(installation):
    (installation.root / "wp-includes/extra.php").write_bytes(b"x")
    with pytest.raises(NotComparable):
        _renderer(installation).diff("wp-includes/extra.php", VERSION)


def test_missing_local_file(installation):
    (installation.root / "wp-login.php").unlink()
    with pytest.raises(NotComparable):
        _renderer(installation).diff("wp-login.php", VERSION)


def test_manifest_unavailable(installation):
    installation.manifest_path.unlink()
    with pytest.raises(NotComparable):
        _renderer(installation).diff("index.php", VERSION)
