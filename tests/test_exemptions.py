"""Tests for the path exemption rules."""

from __future__ import annotations

import pytest

from corecheck.core.exemptions import PathClassifier, normalize_path


@pytest.mark.parametrize(
    "path",
    [
        "sucuri-backup-2.php",
        "site-sucuri-db-dump-gzip-1234567890-0123456789abcdef0123456789abcdef.gz",
        "readme.txt",
        "license.txt",
        "logo.png",
        "print.pdf",
        "wp-content/themes/twenty/functions.php",
        "wp-content/plugins/akismet/akismet.php",
        "google0123456789abcdef.html",
        "pinterest-abcde.html",
        "favicon.ico",
        "wp-admin/images/icon.ico",
    ],
)
def test_exempt_paths(path):
    assert PathClassifier().is_exempt(path)


@pytest.mark.parametrize(
    "path",
    [
        "index.php",
        "wp-admin/css/admin.css",
        "wp-includes/images/logo.png",
        "wp-content/index.php",
        "wp-content/themes",
        "google123.html",
        "wp-admin/readme.txt",
    ],
)
def test_not_exempt_paths(path):
    assert not PathClassifier().is_exempt(path)


def test_windows_separators_are_normalized():
    assert PathClassifier().is_exempt("wp-content\\plugins\\foo\\bar.php")
    assert normalize_path(".\\wp-admin\\x.php") == "wp-admin/x.php"


def test_extra_patterns_are_appended():
    classifier = PathClassifier(extra_patterns=[r"^wp-admin/custom/"])
    assert classifier.is_exempt("wp-admin/custom/tool.php")
    assert not PathClassifier().is_exempt("wp-admin/custom/tool.php")
    assert classifier.patterns[-1] == r"^wp-admin/custom/"
