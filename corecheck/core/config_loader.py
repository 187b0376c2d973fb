"""
CoreCheck - Configuration loader.

Loads and validates config.yaml; resolves paths relative to project root.
The release version and language fall back to what the installation declares
in wp-includes/version.php.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from corecheck.core.manifest import (
    DEFAULT_CHECKSUMS_URL,
    DEFAULT_CONTENT_URL,
    DEFAULT_LOCALE,
    DEFAULT_TIMEOUT_SECONDS,
)
from corecheck.core.version import detect_installation

logger = logging.getLogger(__name__)

MAX_REQUEST_TIMEOUT = 60
_SEVERITIES = ("INFO", "NOTICE", "WARNING", "ERROR")


def load_config(config_path: Path, project_root: Optional[Path] = None) -> dict[str, Any]:
    """
    Load YAML config and resolve paths relative to project_root.

    Args:
        config_path: Path to config.yaml.
        project_root: Base for relative paths; defaults to config_path's parent.

    Returns:
        Config dict with resolved paths and defaults applied.
    """
    path = config_path.resolve()
    if not path.is_file():
        raise FileNotFoundError(f"Config not found: {path}")

    root = project_root or path.parent
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    def resolve(p: str) -> Path:
        path_obj = Path(p).expanduser()
        return (root / path_obj).resolve() if not path_obj.is_absolute() else path_obj.resolve()

    installation = raw.get("installation", {}) or {}
    install_root = resolve(str(installation.get("root", ".")))
    core_directories = [str(d).strip("/") for d in installation.get("core_directories", ["wp-admin", "wp-includes"])]
    content_dir_raw = installation.get("content_dir")
    content_dir = resolve(str(content_dir_raw)) if content_dir_raw else None

    version = installation.get("version")
    locale = installation.get("locale")
    if not version or not locale:
        detected = detect_installation(install_root)
        version = version or detected.version
        locale = locale or detected.locale
    locale = str(locale or DEFAULT_LOCALE)

    manifest_raw = raw.get("manifest", {}) or {}
    provider = str(manifest_raw.get("provider", "http")).lower()
    if provider not in ("http", "local"):
        logger.warning("Unknown manifest provider %r, using http", provider)
        provider = "http"
    timeout = float(manifest_raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS))
    local_manifest = manifest_raw.get("local_manifest")
    local_release_dir = manifest_raw.get("local_release_dir")
    if provider == "local" and not local_manifest:
        raise ValueError("manifest.local_manifest is required when manifest.provider is 'local'")

    scanner_raw = raw.get("scanner", {}) or {}
    integrity_raw = raw.get("integrity", {}) or {}
    state_raw = raw.get("state", {}) or {}
    audit_raw = raw.get("audit", {}) or {}
    paths_raw = raw.get("paths", {}) or {}

    min_severity = str(audit_raw.get("min_severity", "INFO")).upper()
    if min_severity not in _SEVERITIES:
        min_severity = "INFO"

    return {
        "project_root": root,
        "installation_root": install_root,
        "core_directories": core_directories,
        "content_dir": content_dir,
        "version": str(version) if version else None,
        "locale": locale,
        "manifest_provider": provider,
        "checksums_url": str(manifest_raw.get("checksums_url", DEFAULT_CHECKSUMS_URL)),
        "content_url": str(manifest_raw.get("content_url", DEFAULT_CONTENT_URL)),
        "manifest_timeout_seconds": max(1.0, min(float(MAX_REQUEST_TIMEOUT), timeout)),
        "local_manifest": resolve(str(local_manifest)) if local_manifest else None,
        "local_release_dir": resolve(str(local_release_dir)) if local_release_dir else None,
        "hash_algorithm": str(scanner_raw.get("algorithm", "md5")).lower(),
        "scanner_workers": max(1, min(64, int(scanner_raw.get("workers", 8)))),
        "chunk_size": max(4096, int(scanner_raw.get("chunk_size", 65536))),
        "extra_exempt_patterns": [str(p) for p in integrity_raw.get("extra_exempt_patterns", []) or []],
        "diff_utility": bool(integrity_raw.get("diff_utility", True)),
        "state_dir": resolve(str(state_raw.get("directory", "./state"))),
        "audit_log_path": resolve(str(audit_raw.get("log_path", "./logs/audit.log"))),
        "console_alerts": bool(audit_raw.get("console_alerts", True)),
        "min_severity": min_severity,
        "report_path": resolve(str(paths_raw.get("report_file", "./logs/integrity_report.txt"))),
    }
