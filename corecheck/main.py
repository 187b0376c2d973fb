#!/usr/bin/env python3
"""
CoreCheck - CLI entry point.

Exposed as the 'corecheck' console command via pyproject.toml.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MANIFEST_UNAVAILABLE = 2
EXIT_DISCREPANCIES = 3

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging to stderr (no print-based logging)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def get_config(args: argparse.Namespace) -> dict:
    """Load config from file; config path may be overridden by args."""
    from corecheck.core.config_loader import load_config

    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    config_path = config_path.resolve()
    project_root = Path.cwd().resolve()
    return load_config(config_path, project_root)


def build_components(config: dict[str, Any]) -> dict[str, Any]:
    """Wire providers, stores, engine and controller from a loaded config."""
    from corecheck.core.alerts import AuditLog
    from corecheck.core.exemptions import PathClassifier
    from corecheck.core.hashing import HashEngine
    from corecheck.core.manifest import HttpManifestProvider, LocalManifestProvider
    from corecheck.core.models import Severity
    from corecheck.core.options import OptionStore
    from corecheck.core.reconciler import ReconciliationEngine
    from corecheck.core.remediation import RemediationController
    from corecheck.core.scanner import ChecksumTreeBuilder
    from corecheck.core.suppression import SuppressionStore

    if config["manifest_provider"] == "local":
        provider = LocalManifestProvider(config["local_manifest"], config["local_release_dir"])
    else:
        provider = HttpManifestProvider(
            checksums_url=config["checksums_url"],
            content_url=config["content_url"],
            timeout_seconds=config["manifest_timeout_seconds"],
        )
    audit = AuditLog(
        log_path=config["audit_log_path"],
        console_alerts=config["console_alerts"],
        min_severity=Severity(config["min_severity"]),
    )
    suppressions = SuppressionStore(config["state_dir"])
    options = OptionStore(config["state_dir"])
    tree_builder = ChecksumTreeBuilder(
        hash_engine=HashEngine(config["hash_algorithm"], config["chunk_size"]),
        workers=config["scanner_workers"],
    )
    root = config["installation_root"]
    engine = ReconciliationEngine(
        root=root,
        manifest_provider=provider,
        suppressions=suppressions,
        classifier=PathClassifier(config["extra_exempt_patterns"]),
        tree_builder=tree_builder,
        core_dirs=config["core_directories"],
        content_dir=config["content_dir"],
        locale=config["locale"],
        options=options,
        audit=audit,
    )
    controller = RemediationController(
        root=root,
        manifest_provider=provider,
        suppressions=suppressions,
        version=config["version"] or "",
        audit=audit,
        content_dir=config["content_dir"],
    )
    return {
        "provider": provider,
        "audit": audit,
        "suppressions": suppressions,
        "engine": engine,
        "controller": controller,
    }


def _require_version(config: dict[str, Any]) -> str:
    version = config.get("version")
    if not version:
        raise ValueError(
            "Installation version is unknown; set installation.version or check wp-includes/version.php"
        )
    return version


def cmd_status(config: dict, parts: dict, console: Console) -> int:
    """Reconcile and print actionable discrepancies."""
    from corecheck.core.report import build_status_table

    result = parts["engine"].reconcile(_require_version(config))
    if result.is_clean:
        console.print(f"[green]All core files match version {result.version}.[/]")
    else:
        console.print(build_status_table(result))
        console.print(f"{len(result.actionable())} files need attention.")
    if result.suppressed_count:
        console.print(f"{result.suppressed_count} files are marked as fixed and hidden.")
    if result.not_fixable_count:
        console.print(
            f"[red]{result.not_fixable_count} files cannot be fixed with the current permissions.[/]"
        )
    return EXIT_OK if result.is_clean else EXIT_DISCREPANCIES


def cmd_scan(config: dict, parts: dict) -> int:
    """Scheduled scan: reconcile, emit audit event, write the text report."""
    from corecheck.core.report import ReportBuilder, write_report

    result = parts["engine"].scan(_require_version(config))
    checksums_url = ""
    provider = parts["provider"]
    if hasattr(provider, "remote_checksums_url"):
        checksums_url = provider.remote_checksums_url(result.version, config["locale"])
    text = ReportBuilder().render_text(result, checksums_url=checksums_url)
    write_report(config["report_path"], text)
    return EXIT_OK if result.is_clean else EXIT_DISCREPANCIES


def cmd_apply(config: dict, parts: dict, args: argparse.Namespace) -> int:
    """Run one confirmed remediation batch."""
    _require_version(config)
    result = parts["controller"].apply(args.action, args.entries, confirmed=args.confirm)
    return EXIT_OK if result.processed_count == result.selected_count else EXIT_ERROR


def cmd_diff(config: dict, parts: dict, args: argparse.Namespace, console: Console) -> int:
    from corecheck.core.diff import DiffRenderer

    if not config["diff_utility"]:
        logger.error("The diff utility is disabled (integrity.diff_utility)")
        return EXIT_ERROR
    renderer = DiffRenderer(
        config["installation_root"],
        parts["provider"],
        content_dir=config["content_dir"],
        locale=config["locale"],
    )
    text = renderer.diff(args.path, _require_version(config))
    if not text:
        console.print("[green]No differences.[/]")
    else:
        console.print(text, markup=False, highlight=False, end="")
    return EXIT_OK


def cmd_suppressions(parts: dict, console: Console) -> int:
    from corecheck.core.report import format_timestamp

    entries = sorted(parts["suppressions"].get_all().values(), key=lambda e: e.relative_path)
    for e in entries:
        console.print(
            f"{e.classification_at_suppression}@{e.relative_path}  {format_timestamp(e.suppressed_at)}",
            markup=False,
        )
    console.print(f"{len(entries)} suppressed entries.")
    return EXIT_OK


def cmd_unsuppress(parts: dict, args: argparse.Namespace) -> int:
    from corecheck.core.models import AuditEvent, Severity

    removed = [p for p in args.paths if parts["suppressions"].remove(p)]
    if removed:
        parts["audit"].emit(
            AuditEvent(
                severity=Severity.NOTICE,
                message="Core files will be checked again: (multiple entries): %s" % ",".join(removed),
                event="integrity_unsuppress",
            )
        )
    logger.info("%d out of %d entries were un-suppressed.", len(removed), len(args.paths))
    return EXIT_OK


def main(argv=None) -> int:
    """CLI logic."""
    from corecheck.core.errors import IntegrityError, InvalidRequest, ManifestUnavailable, NotComparable

    _default_config = Path(__file__).resolve().parent / "config" / "config.yaml"
    parser = argparse.ArgumentParser(
        prog="corecheck",
        description="Verify core installation files against the official release checksums.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=str(_default_config),
        help="Path to config.yaml (default: package config; use CWD-relative or absolute)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show files that differ from the official release")
    sub.add_parser("scan", help="Scheduled scan: audit event and text report")

    p_apply = sub.add_parser("apply", help="Restore, delete or mark flagged files as fixed")
    p_apply.add_argument("--action", required=True, help="restore | delete | fixed")
    p_apply.add_argument(
        "--confirm",
        action="store_true",
        help="Confirm that you understand the risk of this operation",
    )
    p_apply.add_argument("entries", nargs="*", help="Entries encoded as classification@path")

    p_diff = sub.add_parser("diff", help="Show a line diff against the original release file")
    p_diff.add_argument("path", help="Path relative to the installation root")

    sub.add_parser("suppressions", help="List files marked as fixed")
    p_unsup = sub.add_parser("unsuppress", help="Check previously fixed files again")
    p_unsup.add_argument("paths", nargs="+", help="Paths relative to the installation root")

    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        config = get_config(args)
    except FileNotFoundError as e:
        logger.error("%s", e)
        return EXIT_ERROR
    except (ValueError, OSError) as e:
        logger.error("Failed to load config: %s", e)
        return EXIT_ERROR

    console = Console()
    parts = build_components(config)
    try:
        if args.command == "status":
            return cmd_status(config, parts, console)
        if args.command == "scan":
            return cmd_scan(config, parts)
        if args.command == "apply":
            return cmd_apply(config, parts, args)
        if args.command == "diff":
            return cmd_diff(config, parts, args, console)
        if args.command == "suppressions":
            return cmd_suppressions(parts, console)
        if args.command == "unsuppress":
            return cmd_unsuppress(parts, args)
    except ManifestUnavailable as e:
        logger.error("%s", e)
        return EXIT_MANIFEST_UNAVAILABLE
    except (InvalidRequest, NotComparable) as e:
        logger.error("%s", e)
        return EXIT_ERROR
    except (IntegrityError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_ERROR
    finally:
        parts["provider"].close()
    parser.print_help()
    return EXIT_OK


def cli() -> None:
    """Entry point for the corecheck console command."""
    sys.exit(main())
