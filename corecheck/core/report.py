"""
CoreCheck - Integrity reports.

Renders the status table for the terminal (Rich) and the plain-text scan
report from a Jinja2 template. Data in, text out; the caller decides where
the output goes.
"""

import datetime
import logging
import time
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound
from rich import box as rich_box
from rich.markup import escape
from rich.table import Table

from corecheck.core.models import Classification, ReconciliationResult

logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
REPORT_TEMPLATE = "integrity_report.txt"
MAX_REPORT_ENTRIES = 200


def human_size(size: Optional[int]) -> str:
    if size is None:
        return ""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1024
    return str(size)


def format_timestamp(ts: float) -> str:
    if not ts:
        return ""
    try:
        dt = datetime.datetime.fromtimestamp(ts, tz=datetime.timezone.utc)
    except (OSError, OverflowError, ValueError):
        return str(ts)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def _entries(result: ReconciliationResult) -> list[dict[str, Any]]:
    return [
        {
            "status": classification.value,
            "path": record.relative_path,
            "encoded": f"{classification.value}@{record.relative_path}",
            "size": human_size(record.size_bytes),
            "modified_at": format_timestamp(record.modified_at),
            "fixable": record.fixable,
        }
        for classification, record in result.actionable()
    ]


def build_status_table(result: ReconciliationResult) -> Table:
    """Table of actionable discrepancies, one row per entry."""
    table = Table(
        title=f"Core integrity - version {result.version}",
        box=rich_box.SIMPLE_HEAVY,
        show_lines=False,
    )
    table.add_column("Entry", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Modified at")
    table.add_column("Fixable")
    styles = {"modified": "yellow", "removed": "red", "added": "cyan"}
    for e in _entries(result):
        table.add_row(
            f"[{styles.get(e['status'], 'white')}]{escape(e['encoded'])}[/]",
            e["size"],
            e["modified_at"],
            "yes" if e["fixable"] else "[red](no permission)[/]",
        )
    return table


class ReportBuilder:
    """Renders the text report; templates are loaded from corecheck/templates/."""

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        tpl_dir = templates_dir or _TEMPLATES_DIR
        if not tpl_dir.is_dir():
            raise FileNotFoundError(f"Templates directory not found: {tpl_dir}")
        self._env = Environment(
            loader=FileSystemLoader(str(tpl_dir)),
            autoescape=False,
            keep_trailing_newline=True,
        )

    def render_text(self, result: ReconciliationResult, checksums_url: str = "") -> str:
        try:
            template = self._env.get_template(REPORT_TEMPLATE)
        except TemplateNotFound as e:
            raise FileNotFoundError(f"Report template not found: {e}") from e
        entries = _entries(result)
        counts = {c.value: 0 for c in Classification}
        for e in entries:
            counts[e["status"]] += 1
        return template.render(
            version=result.version,
            generated_at=time.strftime("%Y-%m-%d %H:%M:%S UTC", time.gmtime()),
            status="OK" if result.is_clean else "ATTENTION",
            entries=entries,
            counts=counts,
            suppressed=result.suppressed_count,
            not_fixable=result.not_fixable_count,
            checksums_url=checksums_url,
            max_entries=MAX_REPORT_ENTRIES,
        )


def write_report(report_path: Path, text: str) -> bool:
    """Write the rendered report; failures are logged, not raised."""
    report_path = Path(report_path)
    try:
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(text, encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to write report to %s: %s", report_path, e)
        return False
    logger.info("Integrity report saved to %s", report_path)
    return True
