"""
CoreCheck - Audit event sink.

Writes structured JSON audit records to a log file and prints colored lines
to the console (colorama, cross-platform).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import colorama
from colorama import Fore

from corecheck.core.models import AuditEvent, Severity

logger = logging.getLogger(__name__)

_SEVERITY_ORDER = (Severity.INFO, Severity.NOTICE, Severity.WARNING, Severity.ERROR)
_SEVERITY_COLORS = {
    Severity.INFO: Fore.GREEN,
    Severity.NOTICE: Fore.CYAN,
    Severity.WARNING: Fore.YELLOW,
    Severity.ERROR: Fore.RED,
}

# Lazy init of colorama (once per process)
_colorama_init_done = False


def _ensure_colorama() -> None:
    global _colorama_init_done
    if not _colorama_init_done:
        colorama.init(autoreset=True)
        _colorama_init_done = True


def colored_alert(message: str, severity: Severity) -> None:
    """Print an audit line in color to stderr."""
    _ensure_colorama()
    print(f"{_SEVERITY_COLORS.get(severity, Fore.GREEN)}{message}", file=sys.stderr)


class AuditLog:
    """
    Appends audit events as JSON lines to log_path and optionally echoes
    them to the console. Events below min_severity are dropped.
    """

    def __init__(
        self,
        log_path: Optional[Path] = None,
        console_alerts: bool = True,
        min_severity: Severity = Severity.INFO,
    ) -> None:
        self.log_path = Path(log_path) if log_path is not None else None
        self.console_alerts = console_alerts
        self._min_severity = min_severity
        if self.log_path is not None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _should_log(self, severity: Severity) -> bool:
        return _SEVERITY_ORDER.index(severity) >= _SEVERITY_ORDER.index(self._min_severity)

    def _format(self, event: AuditEvent) -> dict:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **event.to_dict(),
        }

    def emit(self, event: AuditEvent) -> None:
        """Write one audit event to the log file and optionally the console."""
        if not self._should_log(event.severity):
            return
        if self.log_path is not None:
            line = json.dumps(self._format(event)) + "\n"
            try:
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                logger.error("Failed to write audit event to %s: %s", self.log_path, e)
        if self.console_alerts:
            colored_alert(f"[{event.severity.value}] {event.message}", event.severity)

