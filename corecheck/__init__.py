"""CoreCheck - core file integrity verification and remediation."""

__version__ = "1.0.0"
