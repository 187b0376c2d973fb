#!/usr/bin/env python3
"""
CoreCheck - Core file integrity verification.

Entry point when running from a source checkout: python main.py status
"""

from corecheck.main import cli

if __name__ == "__main__":
    cli()
