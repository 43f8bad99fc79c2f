"""Enumerations for CLI exit codes."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Well-known exit codes enforced across the CLI."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    VALIDATION = 2
    TRANSPORT = 3
