"""CLI entry point for Fleet Patcher."""

from __future__ import annotations

from fleet_patcher.cli.commands import patch

cli = patch

__all__ = ["cli", "patch"]
