"""Pure functions for command construction, output shaping and report rendering."""

from __future__ import annotations

from fleet_patcher.core.commands import (
    REBOOT_MARKER,
    create_snapshot_command,
    delete_snapshot_command,
    has_snapshot,
    is_reboot_command,
    list_snapshots_command,
    parse_snapshot_names,
    snapshot_description,
)
from fleet_patcher.core.output import (
    OutputLimits,
    is_truncated,
    split_output_lines,
    truncate_for_display,
)
from fleet_patcher.core.report_rendering import render_report_text

__all__ = [
    # commands
    "REBOOT_MARKER",
    "create_snapshot_command",
    "delete_snapshot_command",
    "has_snapshot",
    "is_reboot_command",
    "list_snapshots_command",
    "parse_snapshot_names",
    "snapshot_description",
    # output
    "OutputLimits",
    "is_truncated",
    "split_output_lines",
    "truncate_for_display",
    # report_rendering
    "render_report_text",
]
