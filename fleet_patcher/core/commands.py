"""Remote command construction and parsing for Proxmox hosts.

Hypervisor commands are built as argument vectors; the transport quotes
them before they reach the remote shell.
"""

from __future__ import annotations

import re
from datetime import datetime

REBOOT_MARKER = "reboot"

# Entry that `qm listsnapshot` prints for the live VM state.
_CURRENT_STATE_ENTRY = "current"
_TREE_MARKER = re.compile(r"^[\s`|]*-?>\s*")


def is_reboot_command(command: str) -> bool:
    """Whether the remote end is expected to drop the connection for this command."""
    return REBOOT_MARKER in command


def list_snapshots_command(vm_id: int) -> list[str]:
    return ["qm", "listsnapshot", str(vm_id)]


def delete_snapshot_command(vm_id: int, snapshot_name: str) -> list[str]:
    return ["qm", "delsnapshot", str(vm_id), snapshot_name]


def create_snapshot_command(vm_id: int, snapshot_name: str, description: str) -> list[str]:
    return ["qm", "snapshot", str(vm_id), snapshot_name, "--description", description]


def snapshot_description(now: datetime) -> str:
    return f"Pre-patching snapshot - {now:%Y-%m-%d %H:%M:%S}"


def parse_snapshot_names(listing: str) -> list[str]:
    """Extract snapshot names from `qm listsnapshot` output.

    Each line looks like ```-> name   2024-01-01 10:00:00   description``;
    nested snapshots are indented further. The ``current`` pseudo-entry is
    skipped.
    """
    names: list[str] = []
    for raw_line in listing.splitlines():
        line = _TREE_MARKER.sub("", raw_line).strip()
        if not line:
            continue
        name = line.split()[0]
        if name == _CURRENT_STATE_ENTRY:
            continue
        names.append(name)
    return names


def has_snapshot(listing: str, snapshot_name: str) -> bool:
    """Exact-name presence test against a snapshot listing."""
    return snapshot_name in parse_snapshot_names(listing)
