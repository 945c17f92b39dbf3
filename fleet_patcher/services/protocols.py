"""Service protocols defining interfaces for dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fleet_patcher.models.command_result import CommandResult
    from fleet_patcher.models.event import RunEvent
    from fleet_patcher.models.inventory import Credential, HypervisorConnection
    from fleet_patcher.services.snapshot_manager import SnapshotResult


class RemoteExecutorProtocol(Protocol):
    """Run one command on a remote host.

    Raises TimeoutError or ConnectionError subclasses on transport failure
    and MissingCapabilityError when the credential cannot be used.
    """

    def execute(
        self,
        address: str,
        user: str,
        credential: Credential,
        command: str | Sequence[str],
        timeout: float,
    ) -> CommandResult: ...


class SnapshotManagerProtocol(Protocol):
    """Single-slot snapshot reconciliation on a hypervisor."""

    def reconcile_snapshot(
        self,
        connection: HypervisorConnection,
        vm_id: int,
        snapshot_name: str,
        description: str | None = None,
    ) -> SnapshotResult: ...


class EventSink(Protocol):
    """Receives every run event as it is recorded."""

    def __call__(self, event: RunEvent) -> None: ...
