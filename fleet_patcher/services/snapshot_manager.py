"""Single-slot pre-patch snapshot management on Proxmox hypervisors."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from fleet_patcher.core.commands import (
    create_snapshot_command,
    delete_snapshot_command,
    has_snapshot,
    list_snapshots_command,
    snapshot_description,
)
from fleet_patcher.models.outcome import OutcomeReason
from fleet_patcher.services.remote_executor import TRANSPORT_ERRORS
from fleet_patcher.utils.retry import retry_with_logging

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from fleet_patcher.models.command_result import CommandResult
    from fleet_patcher.models.inventory import HypervisorConnection, RunSettings
    from fleet_patcher.services.event_recorder import EventRecorder
    from fleet_patcher.services.protocols import RemoteExecutorProtocol

logger = structlog.get_logger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class SnapshotListingError(Exception):
    """The hypervisor could not list snapshots for a VM."""


@dataclass(frozen=True)
class SnapshotResult:
    """Result of snapshot reconciliation for one VM."""

    ok: bool
    reason: str | None = None
    deleted_existing: bool = False

    @classmethod
    def succeeded(cls, *, deleted_existing: bool = False) -> SnapshotResult:
        return cls(ok=True, deleted_existing=deleted_existing)

    @classmethod
    def failed(cls, reason: str) -> SnapshotResult:
        return cls(ok=False, reason=str(reason))


class SnapshotManager:
    """Deletes the previous named snapshot of a VM and takes a fresh one.

    One snapshot name is shared by the whole run, so each VM keeps at most
    one pre-patch snapshot. A failed deletion stops before creation.
    """

    def __init__(
        self,
        executor: RemoteExecutorProtocol,
        recorder: EventRecorder,
        settings: RunSettings,
        clock: Callable[[], datetime] = _local_now,
        retry_backoff: float = 1,
    ) -> None:
        self.executor = executor
        self.recorder = recorder
        self.settings = settings
        self._clock = clock
        self._query = retry_with_logging(
            max_attempts=settings.connect_retries + 1,
            multiplier=retry_backoff,
            min_wait=2 * retry_backoff,
            max_wait=10 * retry_backoff,
        )(self._run_query)

    def _run_query(
        self, connection: HypervisorConnection, command: Sequence[str]
    ) -> CommandResult:
        return self.executor.execute(
            connection.address,
            connection.user,
            connection.credential,
            command,
            self.settings.query_timeout,
        )

    def _run_mutation(
        self, connection: HypervisorConnection, command: Sequence[str], timeout: float
    ) -> CommandResult:
        result = self.executor.execute(
            connection.address,
            connection.user,
            connection.credential,
            command,
            timeout,
        )
        self.recorder.command_output(result.output)
        return result

    def snapshot_exists(
        self, connection: HypervisorConnection, vm_id: int, snapshot_name: str
    ) -> bool:
        """Whether ``snapshot_name`` is listed for ``vm_id``.

        Raises SnapshotListingError when the listing command exits non-zero,
        and transport errors when the hypervisor is unreachable after retries.
        """
        result = self._query(connection, list_snapshots_command(vm_id))
        if not result.ok:
            msg = f"qm listsnapshot exited with status {result.exit_status}"
            raise SnapshotListingError(msg)
        return has_snapshot(result.output, snapshot_name)

    def delete_snapshot(
        self, connection: HypervisorConnection, vm_id: int, snapshot_name: str
    ) -> SnapshotResult:
        """Delete ``snapshot_name`` if present. Succeeds when there is nothing to delete."""
        self.recorder.step(f"Checking for existing snapshot '{snapshot_name}' on VM {vm_id}")
        try:
            exists = self.snapshot_exists(connection, vm_id, snapshot_name)
        except (*TRANSPORT_ERRORS, SnapshotListingError) as exc:
            logger.error(
                "snapshot_list_failed",
                hypervisor=connection.name,
                vm_id=vm_id,
                error=str(exc),
            )
            self.recorder.error(f"Could not list snapshots for VM {vm_id}: {exc}")
            return SnapshotResult.failed(OutcomeReason.SNAPSHOT_DELETION_FAILED)

        if self.settings.dry_run:
            # The simulated listing is empty; report the deletion that may happen.
            exists = True
        elif not exists:
            self.recorder.info(f"No existing snapshot '{snapshot_name}' found for VM {vm_id}")
            return SnapshotResult.succeeded()

        self.recorder.step(f"Deleting existing snapshot '{snapshot_name}' on VM {vm_id}")
        try:
            result = self._run_mutation(
                connection,
                delete_snapshot_command(vm_id, snapshot_name),
                self.settings.snapshot_delete_timeout,
            )
        except TRANSPORT_ERRORS as exc:
            logger.error(
                "snapshot_delete_failed",
                hypervisor=connection.name,
                vm_id=vm_id,
                error=str(exc),
            )
            self.recorder.error(f"Failed to delete snapshot on VM {vm_id}: {exc}")
            return SnapshotResult.failed(OutcomeReason.SNAPSHOT_DELETION_FAILED)

        if not result.ok:
            logger.error(
                "snapshot_delete_failed",
                hypervisor=connection.name,
                vm_id=vm_id,
                exit_status=result.exit_status,
            )
            self.recorder.error(
                f"Failed to delete snapshot on VM {vm_id} (exit code {result.exit_status})"
            )
            return SnapshotResult.failed(OutcomeReason.SNAPSHOT_DELETION_FAILED)

        if not result.dry_run:
            self.recorder.success(f"Deleted old snapshot '{snapshot_name}' on VM {vm_id}")
        return SnapshotResult.succeeded(deleted_existing=True)

    def create_snapshot(
        self,
        connection: HypervisorConnection,
        vm_id: int,
        snapshot_name: str,
        description: str | None = None,
    ) -> SnapshotResult:
        description = description or snapshot_description(self._clock())
        self.recorder.step(f"Creating snapshot '{snapshot_name}' for VM {vm_id}")
        try:
            result = self._run_mutation(
                connection,
                create_snapshot_command(vm_id, snapshot_name, description),
                self.settings.snapshot_create_timeout,
            )
        except TRANSPORT_ERRORS as exc:
            logger.error(
                "snapshot_create_failed",
                hypervisor=connection.name,
                vm_id=vm_id,
                error=str(exc),
            )
            self.recorder.error(f"Failed to create snapshot on VM {vm_id}: {exc}")
            return SnapshotResult.failed(OutcomeReason.SNAPSHOT_CREATION_FAILED)

        if not result.ok:
            logger.error(
                "snapshot_create_failed",
                hypervisor=connection.name,
                vm_id=vm_id,
                exit_status=result.exit_status,
            )
            self.recorder.error(
                f"Failed to create snapshot on VM {vm_id} (exit code {result.exit_status})"
            )
            return SnapshotResult.failed(OutcomeReason.SNAPSHOT_CREATION_FAILED)

        if not result.dry_run:
            self.recorder.success(f"Created new snapshot '{snapshot_name}' on VM {vm_id}")
        return SnapshotResult.succeeded()

    def reconcile_snapshot(
        self,
        connection: HypervisorConnection,
        vm_id: int,
        snapshot_name: str,
        description: str | None = None,
    ) -> SnapshotResult:
        """Delete-if-present, then create ``snapshot_name`` on ``vm_id``."""
        deletion = self.delete_snapshot(connection, vm_id, snapshot_name)
        if not deletion.ok:
            return deletion

        creation = self.create_snapshot(connection, vm_id, snapshot_name, description)
        if not creation.ok:
            return creation
        return SnapshotResult.succeeded(deleted_existing=deletion.deleted_existing)
