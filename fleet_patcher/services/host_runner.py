"""Per-host maintenance sequence: snapshot reconciliation, then update commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from fleet_patcher.core.commands import is_reboot_command
from fleet_patcher.models.outcome import HostOutcome, OutcomeReason, OutcomeStatus
from fleet_patcher.services.remote_executor import TRANSPORT_ERRORS, RemoteExecutionError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from fleet_patcher.models.inventory import HypervisorConnection, RunSettings, TargetHost
    from fleet_patcher.services.event_recorder import EventRecorder
    from fleet_patcher.services.protocols import (
        RemoteExecutorProtocol,
        SnapshotManagerProtocol,
    )

logger = structlog.get_logger(__name__)


class HostRunner:
    """Runs the maintenance steps for one host and reduces them to a HostOutcome.

    ``run`` never raises: every failure inside a host's processing becomes a
    failed outcome so the batch can move on to the next host.
    """

    def __init__(
        self,
        executor: RemoteExecutorProtocol,
        snapshot_manager: SnapshotManagerProtocol,
        recorder: EventRecorder,
        settings: RunSettings,
        hypervisors: Mapping[str, HypervisorConnection],
    ) -> None:
        self.executor = executor
        self.snapshot_manager = snapshot_manager
        self.recorder = recorder
        self.settings = settings
        self.hypervisors = hypervisors

    def run(self, host: TargetHost) -> HostOutcome:
        with self.recorder.host_scope(host.name):
            self.recorder.header(f"Processing: {host.name}")

            if not host.enabled:
                self.recorder.warning(f"Server {host.name} is disabled, skipping")
                return HostOutcome.skipped(host.name, OutcomeReason.DISABLED)

            try:
                outcome = self._run_enabled(host)
            except Exception as exc:
                logger.exception("host_run_crashed", host=host.name, error=str(exc))
                self.recorder.error(f"Unexpected error while processing {host.name}: {exc}")
                outcome = HostOutcome.failed(host.name, OutcomeReason.UNEXPECTED_ERROR)

            if outcome.status is OutcomeStatus.SUCCEEDED:
                self.recorder.success(f"Completed processing: {host.name}")
            return outcome

    def _run_enabled(self, host: TargetHost) -> HostOutcome:
        self._record_host_details(host)

        failure = self._snapshot_phase(host)
        if failure is not None:
            return failure

        if self.settings.skip_updates:
            self.recorder.info("Skipping update commands (--skip-updates)")
            return HostOutcome.succeeded(host.name)

        if not self.run_update_commands(host):
            self.recorder.error(f"Update commands failed for {host.name}")
            return HostOutcome.failed(host.name, OutcomeReason.UPDATE_COMMANDS_FAILED)
        return HostOutcome.succeeded(host.name)

    def _record_host_details(self, host: TargetHost) -> None:
        self.recorder.info("Server details:")
        self.recorder.info(f"  VM ID: {host.vm_id}")
        self.recorder.info(f"  Proxmox Host: {host.hypervisor}")
        self.recorder.info(f"  IP: {host.address}")
        self.recorder.info(f"  User: {host.user}")
        self.recorder.info(f"  Auth Method: {host.credential.method}")

    def _snapshot_phase(self, host: TargetHost) -> HostOutcome | None:
        """Return a failed outcome, or None when the update phase may proceed."""
        if self.settings.skip_snapshots:
            self.recorder.info("Skipping snapshot operations (--skip-snapshots)")
            return None

        connection = self.hypervisors[host.hypervisor]
        result = self.snapshot_manager.reconcile_snapshot(
            connection, host.vm_id, self.settings.snapshot_name
        )
        if result.ok:
            return None

        reason = result.reason or OutcomeReason.SNAPSHOT_CREATION_FAILED
        logger.warning("host_snapshot_failed", host=host.name, reason=reason)
        self.recorder.error(f"{str(reason).capitalize()} for {host.name}, skipping server")
        return HostOutcome.failed(host.name, reason)

    def run_update_commands(self, host: TargetHost) -> bool:
        """Run the host's commands in order; stop at the first failure."""
        if not host.commands:
            self.recorder.info(f"No update commands configured for {host.name}")
            return True

        for command in host.commands:
            try:
                if is_reboot_command(command):
                    self._dispatch_reboot(host, command)
                elif not self._run_command(host, command):
                    return False
            except RemoteExecutionError as exc:
                logger.error(
                    "update_command_failed", host=host.name, command=command, error=str(exc)
                )
                self.recorder.error(f"Command could not be run: {command} ({exc})")
                return False
        return True

    def _run_command(self, host: TargetHost, command: str) -> bool:
        if not self.settings.dry_run:
            self.recorder.step(f"Executing: {command}")
        try:
            result = self.executor.execute(
                host.address,
                host.user,
                host.credential,
                command,
                self.settings.command_timeout,
            )
        except TRANSPORT_ERRORS as exc:
            logger.error(
                "update_command_failed", host=host.name, command=command, error=str(exc)
            )
            self.recorder.error(f"Command failed: {command} ({exc})")
            return False

        self.recorder.command_output(result.output)
        if not result.ok:
            logger.error(
                "update_command_failed",
                host=host.name,
                command=command,
                exit_status=result.exit_status,
            )
            self.recorder.error(f"Command failed with exit code {result.exit_status}: {command}")
            return False

        if not result.dry_run:
            self.recorder.success(f"Command completed: {command}")
        return True

    def _dispatch_reboot(self, host: TargetHost, command: str) -> None:
        """Send a reboot without waiting for the host to come back.

        A timeout or dropped connection is the expected result here.
        MissingCapabilityError still propagates to the caller.
        """
        if not self.settings.dry_run:
            self.recorder.step(f"Executing: {command}")
            self.recorder.info("Initiating reboot (not waiting for completion)...")
        try:
            result = self.executor.execute(
                host.address,
                host.user,
                host.credential,
                command,
                self.settings.reboot_timeout,
            )
        except (TimeoutError, ConnectionError) as exc:
            logger.info("reboot_connection_closed", host=host.name, error=str(exc))
        else:
            if result.dry_run:
                return
            self.recorder.command_output(result.output)
        self.recorder.success("Reboot command sent")
