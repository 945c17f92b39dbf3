"""Sequential batch loop over the configured target hosts."""

from __future__ import annotations

import time
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from fleet_patcher.services.host_runner import HostRunner
from fleet_patcher.services.report_generator import ReportGenerator
from fleet_patcher.services.snapshot_manager import SnapshotManager
from fleet_patcher.utils.progress import OutcomeTracker

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from fleet_patcher.models.inventory import HypervisorConnection, RunSettings, TargetHost
    from fleet_patcher.models.outcome import RunReport
    from fleet_patcher.services.artifacts import RunArtifacts
    from fleet_patcher.services.event_recorder import EventRecorder
    from fleet_patcher.services.protocols import RemoteExecutorProtocol

logger = structlog.get_logger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class HostNotFoundError(LookupError):
    """A single-host run named a host that is not configured."""


def select_targets(targets: Sequence[TargetHost], host_filter: str | None) -> list[TargetHost]:
    """All targets, or only the one named by ``host_filter``."""
    if host_filter is None:
        return list(targets)
    selected = [target for target in targets if target.name == host_filter]
    if not selected:
        msg = f"Server '{host_filter}' not found in configuration"
        raise HostNotFoundError(msg)
    return selected


class BatchOrchestrator:
    """Processes hosts strictly one at a time, in configuration order.

    Each host is run once; its outcome lands in exactly one bucket. Between
    hosts the loop pauses for ``inter_host_delay`` seconds (not in dry-run)
    to spread load on shared hypervisor storage.
    """

    def __init__(
        self,
        executor: RemoteExecutorProtocol,
        recorder: EventRecorder,
        hypervisors: Mapping[str, HypervisorConnection],
        artifacts: RunArtifacts | None = None,
        report_generator: ReportGenerator | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _local_now,
        retry_backoff: float = 1,
    ) -> None:
        self.executor = executor
        self.recorder = recorder
        self.hypervisors = hypervisors
        self.artifacts = artifacts
        self.report_generator = report_generator or ReportGenerator()
        self._sleep = sleep
        self._clock = clock
        self._retry_backoff = retry_backoff

    def build_host_runner(self, settings: RunSettings) -> HostRunner:
        snapshot_manager = SnapshotManager(
            self.executor,
            self.recorder,
            settings,
            clock=self._clock,
            retry_backoff=self._retry_backoff,
        )
        return HostRunner(
            self.executor,
            snapshot_manager,
            self.recorder,
            settings,
            self.hypervisors,
        )

    def run(self, targets: Sequence[TargetHost], settings: RunSettings) -> RunReport:
        """Run one maintenance pass and return its report.

        Raises HostNotFoundError before any host is touched when
        ``settings.host_filter`` names an unknown host.
        """
        selected = select_targets(targets, settings.host_filter)
        started_at = self._clock()
        host_runner = self.build_host_runner(settings)

        self._announce(selected, settings, started_at)
        tracker = OutcomeTracker(total=len(selected))

        for index, host in enumerate(selected, start=1):
            self.recorder.info(f"Processing server {index}/{len(selected)}: {host.name}")
            outcome = host_runner.run(host)
            tracker.record(outcome)
            logger.info(
                "host_processed",
                host=host.name,
                status=str(outcome.status),
                reason=outcome.reason,
            )
            tracker.log_progress()

            if not settings.dry_run and index < len(selected):
                self.recorder.info(
                    f"Waiting {settings.inter_host_delay:g} seconds before next server..."
                )
                self._sleep(settings.inter_host_delay)

        return self.report_generator.summarize(
            tracker,
            started_at=started_at,
            finished_at=self._clock(),
            dry_run=settings.dry_run,
            artifacts=self.artifacts,
        )

    def _announce(
        self, selected: Sequence[TargetHost], settings: RunSettings, started_at: datetime
    ) -> None:
        self.recorder.header("SERVER PATCHING STARTED")
        self.recorder.info(f"Start time: {started_at:%Y-%m-%d %H:%M:%S}")
        if settings.dry_run:
            self.recorder.warning("DRY RUN MODE - No changes will be made")
        if settings.skip_snapshots:
            self.recorder.warning("Snapshot operations will be skipped")
        if settings.skip_updates:
            self.recorder.warning("Update commands will be skipped")
        if settings.host_filter is not None:
            self.recorder.info(f"Processing single server: {settings.host_filter}")

        enabled = sum(1 for host in selected if host.enabled)
        self.recorder.info(f"Total servers in config: {len(selected)}")
        self.recorder.info(f"Enabled servers: {enabled}")
