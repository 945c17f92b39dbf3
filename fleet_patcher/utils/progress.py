"""Outcome tracking for the batch loop."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fleet_patcher.models.outcome import OutcomeStatus
from fleet_patcher.utils.logger import get_logger

if TYPE_CHECKING:
    from fleet_patcher.models.outcome import HostOutcome

logger = get_logger(__name__)


@dataclass
class OutcomeTracker:
    """Ordered succeeded/skipped/failed buckets for one run.

    Owned by the batch orchestrator; each processed host is recorded exactly
    once, in processing order.
    """

    total: int
    succeeded: list[HostOutcome] = field(default_factory=list)
    skipped: list[HostOutcome] = field(default_factory=list)
    failed: list[HostOutcome] = field(default_factory=list)
    start_time: float = field(default_factory=time.monotonic)

    def record(self, outcome: HostOutcome) -> None:
        """Append ``outcome`` to the bucket matching its status."""
        if outcome.host in self.recorded_hosts:
            msg = f"outcome for {outcome.host} already recorded"
            raise ValueError(msg)
        if outcome.status is OutcomeStatus.SUCCEEDED:
            self.succeeded.append(outcome)
        elif outcome.status is OutcomeStatus.SKIPPED:
            self.skipped.append(outcome)
        else:
            self.failed.append(outcome)

    @property
    def recorded_hosts(self) -> set[str]:
        return {outcome.host for outcome in (*self.succeeded, *self.skipped, *self.failed)}

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.skipped) + len(self.failed)

    @property
    def elapsed_seconds(self) -> float:
        """Time elapsed since start."""
        return time.monotonic() - self.start_time

    @property
    def progress_percentage(self) -> float:
        """Percentage of total hosts processed."""
        if self.total == 0:
            return 100.0
        return (self.processed / self.total) * 100.0

    def log_progress(self, every_n: int = 1) -> None:
        """Log progress every N hosts."""
        if self.processed % every_n == 0 or self.processed == self.total:
            logger.info(
                "batch_progress",
                processed=self.processed,
                total=self.total,
                succeeded=len(self.succeeded),
                skipped=len(self.skipped),
                failed=len(self.failed),
                percentage=f"{self.progress_percentage:.1f}%",
                elapsed=f"{self.elapsed_seconds:.1f}s",
            )
