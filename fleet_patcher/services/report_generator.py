"""Run report construction, rendering and exit status."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fleet_patcher.core.report_rendering import render_report_text
from fleet_patcher.models.outcome import RunReport

if TYPE_CHECKING:
    from datetime import datetime

    from fleet_patcher.services.artifacts import RunArtifacts
    from fleet_patcher.utils.progress import OutcomeTracker

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class ReportGenerator:
    """Turns the orchestrator's buckets into a RunReport."""

    def summarize(
        self,
        tracker: OutcomeTracker,
        *,
        started_at: datetime,
        finished_at: datetime,
        dry_run: bool = False,
        artifacts: RunArtifacts | None = None,
    ) -> RunReport:
        return RunReport(
            succeeded=tuple(tracker.succeeded),
            skipped=tuple(tracker.skipped),
            failed=tuple(tracker.failed),
            started_at=started_at,
            finished_at=finished_at,
            dry_run=dry_run,
            log_path=str(artifacts.log_path) if artifacts else None,
            summary_path=str(artifacts.summary_path) if artifacts else None,
        )

    def render(self, report: RunReport) -> str:
        return render_report_text(report)

    def render_json(self, report: RunReport) -> str:
        return report.model_dump_json(indent=2)

    def exit_code(self, report: RunReport) -> int:
        """Non-zero if and only if some host failed."""
        return EXIT_FAILURE if report.has_failures else EXIT_SUCCESS
