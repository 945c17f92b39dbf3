"""Plain-text rendering of a run report."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fleet_patcher.models.outcome import HostOutcome, RunReport

ATTENTION_LINE = "⚠ ATTENTION: The above servers require manual intervention!"


def _format_section(title: str, marker: str, outcomes: Sequence[HostOutcome]) -> list[str]:
    lines = [f"━━━ {title} ({len(outcomes)}) ━━━"]
    if outcomes:
        lines.extend(f"  {marker} {outcome.label}" for outcome in outcomes)
    else:
        lines.append("  None")
    return lines


def render_report_text(report: RunReport) -> str:
    """Render the summary grouped by bucket, with counts."""
    lines = [f"Patching completed at: {report.finished_at:%Y-%m-%d %H:%M:%S}"]
    if report.dry_run:
        lines.append("Dry run: no changes were made")
    lines.append("")

    lines.extend(_format_section("SUCCESSFUL", "✓", report.succeeded))
    lines.append("")
    lines.extend(_format_section("SKIPPED", "○", report.skipped))
    lines.append("")
    lines.extend(_format_section("FAILED", "✗", report.failed))
    if report.failed:
        lines.append("")
        lines.append(ATTENTION_LINE)
    lines.append("")

    if report.log_path:
        lines.append(f"Full log: {report.log_path}")
    if report.summary_path:
        lines.append(f"Summary: {report.summary_path}")
    return "\n".join(lines).rstrip("\n") + "\n"
