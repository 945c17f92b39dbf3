"""Per-run log and summary files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from fleet_patcher.core.output import split_output_lines
from fleet_patcher.models.event import EventLevel

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from fleet_patcher.models.event import RunEvent


@dataclass(frozen=True)
class RunArtifacts:
    """Timestamped files written for one run."""

    log_path: Path
    summary_path: Path

    @classmethod
    def create(cls, log_dir: Path, started_at: datetime) -> RunArtifacts:
        """Create fresh, empty files for a run started at ``started_at``.

        Runs started within the same second get a numeric suffix so that no
        run appends to or overwrites another run's files.
        """
        stamp = f"{started_at:%Y%m%d_%H%M%S}"
        log_dir.mkdir(parents=True, exist_ok=True)
        attempt = 0
        while True:
            suffix = f"_{attempt}" if attempt else ""
            artifacts = cls(
                log_path=log_dir / f"patching_{stamp}{suffix}.log",
                summary_path=log_dir / f"summary_{stamp}{suffix}.txt",
            )
            if artifacts._claim():
                return artifacts
            attempt += 1

    def _claim(self) -> bool:
        try:
            self.log_path.open("x", encoding="utf-8").close()
        except FileExistsError:
            return False
        try:
            self.summary_path.open("x", encoding="utf-8").close()
        except FileExistsError:
            self.log_path.unlink()
            return False
        return True

    def write_summary(self, text: str) -> None:
        self.summary_path.write_text(text, encoding="utf-8")


def format_log_lines(event: RunEvent) -> list[str]:
    """Log file lines for one event. Command output is never truncated here."""
    if event.level is EventLevel.HEADER:
        return ["", f"=== {event.message} ===", ""]

    lines = [f"[{event.timestamp:%Y-%m-%d %H:%M:%S}] [{event.level.upper()}] {event.message}"]
    if event.output:
        lines.extend(f"    {line}" for line in split_output_lines(event.output))
    return lines


class LogFileSink:
    """Appends every event to the run's full-detail log file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def __call__(self, event: RunEvent) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write("\n".join(format_log_lines(event)) + "\n")
