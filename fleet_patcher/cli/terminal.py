"""Terminal rendering of run events."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from fleet_patcher.core.output import (
    OutputLimits,
    is_truncated,
    split_output_lines,
    truncate_for_display,
)
from fleet_patcher.models.event import EventLevel

if TYPE_CHECKING:
    from fleet_patcher.models.event import RunEvent

_BANNER = "═" * 63

_LEVEL_STYLES: dict[EventLevel, tuple[str, str]] = {
    EventLevel.INFO: ("blue", ""),
    EventLevel.SUCCESS: ("green", "✓ "),
    EventLevel.WARNING: ("yellow", "⚠ "),
    EventLevel.ERROR: ("red", "✗ "),
    EventLevel.STEP: ("cyan", "→ "),
}


class TerminalSink:
    """Prints events with colour; long command output is shortened."""

    def __init__(
        self,
        limits: OutputLimits | None = None,
        color: bool | None = None,
        err: bool = False,
    ) -> None:
        self.limits = limits or OutputLimits()
        self.color = color
        self.err = err

    def _echo(self, text: str = "", **style: object) -> None:
        click.secho(text, color=self.color, err=self.err, **style)  # type: ignore[arg-type]

    def __call__(self, event: RunEvent) -> None:
        if event.level is EventLevel.HEADER:
            self._echo()
            self._echo(_BANNER, fg="cyan", bold=True)
            self._echo(f"  {event.message}", fg="cyan", bold=True)
            self._echo(_BANNER, fg="cyan", bold=True)
            self._echo()
            return

        if event.output is not None:
            self._print_output(event.output)
            return

        fg, marker = _LEVEL_STYLES[event.level]
        stamp = click.style(f"[{event.timestamp:%Y-%m-%d %H:%M:%S}]", fg=fg)
        self._echo(f"{stamp} {marker}{event.message}")

    def _print_output(self, output: str) -> None:
        if is_truncated(output, self.limits):
            total = len(split_output_lines(output))
            self._echo(
                f"    Output truncated ({total} lines total, showing first "
                f"{self.limits.head_lines} and last {self.limits.tail_lines})",
                fg="blue",
            )
        bar = click.style("│", fg="cyan")
        for line in truncate_for_display(output, self.limits):
            self._echo(f"    {bar} {line}")
