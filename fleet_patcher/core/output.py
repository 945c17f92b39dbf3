"""Command output shaping for terminal display."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OutputLimits:
    """Display limits for long command output."""

    max_lines: int = 50
    head_lines: int = 20
    tail_lines: int = 10


def split_output_lines(output: str) -> list[str]:
    """Split command output into lines, dropping a single trailing newline."""
    if not output:
        return []
    return output.rstrip("\n").split("\n")


def truncate_for_display(output: str, limits: OutputLimits | None = None) -> list[str]:
    """Lines of ``output`` to show on screen.

    Output of at most ``limits.max_lines`` lines is returned unchanged.
    Longer output keeps the first ``head_lines`` and last ``tail_lines``
    with a ``... (N lines total) ...`` marker in between.
    """
    limits = limits or OutputLimits()
    lines = split_output_lines(output)
    if len(lines) <= limits.max_lines:
        return lines

    head = lines[: limits.head_lines]
    tail = lines[len(lines) - limits.tail_lines :] if limits.tail_lines else []
    return [*head, f"... ({len(lines)} lines total) ...", *tail]


def is_truncated(output: str, limits: OutputLimits | None = None) -> bool:
    limits = limits or OutputLimits()
    return len(split_output_lines(output)) > limits.max_lines
