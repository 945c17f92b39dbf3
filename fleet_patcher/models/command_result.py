"""Result of a remote command execution."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CommandResult(BaseModel):
    """Merged stdout/stderr and exit status of one remote command."""

    model_config = ConfigDict(frozen=True)

    output: str = ""
    exit_status: int
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_status == 0

    @classmethod
    def simulated(cls) -> CommandResult:
        """Synthetic success returned when nothing was executed."""
        return cls(output="", exit_status=0, dry_run=True)
