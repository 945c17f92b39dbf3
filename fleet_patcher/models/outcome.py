"""Host outcome and run report models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, model_validator


class OutcomeStatus(StrEnum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class OutcomeReason(StrEnum):
    """Short reasons attached to skipped and failed hosts."""

    DISABLED = "disabled"
    SNAPSHOT_DELETION_FAILED = "snapshot deletion failed"
    SNAPSHOT_CREATION_FAILED = "snapshot creation failed"
    UPDATE_COMMANDS_FAILED = "update commands failed"
    UNEXPECTED_ERROR = "unexpected error"


class HostOutcome(BaseModel):
    """Terminal result of processing one host."""

    model_config = ConfigDict(frozen=True)

    host: str
    status: OutcomeStatus
    reason: str | None = None

    @model_validator(mode="after")
    def validate_reason(self) -> HostOutcome:
        """Skipped and failed outcomes carry a reason; succeeded ones do not."""
        if self.status is OutcomeStatus.SUCCEEDED and self.reason is not None:
            msg = "succeeded outcomes must not carry a reason"
            raise ValueError(msg)
        if self.status is not OutcomeStatus.SUCCEEDED and not self.reason:
            msg = f"{self.status} outcomes require a reason"
            raise ValueError(msg)
        return self

    @classmethod
    def succeeded(cls, host: str) -> HostOutcome:
        return cls(host=host, status=OutcomeStatus.SUCCEEDED)

    @classmethod
    def skipped(cls, host: str, reason: str) -> HostOutcome:
        return cls(host=host, status=OutcomeStatus.SKIPPED, reason=str(reason))

    @classmethod
    def failed(cls, host: str, reason: str) -> HostOutcome:
        return cls(host=host, status=OutcomeStatus.FAILED, reason=str(reason))

    @property
    def label(self) -> str:
        """``name`` or ``name (reason)`` as shown in summaries."""
        if self.reason:
            return f"{self.host} ({self.reason})"
        return self.host


class RunReport(BaseModel):
    """Summary of one maintenance pass. Built once after the batch loop."""

    model_config = ConfigDict(frozen=True)

    succeeded: tuple[HostOutcome, ...] = ()
    skipped: tuple[HostOutcome, ...] = ()
    failed: tuple[HostOutcome, ...] = ()
    started_at: datetime
    finished_at: datetime
    dry_run: bool = False
    log_path: str | None = None
    summary_path: str | None = None

    @model_validator(mode="after")
    def validate_buckets(self) -> RunReport:
        """Buckets hold matching statuses and never share a host."""
        seen: set[str] = set()
        for status, bucket in (
            (OutcomeStatus.SUCCEEDED, self.succeeded),
            (OutcomeStatus.SKIPPED, self.skipped),
            (OutcomeStatus.FAILED, self.failed),
        ):
            for outcome in bucket:
                if outcome.status is not status:
                    msg = f"{outcome.host} has status {outcome.status} in the {status} bucket"
                    raise ValueError(msg)
                if outcome.host in seen:
                    msg = f"{outcome.host} appears in more than one bucket"
                    raise ValueError(msg)
                seen.add(outcome.host)
        return self

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.skipped) + len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()
