"""Run event model emitted by the orchestration engine."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class EventLevel(StrEnum):
    INFO = "info"
    STEP = "step"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    HEADER = "header"


class RunEvent(BaseModel):
    """One operator-facing event.

    ``output`` carries the complete output of a remote command; renderers
    decide how much of it to show.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    level: EventLevel
    message: str
    host: str | None = None
    output: str | None = None
