"""Ordered recording and fan-out of operator-facing run events."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from fleet_patcher.models.event import EventLevel, RunEvent

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from fleet_patcher.services.protocols import EventSink

logger = structlog.get_logger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class EventRecorder:
    """Collects run events and forwards each one to the registered sinks.

    The engine never writes to the terminal or to files itself; sinks
    (terminal renderer, log file writer) decide what to do with events.
    """

    def __init__(
        self,
        sinks: Iterable[EventSink] = (),
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self.events: list[RunEvent] = []
        self._sinks: list[EventSink] = list(sinks)
        self._clock = clock
        self._host: str | None = None

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    @contextmanager
    def host_scope(self, host: str) -> Iterator[None]:
        """Tag events recorded inside the block with ``host``."""
        previous = self._host
        self._host = host
        try:
            yield
        finally:
            self._host = previous

    def emit(self, level: EventLevel, message: str, *, output: str | None = None) -> RunEvent:
        event = RunEvent(
            timestamp=self._clock(),
            level=level,
            message=message,
            host=self._host,
            output=output,
        )
        self.events.append(event)
        logger.debug("run_event", level=str(level), host=self._host, message=message)
        for sink in self._sinks:
            try:
                sink(event)
            except Exception:
                logger.exception(
                    "event_sink_failed",
                    sink=type(sink).__name__,
                    level=str(level),
                    host=self._host,
                )
        return event

    def info(self, message: str) -> RunEvent:
        return self.emit(EventLevel.INFO, message)

    def step(self, message: str) -> RunEvent:
        return self.emit(EventLevel.STEP, message)

    def success(self, message: str) -> RunEvent:
        return self.emit(EventLevel.SUCCESS, message)

    def warning(self, message: str) -> RunEvent:
        return self.emit(EventLevel.WARNING, message)

    def error(self, message: str) -> RunEvent:
        return self.emit(EventLevel.ERROR, message)

    def header(self, message: str) -> RunEvent:
        return self.emit(EventLevel.HEADER, message)

    def command_output(self, output: str) -> RunEvent | None:
        """Record the full output of a remote command, if there is any."""
        if not output.strip():
            return None
        line_count = len(output.rstrip("\n").split("\n"))
        return self.emit(EventLevel.INFO, f"Command output ({line_count} lines)", output=output)

    def events_for(self, host: str) -> list[RunEvent]:
        return [event for event in self.events if event.host == host]
