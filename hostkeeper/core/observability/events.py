"""
Maintenance events — the core's only channel to the operator.

The orchestrator, prober and disk loop emit ``{level, message}`` events
and never format for a terminal. Sinks decide where they go: the
logging tree, a click renderer, or a buffer for JSON output.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum

from hostkeeper.core.observability.logging_config import SUCCESS


class EventLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    EventLevel.INFO: logging.INFO,
    EventLevel.SUCCESS: SUCCESS,
    EventLevel.WARNING: logging.WARNING,
    EventLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Event:
    level: EventLevel
    message: str
    stage: str | None = None

    def to_dict(self) -> dict:
        return {"level": self.level.value, "message": self.message, "stage": self.stage}


class EventSink(ABC):
    """Receives maintenance events."""

    @abstractmethod
    def emit(self, event: Event) -> None: ...

    def info(self, message: str, stage: str | None = None) -> None:
        self.emit(Event(EventLevel.INFO, message, stage))

    def success(self, message: str, stage: str | None = None) -> None:
        self.emit(Event(EventLevel.SUCCESS, message, stage))

    def warning(self, message: str, stage: str | None = None) -> None:
        self.emit(Event(EventLevel.WARNING, message, stage))

    def error(self, message: str, stage: str | None = None) -> None:
        self.emit(Event(EventLevel.ERROR, message, stage))


class LoggingEventSink(EventSink):
    """Forward events to the stdlib logging tree."""

    def __init__(self, logger_name: str = "hostkeeper.events"):
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: Event) -> None:
        prefix = f"[{event.stage}] " if event.stage else ""
        self._logger.log(_LOG_LEVELS[event.level], "%s%s", prefix, event.message)


class RecordingEventSink(EventSink):
    """Buffer events in memory, optionally passing them on."""

    def __init__(self, forward: EventSink | None = None):
        self.events: list[Event] = []
        self._forward = forward

    def emit(self, event: Event) -> None:
        self.events.append(event)
        if self._forward is not None:
            self._forward.emit(event)

    def messages(self, level: EventLevel | None = None) -> list[str]:
        return [e.message for e in self.events if level is None or e.level == level]
