"""RunLog: the append-only audit trail of a workflow run.

Every user-meaningful transition (stage/node start, tool invocation, node
success or failure, stage completion, run completion, structural repairs)
appends one entry. The executor never reads the log back; it exists for
observability only.

Entries are mirrored to the Python logger so that a configured
``flowrun.observability`` handler sees them with trace context attached.
Listeners registered with :meth:`RunLog.subscribe` receive each entry as it
is appended (UI reflection).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class LogLevel(StrEnum):
    """Severity of a run log entry."""

    INFO = "info"
    RUNNING = "running"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_PY_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.RUNNING: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class LogEntry(BaseModel):
    """One timestamped, severity-tagged run log entry."""

    time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    level: LogLevel
    message: str
    node_id: str | None = None

    model_config = {"frozen": True}


LogListener = Callable[[LogEntry], None]


class RunLog:
    """Append-only ordered sequence of :class:`LogEntry`."""

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []
        self._listeners: list[LogListener] = []

    def add(self, level: LogLevel | str, message: str, node_id: str | None = None) -> LogEntry:
        entry = LogEntry(level=LogLevel(level), message=message, node_id=node_id)
        self._entries.append(entry)
        logger.log(
            _PY_LEVELS[entry.level],
            message,
            extra={"severity": entry.level, "node_id": node_id},
        )
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def info(self, message: str, node_id: str | None = None) -> LogEntry:
        return self.add(LogLevel.INFO, message, node_id)

    def running(self, message: str, node_id: str | None = None) -> LogEntry:
        return self.add(LogLevel.RUNNING, message, node_id)

    def success(self, message: str, node_id: str | None = None) -> LogEntry:
        return self.add(LogLevel.SUCCESS, message, node_id)

    def warning(self, message: str, node_id: str | None = None) -> LogEntry:
        return self.add(LogLevel.WARNING, message, node_id)

    def error(self, message: str, node_id: str | None = None) -> LogEntry:
        return self.add(LogLevel.ERROR, message, node_id)

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def entries(self) -> list[LogEntry]:
        """Snapshot of the entries appended so far."""
        return list(self._entries)

    def messages(self, level: LogLevel | str | None = None) -> list[str]:
        """Entry messages, optionally filtered by severity."""
        if level is None:
            return [e.message for e in self._entries]
        wanted = LogLevel(level)
        return [e.message for e in self._entries if e.level == wanted]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))
