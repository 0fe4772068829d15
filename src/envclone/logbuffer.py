"""
In-process ring buffer of recent log records.

LogBuffer is a logging.Handler that keeps the newest ``capacity`` records
so a caller can show them after a clone finishes. It is created by the
composition root and attached explicitly:

    >>> buffer = LogBuffer(capacity=500)
    >>> buffer.attach(logging.getLogger("envclone"))
    >>> ...
    >>> for entry in buffer.entries(logging.WARNING):
    ...     print(entry.message)
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True)
class LogEntry:
    """One buffered log record."""

    timestamp: datetime
    level: int
    logger_name: str
    message: str

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level_name,
            "logger": self.logger_name,
            "message": self.message,
        }


class LogBuffer(logging.Handler):
    """
    Bounded logging handler; the oldest entries are evicted first.

    Args:
        capacity: Maximum number of entries kept
        level: Minimum level recorded
    """

    def __init__(self, capacity: int = 1000, level: int = logging.NOTSET) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        super().__init__(level)
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._evicted = 0
        self._guard = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    @property
    def evicted(self) -> int:
        """Entries dropped because the buffer was full."""
        return self._evicted

    def __len__(self) -> int:
        return len(self._entries)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, UTC),
                level=record.levelno,
                logger_name=record.name,
                message=record.getMessage(),
            )
        except Exception:
            self.handleError(record)
            return
        with self._guard:
            if len(self._entries) == self._entries.maxlen:
                self._evicted += 1
            self._entries.append(entry)

    def entries(self, level: int | None = None) -> list[LogEntry]:
        """Buffered entries, oldest first, optionally at or above `level`."""
        with self._guard:
            snapshot = list(self._entries)
        if level is None:
            return snapshot
        return [e for e in snapshot if e.level >= level]

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()
            self._evicted = 0

    def attach(self, logger: logging.Logger | None = None) -> None:
        (logger or logging.getLogger()).addHandler(self)

    def detach(self, logger: logging.Logger | None = None) -> None:
        (logger or logging.getLogger()).removeHandler(self)


__all__ = ["LogBuffer", "LogEntry"]
