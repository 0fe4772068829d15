"""Operation identifiers and timing helpers shared by the cloners."""

from __future__ import annotations

import time
from datetime import UTC, datetime
from uuid import uuid4


def new_operation_id(prefix: str = "clone") -> str:
    """Unique, sortable identifier for one clone invocation."""
    return f"{prefix}_{datetime.now(UTC):%Y%m%d_%H%M%S}_{uuid4().hex[:8]}"


class Stopwatch:
    """Monotonic elapsed-time counter started on construction."""

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self._start


__all__ = ["Stopwatch", "new_operation_id"]
