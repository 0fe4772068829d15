"""
Anonymization strategy protocol and shared helpers.

Strategies are pure and deterministic per input: the same row always maps
to the same synthetic values. The only exceptions are "refresh" timestamps,
which come from an injectable clock. Synthetic values are derived with
SHA-256 from a record's own identifiers, so references between cloned rows
stay stable across re-runs.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from envclone.access.interface import Row
from envclone.serialization import json_loads

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@runtime_checkable
class AnonymizationStrategy(Protocol):
    """A table's anonymization rule: maps raw rows to sanitized rows."""

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        ...


class IdentityStrategy:
    """Strategy for tables without personal data: rows pass through as copies."""

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        return [dict(r) for r in rows]


class DropAllStrategy:
    """Strategy for tables that must never be cloned (e.g. sessions)."""

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        return []


def stable_hash(value: Any, length: int = 8, salt: str = "") -> str:
    """Deterministic hex digest prefix of `value`."""
    combined = f"{value}:{salt}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:length]


def stable_int(value: Any, salt: str = "") -> int:
    return int(stable_hash(value, 12, salt), 16)


def record_suffix(row: Row, length: int = 6, key: str = "id") -> str:
    """
    Stable suffix for a record.

    Taken from the record's own id when it has one, so the same record
    always yields the same suffix; otherwise derived from the record content.
    """
    identifier = row.get(key)
    if identifier is not None and str(identifier):
        text = str(identifier).replace("-", "")
        if len(text) >= length:
            return text[:length]
        return (text + stable_hash(identifier, length))[:length]
    return stable_hash(sorted((k, str(v)) for k, v in row.items()), length)


def load_json_object(value: Any) -> Any:
    """Return dict/list values as-is and parse JSON text; other values unchanged."""
    if isinstance(value, (str, bytes)):
        try:
            return json_loads(value)
        except ValueError:
            return value
    return value


__all__ = [
    "AnonymizationStrategy",
    "Clock",
    "DropAllStrategy",
    "IdentityStrategy",
    "load_json_object",
    "record_suffix",
    "stable_hash",
    "stable_int",
    "utc_now",
]
