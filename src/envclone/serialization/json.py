"""
JSON for database row values.

Rows fetched through SQLAlchemy hold UUIDs, timestamps, Decimals and raw
bytes. Backups snapshot those rows to disk, the SQL access layer writes
dict values into JSON columns, and the CLI prints clone reports, so all
three go through :func:`json_dumps`.
"""

import base64
import json
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _encode_bytes(value: bytes | bytearray | memoryview) -> str:
    return base64.b64encode(bytes(value)).decode("ascii")


# Checked in order; Decimal stays a string so amounts survive a backup exactly.
_CONVERTERS: tuple[tuple[type | tuple[type, ...], Callable[[Any], Any]], ...] = (
    (UUID, str),
    ((datetime, date, time), lambda value: value.isoformat()),
    (timedelta, lambda value: value.total_seconds()),
    (Decimal, str),
    (Enum, lambda value: value.value),
    ((bytes, bytearray, memoryview), _encode_bytes),
    ((set, frozenset), lambda value: sorted(value, key=str)),
)


class CloneJSONEncoder(json.JSONEncoder):
    """Encoder for the value types that appear in cloned rows."""

    def default(self, obj: Any) -> Any:
        for types, convert in _CONVERTERS:
            if isinstance(obj, types):
                return convert(obj)
        return super().default(obj)


def json_dumps(obj: Any, *, indent: int | None = None) -> str:
    return json.dumps(obj, cls=CloneJSONEncoder, indent=indent, ensure_ascii=False)


def json_loads(s: str | bytes) -> Any:
    """
    Parse JSON text.

    Strings produced for UUIDs, timestamps and Decimals stay strings; the
    target store coerces them when the row is written back.
    """
    return json.loads(s)


__all__ = ["CloneJSONEncoder", "json_dumps", "json_loads"]
