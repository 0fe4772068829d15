"""
Unit tests for the JSON serialization module.

Tests for:
- CloneJSONEncoder class
- json_dumps convenience function
- json_loads convenience function
"""

import json
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from envclone.cloning import TableStatus
from envclone.serialization import CloneJSONEncoder, json_dumps, json_loads


class TestCloneJSONEncoder:
    """Tests for CloneJSONEncoder."""

    def test_encodes_uuid(self):
        """Test encoding UUID to string."""
        test_uuid = uuid4()
        assert json_loads(json_dumps({"id": test_uuid})) == {"id": str(test_uuid)}

    def test_encodes_datetime(self):
        """Test encoding datetime to ISO format string."""
        now = datetime(2024, 1, 15, 10, 30, 45, 123456, tzinfo=UTC)
        assert json_loads(json_dumps({"at": now})) == {"at": now.isoformat()}

    def test_encodes_date(self):
        assert json_loads(json_dumps({"day": date(2024, 3, 1)})) == {"day": "2024-03-01"}

    def test_decimal_keeps_exact_text(self):
        """Decimals are emitted as strings so amounts are not rounded."""
        assert json_loads(json_dumps({"amount": Decimal("12.50")})) == {"amount": "12.50"}

    def test_encodes_enum_value(self):
        assert json_loads(json_dumps({"status": TableStatus.DRY_RUN})) == {"status": "dry-run"}

    def test_encodes_bytes_as_base64(self):
        assert json_loads(json_dumps({"blob": b"hi"})) == {"blob": "aGk="}

    def test_encodes_timedelta_as_seconds(self):
        assert json_loads(json_dumps({"wait": timedelta(minutes=1)})) == {"wait": 60.0}

    def test_encodes_set_sorted(self):
        assert json_loads(json_dumps({"cols": {"b", "a"}})) == {"cols": ["a", "b"]}

    def test_regular_types_unchanged(self):
        data = {"string": "hello", "number": 42, "boolean": True, "none": None}
        assert json_loads(json_dumps(data)) == data

    def test_non_ascii_is_not_escaped(self):
        assert "✅" in json_dumps({"icon": "✅"})

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            json_dumps({"obj": object()})

    def test_usable_with_stdlib_dumps(self):
        assert json.loads(json.dumps({"d": date(2024, 1, 1)}, cls=CloneJSONEncoder)) == {"d": "2024-01-01"}

    def test_indent(self):
        assert "\n" in json_dumps({"a": 1}, indent=2)


class TestJsonLoads:
    def test_accepts_bytes(self):
        assert json_loads(b'{"a": 1}') == {"a": 1}

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError):
            json_loads("{not json")
