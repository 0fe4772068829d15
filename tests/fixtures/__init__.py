"""
Shared test data for envclone tests.

Provides:
- make_environment: Environment descriptors with sensible per-type defaults
- production_tables: A small production data set covering the core tables
- build_source / build_target: In-memory stores seeded from that data set
"""

from __future__ import annotations

import copy
from datetime import UTC, datetime, timedelta
from typing import Any

from envclone.access import InMemoryTableAccess
from envclone.environments import (
    ConnectionDescriptor,
    Environment,
    EnvironmentStatus,
    EnvironmentType,
)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

PROFILE_ID = "abc123de-0000-4000-8000-000000000001"
OTHER_PROFILE_ID = "f00dbabe-0000-4000-8000-000000000002"


def fixed_clock() -> datetime:
    return FIXED_NOW


def days_ago(days: int) -> str:
    return (FIXED_NOW - timedelta(days=days)).isoformat()


def make_environment(env_id: str, env_type: EnvironmentType, **overrides: Any) -> Environment:
    """
    Build an Environment.

    Production environments default to read-only without service
    credentials; every other type is writable with a service key.
    """
    production = env_type is EnvironmentType.PRODUCTION
    values: dict[str, Any] = {
        "id": env_id,
        "name": env_id,
        "type": env_type,
        "connection": ConnectionDescriptor(
            url=f"sqlite+aiosqlite:///{env_id}.db",
            service_key=None if production else "service-key",
        ),
        "allow_writes": not production,
        "status": EnvironmentStatus.READ_ONLY if production else EnvironmentStatus.ACTIVE,
    }
    values.update(overrides)
    return Environment(**values)


def production_tables() -> dict[str, list[dict[str, Any]]]:
    return copy.deepcopy(
        {
            "currencies": [{"id": "cur-1", "code": "DZD", "name": "Algerian Dinar"}],
            "categories": [
                {"id": "cat-1", "name": "Rent", "type": "income"},
                {"id": "cat-2", "name": "Cleaning", "type": "expense"},
            ],
            "loft_owners": [{"id": "own-1", "name": "Owner One"}],
            "zone_areas": [{"id": "zone-1", "name": "Center"}],
            "profiles": [
                {
                    "id": PROFILE_ID,
                    "email": "alice@example.com",
                    "full_name": "Alice Martin",
                    "role": "admin",
                    "access_token": "secret-token",
                    "updated_at": days_ago(30),
                },
                {
                    "id": OTHER_PROFILE_ID,
                    "email": "bob@example.com",
                    "full_name": "Bob Stone",
                    "role": "member",
                    "access_token": None,
                    "updated_at": days_ago(10),
                },
            ],
            "lofts": [
                {"id": "loft-1", "name": "Loft A", "owner_id": "own-1", "zone_area_id": "zone-1"},
                {"id": "loft-2", "name": "Loft B", "owner_id": "own-1", "zone_area_id": "zone-1"},
            ],
            "transactions": [
                {
                    "id": "tx-1",
                    "loft_id": "loft-1",
                    "category_id": "cat-1",
                    "currency_id": "cur-1",
                    "amount": 1200,
                },
                {
                    "id": "tx-2",
                    "loft_id": "loft-2",
                    "category_id": "cat-2",
                    "currency_id": "cur-1",
                    "amount": 300,
                },
            ],
            "notifications": [
                {
                    "id": "n-1",
                    "user_id": PROFILE_ID,
                    "message": "Please contact alice@example.com",
                    "is_read": False,
                },
                {"id": "n-2", "user_id": OTHER_PROFILE_ID, "message": "Your bill is due", "is_read": False},
            ],
            "user_sessions": [{"id": "s-1", "user_id": PROFILE_ID, "token": "session-token"}],
        }
    )


def build_source(tables: dict[str, list[dict[str, Any]]] | None = None) -> InMemoryTableAccess:
    return InMemoryTableAccess(production_tables() if tables is None else tables)


def build_target(tables: dict[str, list[dict[str, Any]]] | None = None) -> InMemoryTableAccess:
    """Empty target with the same tables and columns as `tables`."""
    tables = production_tables() if tables is None else tables
    store = InMemoryTableAccess()
    for name, rows in tables.items():
        store.create_table(name, columns=set(rows[0]) if rows else None)
    return store


__all__ = [
    "FIXED_NOW",
    "OTHER_PROFILE_ID",
    "PROFILE_ID",
    "build_source",
    "build_target",
    "days_ago",
    "fixed_clock",
    "make_environment",
    "production_tables",
]
