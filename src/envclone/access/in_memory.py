"""
In-memory table access implementation.

Useful for tests, dry rehearsals, and embedding. Each instance models one
environment's data store: tables are ordered lists of dict rows, with
optional declared column sets. Every call is recorded so that tests can
assert exactly what was read and written.

Example:
    >>> store = InMemoryTableAccess({"categories": [{"id": 1, "name": "A"}]})
    >>> rows = await store.fetch_page("categories", 0, 1000)
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Sequence
from dataclasses import dataclass

from envclone.access.interface import (
    DeleteResult,
    RoutineAccess,
    RoutineDefinition,
    Row,
    TableAccess,
    TriggerDefinition,
    WriteResult,
)
from envclone.environments.models import Environment
from envclone.exceptions import ConfigurationError, TableAccessError


@dataclass(frozen=True)
class AccessCall:
    """One recorded call: operation name, table, and number of rows involved."""

    operation: str
    table: str
    rows: int = 0


class InMemoryTableAccess(TableAccess, RoutineAccess):
    """
    In-memory data store for one environment.

    Args:
        tables: Initial rows per table
        columns: Declared column sets per table; tables without a declared
            set report the keys of their first row
        primary_key: Column that must be unique on plain inserts
    """

    def __init__(
        self,
        tables: dict[str, list[Row]] | None = None,
        *,
        columns: dict[str, set[str]] | None = None,
        primary_key: str = "id",
    ) -> None:
        self._tables: dict[str, list[Row]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self._columns: dict[str, set[str]] = {k: set(v) for k, v in (columns or {}).items()}
        for name in self._columns:
            self._tables.setdefault(name, [])
        self._primary_key = primary_key
        self._functions: dict[str, RoutineDefinition] = {}
        self._triggers: dict[str, TriggerDefinition] = {}
        self._failures: dict[tuple[str, str], tuple[str, bool]] = {}
        self._delays: dict[tuple[str, str], float] = {}
        self._lock = asyncio.Lock()
        self.calls: list[AccessCall] = []
        self.closed = False

    # -- Setup helpers -----------------------------------------------------

    def create_table(
        self,
        table: str,
        rows: list[Row] | None = None,
        columns: set[str] | None = None,
    ) -> None:
        self._tables[table] = [dict(r) for r in rows or []]
        if columns is not None:
            self._columns[table] = set(columns)

    def drop_table(self, table: str) -> None:
        self._tables.pop(table, None)
        self._columns.pop(table, None)

    def add_function(self, routine: RoutineDefinition) -> None:
        self._functions[routine.qualified_name] = routine

    def add_trigger(self, trigger: TriggerDefinition) -> None:
        self._triggers[trigger.name] = trigger

    def fail(self, table: str, operation: str, message: str, *, raise_error: bool = True) -> None:
        """
        Make `operation` on `table` fail.

        With ``raise_error`` the call raises TableAccessError (a connectivity
        failure); otherwise writes report the message in their result.
        """
        self._failures[(table, operation)] = (message, raise_error)

    def delay(self, table: str, operation: str, seconds: float) -> None:
        self._delays[(table, operation)] = seconds

    # -- Inspection helpers ------------------------------------------------

    def rows(self, table: str) -> list[Row]:
        return copy.deepcopy(self._tables.get(table, []))

    def calls_for(self, operation: str, table: str | None = None) -> list[AccessCall]:
        return [
            c for c in self.calls if c.operation == operation and (table is None or c.table == table)
        ]

    @property
    def rows_written(self) -> int:
        return sum(c.rows for c in self.calls if c.operation in ("upsert_batch", "insert_batch"))

    @property
    def functions(self) -> dict[str, RoutineDefinition]:
        return dict(self._functions)

    @property
    def triggers(self) -> dict[str, TriggerDefinition]:
        return dict(self._triggers)

    # -- TableAccess -------------------------------------------------------

    async def _enter(self, operation: str, table: str, rows: int = 0) -> str | None:
        self.calls.append(AccessCall(operation, table, rows))
        delay = self._delays.get((table, operation))
        if delay:
            await asyncio.sleep(delay)
        failure = self._failures.get((table, operation))
        if failure is None:
            return None
        message, raise_error = failure
        if raise_error:
            raise TableAccessError(table, operation, message)
        return message

    async def exists(self, table: str) -> bool:
        await self._enter("exists", table)
        return table in self._tables

    async def columns(self, table: str) -> set[str]:
        await self._enter("columns", table)
        if table in self._columns:
            return set(self._columns[table])
        rows = self._tables.get(table)
        return set(rows[0]) if rows else set()

    async def fetch_page(self, table: str, offset: int, limit: int) -> list[Row]:
        await self._enter("fetch_page", table)
        if table not in self._tables:
            raise TableAccessError(table, "fetch_page", f'relation "{table}" does not exist')
        return copy.deepcopy(self._tables[table][offset : offset + limit])

    def _check_columns(self, table: str, rows: Sequence[Row]) -> str | None:
        if table not in self._tables:
            return f'relation "{table}" does not exist'
        declared = self._columns.get(table)
        if declared:
            for row in rows:
                extra = set(row) - declared
                if extra:
                    return f'column "{sorted(extra)[0]}" of relation "{table}" does not exist'
        return None

    async def upsert_batch(
        self,
        table: str,
        rows: Sequence[Row],
        conflict_key: Sequence[str],
    ) -> WriteResult:
        rejected = await self._enter("upsert_batch", table, len(rows))
        if rejected:
            self.calls[-1] = AccessCall("upsert_batch", table, 0)
            return WriteResult(0, rejected)
        async with self._lock:
            problem = self._check_columns(table, rows)
            if problem is None and any(col not in row for row in rows for col in conflict_key):
                problem = f"there is no unique constraint matching ON CONFLICT ({', '.join(conflict_key)})"
            if problem:
                self.calls[-1] = AccessCall("upsert_batch", table, 0)
                return WriteResult(0, problem)

            existing = self._tables[table]
            index = {tuple(r.get(c) for c in conflict_key): i for i, r in enumerate(existing)}
            for row in rows:
                key = tuple(row[c] for c in conflict_key)
                if key in index:
                    merged = dict(existing[index[key]])
                    merged.update(copy.deepcopy(row))
                    existing[index[key]] = merged
                else:
                    index[key] = len(existing)
                    existing.append(copy.deepcopy(dict(row)))
            return WriteResult(len(rows))

    async def insert_batch(self, table: str, rows: Sequence[Row]) -> WriteResult:
        rejected = await self._enter("insert_batch", table, len(rows))
        if rejected:
            self.calls[-1] = AccessCall("insert_batch", table, 0)
            return WriteResult(0, rejected)
        async with self._lock:
            problem = self._check_columns(table, rows)
            if problem is None:
                pk = self._primary_key
                seen = {r.get(pk) for r in self._tables[table] if r.get(pk) is not None}
                for row in rows:
                    value = row.get(pk)
                    if value is not None and value in seen:
                        problem = f'duplicate key value violates unique constraint "{table}_pkey"'
                        break
                    seen.add(value)
            if problem:
                self.calls[-1] = AccessCall("insert_batch", table, 0)
                return WriteResult(0, problem)
            self._tables[table].extend(copy.deepcopy(dict(r)) for r in rows)
            return WriteResult(len(rows))

    async def delete_all(self, table: str) -> DeleteResult:
        rejected = await self._enter("delete_all", table)
        if rejected:
            return DeleteResult(0, rejected)
        async with self._lock:
            rows = self._tables.get(table)
            if not rows:
                return DeleteResult(0)
            deleted = len(rows)
            rows.clear()
            return DeleteResult(deleted)

    async def count(self, table: str) -> int:
        await self._enter("count", table)
        if table not in self._tables:
            raise TableAccessError(table, "count", f'relation "{table}" does not exist')
        return len(self._tables[table])

    async def close(self) -> None:
        self.closed = True

    # -- RoutineAccess -----------------------------------------------------

    async def list_functions(self, schema: str) -> list[RoutineDefinition]:
        await self._enter("list_functions", schema)
        return [f for f in self._functions.values() if f.schema == schema]

    async def list_triggers(self, schema: str) -> list[TriggerDefinition]:
        await self._enter("list_triggers", schema)
        return [t for t in self._triggers.values() if t.function.startswith(f"{schema}.")]

    async def apply_function(self, routine: RoutineDefinition) -> None:
        await self._enter("apply_function", routine.qualified_name)
        self._functions[routine.qualified_name] = routine

    async def apply_trigger(self, trigger: TriggerDefinition) -> None:
        await self._enter("apply_trigger", trigger.table)
        if trigger.table not in self._tables:
            raise TableAccessError(trigger.table, "apply_trigger", f'relation "{trigger.table}" does not exist')
        if trigger.function not in self._functions:
            raise TableAccessError(
                trigger.table, "apply_trigger", f"function {trigger.function}() does not exist"
            )
        self._triggers[trigger.name] = trigger

    async def check_trigger(self, trigger: TriggerDefinition) -> bool:
        await self._enter("check_trigger", trigger.table)
        installed = self._triggers.get(trigger.name)
        return (
            installed is not None
            and installed.enabled
            and installed.function in self._functions
            and installed.table in self._tables
        )


class InMemoryConnectionFactory:
    """
    Connection factory handing out pre-built in-memory stores by environment id.

    Example:
        >>> factory = InMemoryConnectionFactory({"prod": prod_store, "test": test_store})
        >>> access = await factory.connect(test_env)
    """

    def __init__(self, stores: dict[str, InMemoryTableAccess] | None = None) -> None:
        self._stores: dict[str, InMemoryTableAccess] = dict(stores or {})
        self.connected: list[str] = []

    def register(self, environment_id: str, store: InMemoryTableAccess) -> None:
        self._stores[environment_id] = store

    async def connect(self, environment: Environment) -> InMemoryTableAccess:
        store = self._stores.get(environment.id)
        if store is None:
            raise ConfigurationError(f"No data store registered for environment {environment.id}")
        self.connected.append(environment.id)
        return store


class InMemoryRealtimeProbe:
    """Realtime probe answering from a fixed set of subscribable tables."""

    def __init__(self, subscribable: set[str] | None = None) -> None:
        self._subscribable = set(subscribable or ())
        self.probes: list[tuple[str, str]] = []

    async def can_subscribe(self, environment: Environment, table: str) -> bool:
        self.probes.append((environment.id, table))
        return table in self._subscribable


__all__ = [
    "AccessCall",
    "InMemoryTableAccess",
    "InMemoryConnectionFactory",
    "InMemoryRealtimeProbe",
]
