"""
SQLAlchemy table access implementation.

Works against any SQLAlchemy async dialect that supports
``INSERT ... ON CONFLICT`` (PostgreSQL via asyncpg, SQLite via aiosqlite).
Function and trigger cloning is only available on PostgreSQL.

Example:
    >>> from sqlalchemy.ext.asyncio import create_async_engine
    >>> engine = create_async_engine("postgresql+asyncpg://localhost/app")
    >>> access = SQLAlchemyTableAccess(engine)
    >>> rows = await access.fetch_page("categories", 0, 1000)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

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
from envclone.observability import (
    ATTR_BATCH_SIZE,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_PAGE_OFFSET,
    ATTR_TABLE,
    Tracer,
    create_tracer,
)
from envclone.serialization import json_dumps

logger = logging.getLogger(__name__)


def _split(table: str) -> tuple[str | None, str]:
    if "." in table:
        schema, name = table.split(".", 1)
        return schema, name
    return None, table


def _error_text(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)


def _bind_value(value: Any) -> Any:
    # dict/list values go to JSON columns as text
    if isinstance(value, (dict, list)):
        return json_dumps(value)
    return value


class SQLAlchemyTableAccess(TableAccess, RoutineAccess):
    """
    Table access over a SQLAlchemy async engine or connection.

    Args:
        conn: Database connection or engine
        owns_engine: Dispose the engine on close()
        tracer: Optional tracer (if not provided, one will be created)
        enable_tracing: Whether to enable OpenTelemetry tracing (default True)
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        *,
        owns_engine: bool = False,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.conn = conn
        self._owns_engine = owns_engine
        self._dialect = conn.dialect
        self._primary_keys: dict[str, list[str]] = {}

    @property
    def dialect_name(self) -> str:
        return self._dialect.name

    @asynccontextmanager
    async def _connection(self, *, write: bool = False) -> AsyncIterator[AsyncConnection]:
        """
        Connection for one call.

        On an engine each call gets its own connection, or its own
        transaction when `write` is set. A connection passed in at
        construction is used as-is and the caller owns its transaction.
        """
        if not isinstance(self.conn, AsyncEngine):
            yield self.conn
            return
        opener = self.conn.begin() if write else self.conn.connect()
        async with opener as connection:
            yield connection

    def _quote(self, table: str) -> str:
        preparer = self._dialect.identifier_preparer
        schema, name = _split(table)
        if schema:
            return f"{preparer.quote_schema(schema)}.{preparer.quote(name)}"
        return preparer.quote(name)

    def _quote_column(self, column: str) -> str:
        return self._dialect.identifier_preparer.quote(column)

    def _attrs(self, table: str, operation: str, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        attrs = {ATTR_TABLE: table, ATTR_DB_SYSTEM: self.dialect_name, ATTR_DB_OPERATION: operation}
        attrs.update(extra or {})
        return attrs

    async def exists(self, table: str) -> bool:
        schema, name = _split(table)
        with self._tracer.span("envclone.sqlalchemy.exists", self._attrs(table, "INSPECT")):
            try:
                async with self._connection() as conn:
                    return await conn.run_sync(
                        lambda sync_conn: inspect(sync_conn).has_table(name, schema=schema)
                    )
            except SQLAlchemyError as e:
                raise TableAccessError(table, "exists", _error_text(e)) from e

    async def columns(self, table: str) -> set[str]:
        schema, name = _split(table)
        with self._tracer.span("envclone.sqlalchemy.columns", self._attrs(table, "INSPECT")):
            try:
                async with self._connection() as conn:
                    columns = await conn.run_sync(
                        lambda sync_conn: inspect(sync_conn).get_columns(name, schema=schema)
                    )
            except SQLAlchemyError as e:
                logger.debug("Could not reflect columns of %s: %s", table, _error_text(e))
                return set()
            return {c["name"] for c in columns}

    async def _primary_key(self, table: str) -> list[str]:
        if table not in self._primary_keys:
            schema, name = _split(table)
            async with self._connection() as conn:
                constraint = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).get_pk_constraint(name, schema=schema)
                )
            self._primary_keys[table] = list(constraint.get("constrained_columns") or [])
        return self._primary_keys[table]

    async def fetch_page(self, table: str, offset: int, limit: int) -> list[Row]:
        attrs = self._attrs(table, "SELECT", {ATTR_PAGE_OFFSET: offset})
        with self._tracer.span("envclone.sqlalchemy.fetch_page", attrs):
            try:
                pk = await self._primary_key(table)
                order = f" ORDER BY {', '.join(self._quote_column(c) for c in pk)}" if pk else ""
                query = text(f"SELECT * FROM {self._quote(table)}{order} LIMIT :limit OFFSET :offset")
                async with self._connection() as conn:
                    result = await conn.execute(query, {"limit": limit, "offset": offset})
                    return [dict(row._mapping) for row in result]
            except SQLAlchemyError as e:
                raise TableAccessError(table, "fetch_page", _error_text(e)) from e

    def _insert_statement(
        self,
        table: str,
        columns: list[str],
        conflict_key: Sequence[str] | None,
    ) -> str:
        column_sql = ", ".join(self._quote_column(c) for c in columns)
        values_sql = ", ".join(f":p{i}" for i in range(len(columns)))
        statement = f"INSERT INTO {self._quote(table)} ({column_sql}) VALUES ({values_sql})"
        if conflict_key is None:
            return statement

        key_sql = ", ".join(self._quote_column(c) for c in conflict_key)
        updates = [c for c in columns if c not in conflict_key]
        if not updates:
            return f"{statement} ON CONFLICT ({key_sql}) DO NOTHING"
        set_sql = ", ".join(
            f"{self._quote_column(c)} = EXCLUDED.{self._quote_column(c)}" for c in updates
        )
        return f"{statement} ON CONFLICT ({key_sql}) DO UPDATE SET {set_sql}"

    async def _write(
        self,
        table: str,
        rows: Sequence[Row],
        conflict_key: Sequence[str] | None,
    ) -> WriteResult:
        if not rows:
            return WriteResult(0)
        columns = list(dict.fromkeys(col for row in rows for col in row))
        query = text(self._insert_statement(table, columns, conflict_key))
        params = [{f"p{i}": _bind_value(row.get(c)) for i, c in enumerate(columns)} for row in rows]
        try:
            async with self._connection(write=True) as conn:
                await conn.execute(query, params)
        except SQLAlchemyError as e:
            return WriteResult(0, _error_text(e))
        return WriteResult(len(rows))

    async def upsert_batch(
        self,
        table: str,
        rows: Sequence[Row],
        conflict_key: Sequence[str],
    ) -> WriteResult:
        attrs = self._attrs(table, "INSERT", {ATTR_BATCH_SIZE: len(rows)})
        with self._tracer.span("envclone.sqlalchemy.upsert_batch", attrs):
            return await self._write(table, rows, conflict_key)

    async def insert_batch(self, table: str, rows: Sequence[Row]) -> WriteResult:
        attrs = self._attrs(table, "INSERT", {ATTR_BATCH_SIZE: len(rows)})
        with self._tracer.span("envclone.sqlalchemy.insert_batch", attrs):
            return await self._write(table, rows, None)

    async def delete_all(self, table: str) -> DeleteResult:
        with self._tracer.span("envclone.sqlalchemy.delete_all", self._attrs(table, "DELETE")):
            if not await self.exists(table):
                return DeleteResult(0)
            try:
                async with self._connection(write=True) as conn:
                    result = await conn.execute(text(f"DELETE FROM {self._quote(table)}"))
                    return DeleteResult(max(result.rowcount or 0, 0))
            except SQLAlchemyError as e:
                return DeleteResult(0, _error_text(e))

    async def count(self, table: str) -> int:
        with self._tracer.span("envclone.sqlalchemy.count", self._attrs(table, "SELECT")):
            try:
                async with self._connection() as conn:
                    result = await conn.execute(text(f"SELECT COUNT(*) FROM {self._quote(table)}"))
                    return int(result.scalar_one())
            except SQLAlchemyError as e:
                raise TableAccessError(table, "count", _error_text(e)) from e

    async def close(self) -> None:
        if self._owns_engine and isinstance(self.conn, AsyncEngine):
            await self.conn.dispose()

    # -- RoutineAccess (PostgreSQL only) -------------------------------------

    def _supports_routines(self) -> bool:
        if self.dialect_name != "postgresql":
            logger.info("Routine cloning is not supported on %s", self.dialect_name)
            return False
        return True

    async def list_functions(self, schema: str) -> list[RoutineDefinition]:
        if not self._supports_routines():
            return []
        query = text("""
            SELECT p.proname, pg_get_functiondef(p.oid)
            FROM pg_proc p
            JOIN pg_namespace n ON n.oid = p.pronamespace
            WHERE n.nspname = :schema AND p.prokind = 'f'
            ORDER BY p.proname
        """)
        try:
            async with self._connection() as conn:
                result = await conn.execute(query, {"schema": schema})
                return [RoutineDefinition(schema, row[0], row[1]) for row in result]
        except SQLAlchemyError as e:
            raise TableAccessError(schema, "list_functions", _error_text(e)) from e

    async def list_triggers(self, schema: str) -> list[TriggerDefinition]:
        if not self._supports_routines():
            return []
        query = text("""
            SELECT t.tgname, cn.nspname, c.relname,
                   pn.nspname || '.' || p.proname,
                   pg_get_triggerdef(t.oid),
                   t.tgenabled <> 'D'
            FROM pg_trigger t
            JOIN pg_class c ON c.oid = t.tgrelid
            JOIN pg_namespace cn ON cn.oid = c.relnamespace
            JOIN pg_proc p ON p.oid = t.tgfoid
            JOIN pg_namespace pn ON pn.oid = p.pronamespace
            WHERE NOT t.tgisinternal AND pn.nspname = :schema
            ORDER BY t.tgname
        """)
        try:
            async with self._connection() as conn:
                result = await conn.execute(query, {"schema": schema})
                return [
                    TriggerDefinition(
                        name=row[0],
                        table=row[2] if row[1] == "public" else f"{row[1]}.{row[2]}",
                        function=row[3],
                        definition=row[4],
                        enabled=bool(row[5]),
                    )
                    for row in result
                ]
        except SQLAlchemyError as e:
            raise TableAccessError(schema, "list_triggers", _error_text(e)) from e

    async def apply_function(self, routine: RoutineDefinition) -> None:
        try:
            async with self._connection(write=True) as conn:
                await conn.exec_driver_sql(f"CREATE SCHEMA IF NOT EXISTS {self._quote_column(routine.schema)}")
                # Function bodies contain colons, so bypass text() bind parsing
                await conn.exec_driver_sql(routine.definition)
        except SQLAlchemyError as e:
            raise TableAccessError(routine.qualified_name, "apply_function", _error_text(e)) from e

    async def apply_trigger(self, trigger: TriggerDefinition) -> None:
        try:
            async with self._connection(write=True) as conn:
                await conn.exec_driver_sql(
                    f"DROP TRIGGER IF EXISTS {self._quote_column(trigger.name)} ON {self._quote(trigger.table)}"
                )
                await conn.exec_driver_sql(trigger.definition)
        except SQLAlchemyError as e:
            raise TableAccessError(trigger.table, "apply_trigger", _error_text(e)) from e

    async def check_trigger(self, trigger: TriggerDefinition) -> bool:
        if not self._supports_routines():
            return False
        query = text("""
            SELECT t.tgenabled <> 'D'
            FROM pg_trigger t
            JOIN pg_proc p ON p.oid = t.tgfoid
            WHERE t.tgname = :name AND NOT t.tgisinternal
        """)
        try:
            async with self._connection() as conn:
                result = await conn.execute(query, {"name": trigger.name})
                row = result.fetchone()
                return bool(row and row[0])
        except SQLAlchemyError as e:
            raise TableAccessError(trigger.table, "check_trigger", _error_text(e)) from e


def normalize_database_url(url: str) -> str:
    """Map plain ``postgres://``/``postgresql://`` URLs onto the asyncpg driver."""
    parsed = make_url(url)
    if parsed.drivername in ("postgres", "postgresql"):
        parsed = parsed.set(drivername="postgresql+asyncpg")
    elif parsed.drivername == "sqlite":
        parsed = parsed.set(drivername="sqlite+aiosqlite")
    return parsed.render_as_string(hide_password=False)


class SQLAlchemyConnectionFactory:
    """
    Builds a SQLAlchemyTableAccess with its own engine for each environment.

    Args:
        engine_options: Extra keyword arguments for create_async_engine
        enable_tracing: Whether accesses trace their statements
    """

    def __init__(self, engine_options: dict[str, Any] | None = None, enable_tracing: bool = True) -> None:
        self._engine_options = {"pool_pre_ping": True, **(engine_options or {})}
        self._enable_tracing = enable_tracing

    async def connect(self, environment: Environment) -> SQLAlchemyTableAccess:
        try:
            url = normalize_database_url(environment.connection.url)
            engine = create_async_engine(url, **self._engine_options)
        except (SQLAlchemyError, ValueError) as e:
            raise ConfigurationError(f"Invalid database URL for environment {environment.name}: {e}") from e
        logger.debug("Created engine for environment %s (%s)", environment.name, engine.dialect.name)
        return SQLAlchemyTableAccess(engine, owns_engine=True, enable_tracing=self._enable_tracing)


__all__ = [
    "SQLAlchemyTableAccess",
    "SQLAlchemyConnectionFactory",
    "normalize_database_url",
]
