"""
Shared machinery for the specialized system cloners.

A SystemCloner runs the same outer sequence for every system: safety guard,
connection, system-specific work, result bookkeeping. Subclasses implement
``_clone`` and describe the tables they need in ``required_tables``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, TypeVar

from envclone.access.interface import ConnectionFactory, Row, TableAccess
from envclone.access.transfer import fetch_all, with_timeout, write_rows
from envclone.anonymization.base import Clock, utc_now
from envclone.environments.models import Environment
from envclone.exceptions import (
    ConfigurationError,
    IntegrityViolationError,
    ProductionSafetyViolation,
    SchemaValidationError,
    TableAccessError,
)
from envclone.observability import (
    ATTR_OPERATION_ID,
    ATTR_SOURCE_ENV,
    ATTR_SYSTEM,
    ATTR_TARGET_ENV,
    Tracer,
    create_tracer,
)
from envclone.operations import Stopwatch, new_operation_id
from envclone.planner import TablePlanner
from envclone.safety import ProductionSafetyGuard
from envclone.specialized.models import SystemCloneResult

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=SystemCloneResult)


def coerce_datetime(value: Any) -> datetime | None:
    """Timezone-aware datetime from a datetime or ISO-8601 text; None otherwise."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def within_age(
    row: Row,
    max_age_days: int | None,
    now: datetime,
    columns: Sequence[str] = ("created_at",),
) -> bool:
    """
    True if the row is younger than `max_age_days`.

    The first of `columns` holding a timestamp decides. Rows without any
    timestamp are kept.
    """
    if max_age_days is None:
        return True
    for column in columns:
        stamp = coerce_datetime(row.get(column))
        if stamp is not None:
            return stamp >= now - timedelta(days=max_age_days)
    return True


def keys_of(rows: Iterable[Row], column: str = "id") -> set[str]:
    return {str(r[column]) for r in rows if r.get(column) is not None}


class SystemCloner(Generic[ResultT]):
    """
    Base class for one specialized system cloner.

    Args:
        connection_factory: Produces data store connections for environments
        safety_guard: Production safety guard
        planner: Source of each table's conflict key
        page_size: Rows per source fetch
        batch_size: Rows per target write
        timeout: Seconds allowed per data store call
        clock: Source of "now" for age filters
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    system: str = ""
    required_tables: tuple[str, ...] = ()

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        safety_guard: ProductionSafetyGuard | None = None,
        planner: TablePlanner | None = None,
        page_size: int = 1000,
        batch_size: int = 500,
        timeout: float = 30.0,
        clock: Clock = utc_now,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._factory = connection_factory
        self._guard = safety_guard or ProductionSafetyGuard()
        self._planner = planner or TablePlanner()
        self._page_size = page_size
        self._batch_size = batch_size
        self._timeout = timeout
        self._clock = clock

    def new_result(self) -> ResultT:
        raise NotImplementedError

    async def _clone(
        self,
        source: Environment,
        target: Environment,
        source_access: TableAccess,
        target_access: TableAccess,
        options: Any,
        result: ResultT,
    ) -> None:
        raise NotImplementedError

    async def missing_tables(self, access: TableAccess) -> list[str]:
        """Required tables absent from `access`."""
        missing = []
        for table in self.required_tables:
            if not await with_timeout(access.exists(table), self._timeout, table, "exists"):
                missing.append(table)
        return missing

    async def run(
        self,
        source: Environment,
        target: Environment,
        options: Any,
        operation_id: str | None = None,
        *,
        source_access: TableAccess | None = None,
        target_access: TableAccess | None = None,
    ) -> ResultT:
        """
        Clone this system.

        Connections passed in are used as-is and left open; otherwise they
        are opened here and closed afterwards. Safety violations, schema
        problems, integrity violations and connectivity failures end the
        sub-clone and are recorded as errors.
        """
        operation_id = operation_id or new_operation_id(self.system)
        result = self.new_result()
        watch = Stopwatch()
        opened: list[TableAccess] = []

        with self._tracer.span(
            f"envclone.specialized.{self.system}.clone",
            {
                ATTR_OPERATION_ID: operation_id,
                ATTR_SYSTEM: self.system,
                ATTR_SOURCE_ENV: source.name,
                ATTR_TARGET_ENV: target.name,
            },
        ):
            try:
                self._guard.validate_clone_pair(source, target)
                if source_access is None:
                    source_access = await self._factory.connect(source)
                    opened.append(source_access)
                if target_access is None:
                    target_access = await self._factory.connect(target)
                    opened.append(target_access)
                await self._clone(source, target, source_access, target_access, options, result)
            except ProductionSafetyViolation as e:
                result.errors.append(str(e))
            except (SchemaValidationError, IntegrityViolationError) as e:
                logger.error("%s clone stopped: %s", self.system.capitalize(), e)
                result.errors.append(str(e))
            except (ConfigurationError, TableAccessError) as e:
                logger.error("%s clone failed: %s", self.system.capitalize(), e)
                result.errors.append(f"{self.system.capitalize()} clone failed: {e}")
            finally:
                for access in dict.fromkeys(opened):
                    await access.close()

        result.success = not result.errors
        result.duration_seconds = watch.elapsed
        logger.info(
            "%s system clone %s: %d records in %d tables (%.2fs)",
            self.system.capitalize(),
            "succeeded" if result.success else "failed",
            result.records_cloned,
            len(result.tables_cloned),
            result.duration_seconds,
        )
        return result

    async def _require_schema(self, access: TableAccess, side: str) -> None:
        missing = await self.missing_tables(access)
        if missing:
            raise SchemaValidationError(self.system, missing, side)

    async def _fetch(self, access: TableAccess, table: str) -> list[Row]:
        return await fetch_all(access, table, page_size=self._page_size, timeout=self._timeout)

    async def _write(
        self,
        access: TableAccess,
        table: str,
        rows: Sequence[Row],
        result: ResultT,
    ) -> int:
        """Write rows and record the table; failed batches become errors."""
        if not rows:
            return 0
        summary = await write_rows(
            access,
            table,
            rows,
            self._planner.spec_for(table).conflict_key,
            batch_size=self._batch_size,
            timeout=self._timeout,
        )
        if summary.failed_batches:
            result.errors.append(
                f"{table}: {summary.failed_batches} of {summary.batches} batches failed: {summary.errors[0]}"
            )
        if summary.written:
            result.tables_cloned.append(table)
        result.records_cloned += summary.written
        return summary.written


__all__ = [
    "SystemCloner",
    "coerce_datetime",
    "keys_of",
    "within_age",
]
