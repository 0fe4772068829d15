"""
DataCloner - replicates tables from a source environment to a target.

Responsibilities:
    - Refuse illegal production use before any I/O (ProductionSafetyGuard)
    - Resolve data store connections for both environments
    - Probe a handful of must-have tables on both sides (warnings only)
    - Optionally clear the target in reverse dependency order
    - Clone each table in dependency order: probe, page through the source,
      shape rows to the target's columns, anonymize, and upsert in batches
    - Report per-table and aggregate results

Tables are processed strictly one after another. Within a table, each page
is written before the next one is fetched, so memory stays bounded by the
page size. A table's failure is recorded and the loop continues.

Usage:
    >>> cloner = DataCloner(SQLAlchemyConnectionFactory())
    >>> result = await cloner.clone_data(prod, test, CloneOptions(tables=["categories"]))
    >>> print(format_clone_report(result))
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime

from envclone.access.interface import ConnectionFactory, Row, TableAccess
from envclone.access.transfer import WriteSummary, iter_pages, with_timeout, write_rows
from envclone.anonymization.registry import AnonymizationRegistry
from envclone.anonymization.rules import build_default_registry
from envclone.cloning.models import CloneOptions, CloneResult, TableCloneResult, TableStatus
from envclone.cloning.validation import (
    CloneValidationService,
    CloneValidator,
    CountVerificationReport,
    ValidationReport,
)
from envclone.environments.models import Environment
from envclone.exceptions import (
    AnonymizationError,
    ConfigurationError,
    ProductionSafetyViolation,
    TableAccessError,
)
from envclone.observability import (
    ATTR_DRY_RUN,
    ATTR_OPERATION_ID,
    ATTR_SOURCE_ENV,
    ATTR_TABLE,
    ATTR_TABLE_COUNT,
    ATTR_TARGET_ENV,
    Tracer,
    create_tracer,
)
from envclone.operations import Stopwatch, new_operation_id
from envclone.planner import TablePlanner
from envclone.safety import ProductionSafetyGuard

logger = logging.getLogger(__name__)

# Probed on both sides before cloning; absence is reported, never fatal
PREFLIGHT_TABLES: tuple[str, ...] = ("profiles", "lofts", "transactions", "categories", "currencies")

RegistryFactory = Callable[[Environment, CloneOptions], AnonymizationRegistry]


def default_registry_factory(target: Environment, options: CloneOptions) -> AnonymizationRegistry:
    return build_default_registry(
        target.label,
        preserve_user_roles=options.preserve_user_roles,
        groups=options.anonymize_groups,
    )


def shape_rows(rows: Iterable[Row], columns: set[str]) -> tuple[list[Row], set[str]]:
    """
    Drop columns the target does not have.

    Args:
        rows: Source rows
        columns: Target column set; empty disables shaping

    Returns:
        Shaped rows and the set of dropped column names
    """
    if not columns:
        return [dict(r) for r in rows], set()
    dropped: set[str] = set()
    shaped = []
    for row in rows:
        dropped.update(k for k in row if k not in columns)
        shaped.append({k: v for k, v in row.items() if k in columns})
    return shaped, dropped


class DataCloner:
    """
    Generic table-by-table clone orchestrator.

    Args:
        connection_factory: Produces TableAccess objects for environments
        planner: Table dependency planner (default table specs if omitted)
        safety_guard: Production safety guard
        registry_factory: Builds the anonymization registry for a target
        validator: Post-clone validation collaborator
        preflight_tables: Tables probed on both sides before cloning
        table_callback: Called with each table's result as soon as it is final
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        planner: TablePlanner | None = None,
        safety_guard: ProductionSafetyGuard | None = None,
        registry_factory: RegistryFactory | None = None,
        validator: CloneValidationService | None = None,
        preflight_tables: Sequence[str] = PREFLIGHT_TABLES,
        table_callback: Callable[[TableCloneResult], None] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._factory = connection_factory
        self._planner = planner or TablePlanner()
        self._guard = safety_guard or ProductionSafetyGuard()
        self._registry_factory = registry_factory or default_registry_factory
        self._validator = validator
        self._preflight_tables = tuple(preflight_tables)
        self._table_callback = table_callback
        self._is_cancelled = False

    @property
    def planner(self) -> TablePlanner:
        return self._planner

    def cancel(self) -> None:
        """Stop after the table currently being cloned finishes."""
        logger.info("Clone cancellation requested")
        self._is_cancelled = True

    def plan_tables(self, options: CloneOptions) -> tuple[list[str], list[str]]:
        """Tables to clone in dependency order, plus planning warnings."""
        if options.tables is not None:
            plan = self._planner.plan(options.tables)
            tables, warnings = plan.tables, plan.warnings
        else:
            tables = self._planner.default_tables(options.groups)
            warnings = []
        if options.exclude_sensitive:
            skipped = [t for t in tables if self._planner.spec_for(t).sensitive]
            if skipped:
                logger.info("Excluding sensitive tables: %s", ", ".join(skipped))
            tables = [t for t in tables if t not in skipped]
        return tables, warnings

    async def clone_data(
        self,
        source: Environment,
        target: Environment,
        options: CloneOptions | None = None,
        *,
        operation_id: str | None = None,
    ) -> CloneResult:
        """
        Clone tables from source to target.

        Safety violations and configuration errors do not raise: they produce
        a failed, aborted result carrying the message verbatim.

        Args:
            source: Environment to read from
            target: Environment to write to
            options: Clone options (defaults if omitted)
            operation_id: Identifier for this invocation (generated if omitted)

        Returns:
            CloneResult with per-table outcomes
        """
        options = options or CloneOptions()
        operation_id = operation_id or new_operation_id()
        result = CloneResult(
            success=False,
            operation_id=operation_id,
            source_environment=source.name,
            target_environment=target.name,
            dry_run=options.dry_run,
        )
        watch = Stopwatch()

        try:
            self._guard.validate_clone_pair(source, target)
        except ProductionSafetyViolation as e:
            return self._abort(result, str(e), watch)

        try:
            source_access = await self._factory.connect(source)
        except (ConfigurationError, TableAccessError) as e:
            return self._abort(result, f"Could not connect to source {source.name}: {e}", watch)
        try:
            target_access = await self._factory.connect(target)
        except (ConfigurationError, TableAccessError) as e:
            await source_access.close()
            return self._abort(result, f"Could not connect to target {target.name}: {e}", watch)

        try:
            return await self.clone_with_access(
                source, target, source_access, target_access, options, result=result
            )
        finally:
            await source_access.close()
            if target_access is not source_access:
                await target_access.close()

    async def clone_with_access(
        self,
        source: Environment,
        target: Environment,
        source_access: TableAccess,
        target_access: TableAccess,
        options: CloneOptions,
        *,
        result: CloneResult | None = None,
        operation_id: str | None = None,
    ) -> CloneResult:
        """
        Clone tables using already-open data store connections.

        The safety guard is run again here, so callers that open their own
        connections get the same protection.
        """
        result = result or CloneResult(
            success=False,
            operation_id=operation_id or new_operation_id(),
            source_environment=source.name,
            target_environment=target.name,
            dry_run=options.dry_run,
        )
        watch = Stopwatch()
        self._is_cancelled = False

        with self._tracer.span(
            "envclone.data_cloner.clone_data",
            {
                ATTR_OPERATION_ID: result.operation_id,
                ATTR_SOURCE_ENV: source.name,
                ATTR_TARGET_ENV: target.name,
                ATTR_DRY_RUN: options.dry_run,
            },
        ):
            try:
                self._guard.validate_clone_pair(source, target)
            except ProductionSafetyViolation as e:
                return self._abort(result, str(e), watch)

            tables, plan_warnings = self.plan_tables(options)
            result.warnings.extend(plan_warnings)
            logger.info(
                "Cloning %d tables from %s to %s (operation %s%s)",
                len(tables),
                source.name,
                target.name,
                result.operation_id,
                ", dry run" if options.dry_run else "",
            )

            try:
                result.warnings.extend(await self._preflight(source_access, target_access, options))
            except TableAccessError as e:
                return self._abort(result, f"Schema preflight failed: {e}", watch)

            registry = self._registry_factory(target, options) if options.anonymize else None

            if options.truncate:
                result.warnings.extend(await self._reset_target(target, target_access, tables, options))

            for index, table in enumerate(tables):
                if self._is_cancelled:
                    remaining = tables[index:]
                    result.errors.append(
                        f"Clone cancelled; {len(remaining)} tables not processed: {', '.join(remaining)}"
                    )
                    break
                table_result = await self._clone_table(source_access, target_access, table, options, registry)
                result.tables.append(table_result)
                if table_result.status is TableStatus.ERROR:
                    result.errors.append(f"{table}: {table_result.error}")
                if self._table_callback:
                    self._table_callback(table_result)

            if options.validate_after_clone and not options.dry_run:
                validator = self._validator or CloneValidator(
                    self._planner, page_size=options.page_size, timeout=options.operation_timeout
                )
                cloned = [r.table for r in result.tables if r.status is TableStatus.SUCCESS]
                integrity = await validator.validate_data_integrity(target_access, cloned)
                anonymization = (
                    await validator.validate_anonymization(target_access, cloned, target.label)
                    if options.anonymize
                    else None
                )
                result.validation = ValidationReport(integrity, anonymization)
                result.errors.extend(result.validation.errors())
                result.warnings.extend(result.validation.warnings())

            result.success = not result.errors
            result.completed_at = datetime.now(UTC)
            result.duration_seconds = watch.elapsed
            logger.info(
                "Clone %s finished: %d succeeded, %d failed, %d empty, %d records in %.1fs",
                result.operation_id,
                result.successes,
                result.failures,
                result.empties,
                result.total_records,
                result.duration_seconds,
            )
            return result

    async def verify_clone(
        self,
        source: Environment,
        target: Environment,
        tables: Sequence[str] | None = None,
        *,
        timeout: float = 30.0,
    ) -> CountVerificationReport:
        """
        Compare row counts between source and target.

        Only reads both sides; the source still has to pass the source check.
        """
        self._guard.validate_clone_source(source)
        tables = list(tables) if tables is not None else self._planner.default_tables()
        source_access = await self._factory.connect(source)
        try:
            target_access = await self._factory.connect(target)
            try:
                verifier = CloneValidator(self._planner, timeout=timeout)
                report = await verifier.verify_counts(source_access, target_access, tables)
            finally:
                if target_access is not source_access:
                    await target_access.close()
        finally:
            await source_access.close()
        for mismatch in report.mismatches:
            logger.warning(
                "Count mismatch for %s: source=%s target=%s%s",
                mismatch.table,
                mismatch.source_count,
                mismatch.target_count,
                f" ({mismatch.error})" if mismatch.error else "",
            )
        return report

    def _abort(self, result: CloneResult, message: str, watch: Stopwatch) -> CloneResult:
        logger.error("Clone %s aborted: %s", result.operation_id, message)
        result.success = False
        result.aborted = True
        result.errors.append(message)
        result.completed_at = datetime.now(UTC)
        result.duration_seconds = watch.elapsed
        return result

    async def _preflight(
        self,
        source_access: TableAccess,
        target_access: TableAccess,
        options: CloneOptions,
    ) -> list[str]:
        warnings = []
        timeout = options.operation_timeout
        for table in self._preflight_tables:
            on_source = await with_timeout(source_access.exists(table), timeout, table, "exists")
            on_target = await with_timeout(target_access.exists(table), timeout, table, "exists")
            if on_source and on_target:
                continue
            missing = [side for side, ok in (("source", on_source), ("target", on_target)) if not ok]
            message = f"Schema preflight: table {table} missing on {' and '.join(missing)}"
            logger.warning(message)
            warnings.append(message)
        return warnings

    async def _reset_target(
        self,
        target: Environment,
        target_access: TableAccess,
        tables: Sequence[str],
        options: CloneOptions,
    ) -> list[str]:
        """Clear target tables in reverse dependency order. Problems become warnings."""
        order = self._planner.deletion_order(tables)
        if options.dry_run:
            logger.info("Dry run: would clear %d tables on %s", len(order), target.name)
            return []

        self._guard.enforce_write_access(target, "truncate")
        warnings = []
        with self._tracer.span("envclone.data_cloner.reset_target", {ATTR_TABLE_COUNT: len(order)}):
            for table in order:
                try:
                    outcome = await with_timeout(
                        target_access.delete_all(table), options.operation_timeout, table, "delete_all"
                    )
                except TableAccessError as e:
                    warnings.append(f"Could not clear {table}: {e}")
                    continue
                if not outcome.ok:
                    warnings.append(f"Could not clear {table}: {outcome.error}")
                elif outcome.deleted:
                    logger.info("Cleared %d rows from %s", outcome.deleted, table)
        for message in warnings:
            logger.warning(message)
        return warnings

    async def _clone_table(
        self,
        source_access: TableAccess,
        target_access: TableAccess,
        table: str,
        options: CloneOptions,
        registry: AnonymizationRegistry | None,
    ) -> TableCloneResult:
        spec = self._planner.spec_for(table)
        timeout = options.operation_timeout
        watch = Stopwatch()
        summary = WriteSummary()
        would_write = 0
        anonymized = 0

        with self._tracer.span(
            "envclone.data_cloner.clone_table",
            {ATTR_TABLE: table, ATTR_DRY_RUN: options.dry_run},
        ):
            try:
                if not await with_timeout(target_access.exists(table), timeout, table, "exists"):
                    logger.info("Table %s does not exist on target; skipping", table)
                    return TableCloneResult.empty(table, "missing on target", duration_seconds=watch.elapsed)
                if not await with_timeout(source_access.exists(table), timeout, table, "exists"):
                    logger.info("Table %s does not exist on source; skipping", table)
                    return TableCloneResult.empty(table, "missing on source", duration_seconds=watch.elapsed)

                columns = await with_timeout(target_access.columns(table), timeout, table, "columns")
                if not columns:
                    logger.info("Column set of %s unknown on target; copying rows unshaped", table)
                dropped_columns: set[str] = set()

                async for page in iter_pages(
                    source_access, table, page_size=options.page_size, timeout=timeout
                ):
                    rows, dropped = shape_rows(page, columns)
                    dropped_columns |= dropped
                    if registry is not None and table in registry:
                        anonymized += len(rows)
                        rows = registry.anonymize(table, rows, spec.key_columns)
                    if options.dry_run:
                        would_write += len(rows)
                        continue
                    summary.merge(
                        await write_rows(
                            target_access,
                            table,
                            rows,
                            spec.conflict_key,
                            batch_size=options.batch_size,
                            timeout=timeout,
                        )
                    )
            except (TableAccessError, AnonymizationError) as e:
                logger.error("Cloning %s failed: %s", table, e)
                return TableCloneResult.failure(
                    table,
                    str(e),
                    records=summary.written,
                    anonymized=anonymized,
                    duration_seconds=watch.elapsed,
                )

            if dropped_columns:
                logger.info(
                    "Schema drift on %s: dropped source-only columns %s",
                    table,
                    ", ".join(sorted(dropped_columns)),
                )

            elapsed = watch.elapsed
            if options.dry_run:
                if not would_write:
                    return TableCloneResult.empty(table, "no rows to clone", anonymized=anonymized, duration_seconds=elapsed)
                logger.info("Dry run: %s would receive %d records", table, would_write)
                return TableCloneResult(
                    table, TableStatus.DRY_RUN, records=would_write, anonymized=anonymized, duration_seconds=elapsed
                )

            if summary.failed_batches:
                error = (
                    f"{summary.failed_batches} of {summary.batches} batches failed: {summary.errors[0]}"
                )
                return TableCloneResult.failure(
                    table, error, records=summary.written, anonymized=anonymized, duration_seconds=elapsed
                )
            if not summary.batches:
                return TableCloneResult.empty(table, "no rows to clone", anonymized=anonymized, duration_seconds=elapsed)

            logger.info("Cloned %d records into %s in %.2fs", summary.written, table, elapsed)
            return TableCloneResult(
                table, TableStatus.SUCCESS, records=summary.written, anonymized=anonymized, duration_seconds=elapsed
            )


__all__ = [
    "PREFLIGHT_TABLES",
    "DataCloner",
    "RegistryFactory",
    "default_registry_factory",
    "shape_rows",
]
