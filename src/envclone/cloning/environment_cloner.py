"""
EnvironmentCloner - comprehensive clone of one environment into another.

Combines the generic data clone with the specialized systems, and wraps
them with an optional backup of the target, post-clone validation and
rollback:

1. Validate options
2. Production safety guard (no I/O before it passes)
3. Connect to both environments
4. Back up the target (before anything is cleared or written)
5. Generic data clone
6. Specialized systems
7. Aggregate statistics
8. Optional validation
9. Optional rollback from the backup when the clone failed

Usage:
    >>> cloner = EnvironmentCloner(SQLAlchemyConnectionFactory())
    >>> result = await cloner.clone_environment(
    ...     prod, training, EnvironmentCloneOptions(create_backup=True)
    ... )
    >>> print(format_comprehensive_report(result))
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from envclone.access.interface import ConnectionFactory, RealtimeProbe, TableAccess
from envclone.cloning.backup import BackupManager, TableSnapshotBackupManager
from envclone.cloning.data_cloner import DataCloner
from envclone.cloning.models import (
    CloneStatistics,
    ComprehensiveCloneResult,
    EnvironmentCloneOptions,
    TableStatus,
)
from envclone.cloning.validation import CloneValidator
from envclone.environments.models import Environment
from envclone.exceptions import (
    BackupError,
    CloneOptionsError,
    ConfigurationError,
    ProductionSafetyViolation,
    TableAccessError,
)
from envclone.observability import (
    ATTR_OPERATION_ID,
    ATTR_SOURCE_ENV,
    ATTR_TARGET_ENV,
    Tracer,
    create_tracer,
)
from envclone.operations import Stopwatch, new_operation_id
from envclone.planner import TablePlanner
from envclone.safety import ProductionSafetyGuard
from envclone.specialized.orchestrator import SpecializedSystemsCloner

logger = logging.getLogger(__name__)


class EnvironmentCloner:
    """
    Comprehensive environment clone orchestrator.

    Args:
        connection_factory: Produces data store connections for environments
        planner: Table dependency planner, shared with every collaborator
        safety_guard: Production safety guard, shared with every collaborator
        data_cloner: Override for the generic data cloner
        specialized_cloner: Override for the specialized systems cloner
        backup_manager: Where target backups are kept (in memory by default)
        validator: Post-clone validation collaborator
        realtime_probe: Passed to the conversations cloner
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        planner: TablePlanner | None = None,
        safety_guard: ProductionSafetyGuard | None = None,
        data_cloner: DataCloner | None = None,
        specialized_cloner: SpecializedSystemsCloner | None = None,
        backup_manager: BackupManager | None = None,
        validator: CloneValidator | None = None,
        realtime_probe: RealtimeProbe | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._factory = connection_factory
        self._planner = planner or TablePlanner()
        self._guard = safety_guard or ProductionSafetyGuard()
        self._data_cloner = data_cloner or DataCloner(
            connection_factory, planner=self._planner, safety_guard=self._guard, tracer=self._tracer
        )
        self._specialized_cloner = specialized_cloner or SpecializedSystemsCloner(
            connection_factory,
            safety_guard=self._guard,
            planner=self._planner,
            realtime_probe=realtime_probe,
            tracer=self._tracer,
        )
        self._backup_manager = backup_manager or TableSnapshotBackupManager(planner=self._planner, tracer=self._tracer)
        self._validator = validator or CloneValidator(self._planner)

    @property
    def backup_manager(self) -> BackupManager:
        return self._backup_manager

    async def clone_environment(
        self,
        source: Environment,
        target: Environment,
        options: EnvironmentCloneOptions | None = None,
        *,
        operation_id: str | None = None,
    ) -> ComprehensiveCloneResult:
        """
        Clone data and specialized systems from source to target.

        Returns:
            ComprehensiveCloneResult; ``success`` is False if the data clone
            or any requested specialized system failed
        """
        options = options or EnvironmentCloneOptions()
        operation_id = operation_id or new_operation_id()
        result = ComprehensiveCloneResult(
            success=False,
            operation_id=operation_id,
            source_environment=source.name,
            target_environment=target.name,
        )
        watch = Stopwatch()

        with self._tracer.span(
            "envclone.environment_cloner.clone_environment",
            {ATTR_OPERATION_ID: operation_id, ATTR_SOURCE_ENV: source.name, ATTR_TARGET_ENV: target.name},
        ):
            try:
                if options.specialized is not None:
                    SpecializedSystemsCloner.validate_options(options.specialized)
                self._guard.validate_clone_pair(source, target)
            except (CloneOptionsError, ProductionSafetyViolation) as e:
                return self._finish(result, watch, abort=str(e))

            try:
                source_access = await self._factory.connect(source)
            except (ConfigurationError, TableAccessError) as e:
                return self._finish(result, watch, abort=f"Could not connect to source {source.name}: {e}")
            try:
                target_access = await self._factory.connect(target)
            except (ConfigurationError, TableAccessError) as e:
                await source_access.close()
                return self._finish(result, watch, abort=f"Could not connect to target {target.name}: {e}")

            try:
                await self._run(source, target, source_access, target_access, options, result)
            finally:
                await source_access.close()
                if target_access is not source_access:
                    await target_access.close()

        return self._finish(result, watch)

    async def _run(
        self,
        source: Environment,
        target: Environment,
        source_access: TableAccess,
        target_access: TableAccess,
        options: EnvironmentCloneOptions,
        result: ComprehensiveCloneResult,
    ) -> None:
        data_options = options.data_options()
        tables, _ = self._data_cloner.plan_tables(data_options)
        specialized = options.specialized
        if specialized is not None:
            for system in specialized.requested_systems:
                tables += [t for t in self._planner.tables_in_group(system) if t not in tables]

        if options.create_backup:
            try:
                result.backup_id = await self._backup_manager.create_backup(
                    target, target_access, tables, result.operation_id
                )
            except BackupError as e:
                result.backup_id = e.backup_id
                result.errors.append(str(e))
                result.aborted = True
                return

        data_result = await self._data_cloner.clone_with_access(
            source, target, source_access, target_access, data_options, operation_id=result.operation_id
        )
        result.data_result = data_result
        result.errors.extend(data_result.errors)
        result.warnings.extend(data_result.warnings)

        if specialized is not None and specialized.requested_systems:
            if data_options.dry_run:
                result.warnings.append("Dry run: specialized systems were not cloned")
            else:
                specialized_result = await self._specialized_cloner.clone_specialized_systems(
                    source,
                    target,
                    specialized,
                    result.operation_id,
                    source_access=source_access,
                    target_access=target_access,
                )
                result.specialized_systems_result = specialized_result
                result.errors.extend(specialized_result.errors)
                result.warnings.extend(specialized_result.warnings)

        result.statistics = self._statistics(result)

        if options.validate_after_clone and not data_options.dry_run:
            cloned = [t.table for t in data_result.tables if t.status is TableStatus.SUCCESS]
            if result.specialized_systems_result:
                cloned += result.specialized_systems_result.tables_cloned
            validation = await self._validator.validate(target_access, cloned, target.label)
            result.validation_result = validation
            result.errors.extend(validation.errors())
            result.warnings.extend(validation.warnings())

        if result.errors and options.rollback_on_failure and result.backup_id and not data_options.dry_run:
            try:
                await self._backup_manager.restore_backup(result.backup_id, target_access)
                result.rolled_back = True
                result.warnings.append(f"Target {target.name} was restored from backup {result.backup_id}")
            except BackupError as e:
                result.errors.append(f"Rollback failed: {e}")

    @staticmethod
    def _statistics(result: ComprehensiveCloneResult) -> CloneStatistics:
        data = result.data_result.statistics if result.data_result else CloneStatistics()
        sub = result.specialized_systems_result
        if sub is None:
            return data
        return CloneStatistics(
            tables_cloned=data.tables_cloned + len(sub.tables_cloned),
            records_cloned=data.records_cloned + sub.records_cloned,
            records_anonymized=data.records_anonymized + sub.records_anonymized,
            functions_cloned=sub.functions_cloned,
            triggers_cloned=sub.triggers_cloned,
        )

    def _finish(
        self,
        result: ComprehensiveCloneResult,
        watch: Stopwatch,
        *,
        abort: str | None = None,
    ) -> ComprehensiveCloneResult:
        if abort is not None:
            logger.error("Environment clone %s aborted: %s", result.operation_id, abort)
            result.errors.append(abort)
            result.aborted = True
        result.success = not result.errors
        result.duration_seconds = watch.elapsed
        result.completed_at = datetime.now(UTC)
        logger.info(
            "Environment clone %s from %s to %s %s in %.1fs",
            result.operation_id,
            result.source_environment,
            result.target_environment,
            "succeeded" if result.success else "failed",
            result.duration_seconds,
        )
        return result


__all__ = ["EnvironmentCloner"]
