"""
SpecializedSystemsCloner - runs the audit, conversations and reservations
cloners in a fixed order.

The orchestrator validates options, runs the production safety guard, opens
one connection per environment and shares it with every sub-cloner. A
requested system whose tables are missing on the source is skipped with a
warning (or an error in strict mode). A failing sub-clone never stops the
ones after it.

Usage:
    >>> cloner = SpecializedSystemsCloner(factory, realtime_probe=probe)
    >>> result = await cloner.clone_specialized_systems(
    ...     prod, training, SpecializedSystemsCloner.training_options()
    ... )
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from envclone.access.interface import ConnectionFactory, RealtimeProbe, TableAccess
from envclone.anonymization.base import Clock, utc_now
from envclone.environments.models import Environment
from envclone.exceptions import (
    CloneOptionsError,
    ConfigurationError,
    ProductionSafetyViolation,
    TableAccessError,
)
from envclone.observability import ATTR_OPERATION_ID, ATTR_SOURCE_ENV, ATTR_TARGET_ENV, Tracer, create_tracer
from envclone.operations import Stopwatch, new_operation_id
from envclone.planner import TablePlanner
from envclone.safety import ProductionSafetyGuard
from envclone.specialized.audit import AuditSystemCloner
from envclone.specialized.base import SystemCloner
from envclone.specialized.conversations import ConversationsSystemCloner
from envclone.specialized.models import (
    AuditCloneOptions,
    ConversationsCloneOptions,
    ReservationsCloneOptions,
    SpecializedSystemsCloneResult,
    SpecializedSystemsOptions,
)
from envclone.specialized.reservations import ReservationsSystemCloner

logger = logging.getLogger(__name__)


class SpecializedSystemsCloner:
    """
    Orchestrates the specialized system cloners.

    Args:
        connection_factory: Produces data store connections for environments
        safety_guard: Production safety guard, shared with the sub-cloners
        planner: Source of conflict keys, shared with the sub-cloners
        realtime_probe: Passed to the conversations cloner
        audit_cloner: Override for the audit cloner
        conversations_cloner: Override for the conversations cloner
        reservations_cloner: Override for the reservations cloner
        page_size: Rows per source fetch
        batch_size: Rows per target write
        timeout: Seconds allowed per data store call
        clock: Source of "now" for age filters
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        safety_guard: ProductionSafetyGuard | None = None,
        planner: TablePlanner | None = None,
        realtime_probe: RealtimeProbe | None = None,
        audit_cloner: AuditSystemCloner | None = None,
        conversations_cloner: ConversationsSystemCloner | None = None,
        reservations_cloner: ReservationsSystemCloner | None = None,
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
        shared: dict[str, Any] = {
            "safety_guard": self._guard,
            "planner": planner or TablePlanner(),
            "page_size": page_size,
            "batch_size": batch_size,
            "timeout": timeout,
            "clock": clock,
            "tracer": self._tracer,
        }
        self._cloners: dict[str, SystemCloner[Any]] = {
            "audit": audit_cloner or AuditSystemCloner(connection_factory, **shared),
            "conversations": conversations_cloner
            or ConversationsSystemCloner(connection_factory, realtime_probe=realtime_probe, **shared),
            "reservations": reservations_cloner or ReservationsSystemCloner(connection_factory, **shared),
        }

    # -- Presets -----------------------------------------------------------

    @staticmethod
    def default_options() -> SpecializedSystemsOptions:
        """All systems; structure only for audit and conversations, reservations with data."""
        return SpecializedSystemsOptions(
            include_audit_system=True,
            audit_options=AuditCloneOptions(include_audit_logs=False),
            include_conversations_system=True,
            conversations_options=ConversationsCloneOptions(include_messages=False),
            include_reservations_system=True,
            reservations_options=ReservationsCloneOptions(),
        )

    @staticmethod
    def training_options() -> SpecializedSystemsOptions:
        return SpecializedSystemsOptions(
            include_audit_system=True,
            audit_options=AuditCloneOptions(max_log_age=90),
            include_conversations_system=True,
            conversations_options=ConversationsCloneOptions(max_message_age=60),
            include_reservations_system=True,
            reservations_options=ReservationsCloneOptions(max_reservation_age=180),
        )

    @staticmethod
    def test_options() -> SpecializedSystemsOptions:
        return SpecializedSystemsOptions(
            include_audit_system=True,
            audit_options=AuditCloneOptions(max_log_age=30),
            include_conversations_system=True,
            conversations_options=ConversationsCloneOptions(max_message_age=30),
            include_reservations_system=True,
            reservations_options=ReservationsCloneOptions(max_reservation_age=60, anonymize_pricing_data=True),
        )

    @staticmethod
    def validate_options(options: SpecializedSystemsOptions | Mapping[str, Any]) -> SpecializedSystemsOptions:
        """
        Check that every included system carries its options.

        Raises:
            CloneOptionsError: With the first problem found
        """
        if isinstance(options, SpecializedSystemsOptions):
            problems = options.missing_options()
            if problems:
                raise CloneOptionsError(problems[0])
            return options
        try:
            return SpecializedSystemsOptions.model_validate(dict(options))
        except ValidationError as e:
            message = e.errors()[0]["msg"].removeprefix("Value error, ")
            raise CloneOptionsError(message) from e

    # -- Cloning -----------------------------------------------------------

    async def clone_specialized_systems(
        self,
        source: Environment,
        target: Environment,
        options: SpecializedSystemsOptions | Mapping[str, Any],
        operation_id: str | None = None,
        *,
        source_access: TableAccess | None = None,
        target_access: TableAccess | None = None,
    ) -> SpecializedSystemsCloneResult:
        """
        Clone every requested specialized system.

        Returns:
            SpecializedSystemsCloneResult; ``success`` is False if any
            requested system failed
        """
        operation_id = operation_id or new_operation_id("specialized")
        result = SpecializedSystemsCloneResult(operation_id=operation_id)
        watch = Stopwatch()

        with self._tracer.span(
            "envclone.specialized.clone_systems",
            {ATTR_OPERATION_ID: operation_id, ATTR_SOURCE_ENV: source.name, ATTR_TARGET_ENV: target.name},
        ):
            try:
                options = self.validate_options(options)
                self._guard.validate_clone_pair(source, target)
            except (CloneOptionsError, ProductionSafetyViolation) as e:
                return self._abort(result, str(e), watch)

            opened: list[TableAccess] = []
            try:
                if source_access is None:
                    source_access = await self._factory.connect(source)
                    opened.append(source_access)
                if target_access is None:
                    target_access = await self._factory.connect(target)
                    opened.append(target_access)
            except (ConfigurationError, TableAccessError) as e:
                for access in opened:
                    await access.close()
                return self._abort(result, f"Could not connect: {e}", watch)

            try:
                for system in options.requested_systems:
                    await self._clone_system(system, source, target, source_access, target_access, options, result)
            finally:
                for access in dict.fromkeys(opened):
                    await access.close()

        result.success = not result.errors
        result.total_duration = watch.elapsed
        logger.info(
            "Specialized systems clone %s %s: cloned %s",
            operation_id,
            "succeeded" if result.success else "failed",
            ", ".join(result.systems_cloned) or "nothing",
        )
        return result

    async def _clone_system(
        self,
        system: str,
        source: Environment,
        target: Environment,
        source_access: TableAccess,
        target_access: TableAccess,
        options: SpecializedSystemsOptions,
        result: SpecializedSystemsCloneResult,
    ) -> None:
        cloner = self._cloners[system]
        try:
            missing = await cloner.missing_tables(source_access)
        except TableAccessError as e:
            result.errors.append(f"{system.capitalize()} system probe failed: {e}")
            return

        if missing:
            message = f"{system.capitalize()} system appears to be missing or incomplete"
            logger.warning("%s (missing: %s)", message, ", ".join(missing))
            skipped = cloner.new_result()
            skipped.skipped = True
            skipped.warnings.append(f"Missing tables: {', '.join(missing)}")
            setattr(result, f"{system}_result", skipped)
            if options.strict:
                result.errors.append(message)
            else:
                result.warnings.append(message)
            return

        sub = await cloner.run(
            source,
            target,
            getattr(options, f"{system}_options"),
            result.operation_id,
            source_access=source_access,
            target_access=target_access,
        )
        setattr(result, f"{system}_result", sub)
        result.errors.extend(sub.errors)
        result.warnings.extend(sub.warnings)
        if sub.success:
            result.systems_cloned.append(system)

    def _abort(
        self,
        result: SpecializedSystemsCloneResult,
        message: str,
        watch: Stopwatch,
    ) -> SpecializedSystemsCloneResult:
        logger.error("Specialized systems clone %s aborted: %s", result.operation_id, message)
        result.success = False
        result.aborted = True
        result.errors.append(message)
        result.total_duration = watch.elapsed
        return result


__all__ = ["SpecializedSystemsCloner"]
