"""
Audit system cloner.

Clones the ``audit`` schema: its functions and triggers as definitions, and
the audit log rows, optionally filtered and anonymized. After cloning,
every applied trigger is checked on the target.
"""

from __future__ import annotations

import logging
from datetime import datetime

from envclone.access.interface import RoutineAccess, Row, TableAccess, TriggerDefinition
from envclone.access.transfer import with_timeout
from envclone.anonymization.domain import AuditLogAnonymizer
from envclone.environments.models import Environment
from envclone.exceptions import TableAccessError
from envclone.specialized.base import SystemCloner, within_age
from envclone.specialized.models import AuditCloneOptions, AuditCloneResult

logger = logging.getLogger(__name__)

AUDIT_SCHEMA = "audit"
AUDIT_LOGS_TABLE = "audit.audit_logs"


def filter_audit_logs(rows: list[Row], options: AuditCloneOptions, now: datetime) -> list[Row]:
    levels = {level.value for level in options.log_level_filter} if options.log_level_filter else None
    kept = []
    for row in rows:
        if not within_age(row, options.max_log_age, now, ("timestamp", "created_at")):
            continue
        level = row.get("level")
        if levels is not None and level is not None and str(level).lower() not in levels:
            continue
        kept.append(row)
    return kept


class AuditSystemCloner(SystemCloner[AuditCloneResult]):
    """Clones audit functions, triggers and logs."""

    system = "audit"
    required_tables = (AUDIT_LOGS_TABLE,)

    def new_result(self) -> AuditCloneResult:
        return AuditCloneResult()

    async def clone_audit_system(
        self,
        source: Environment,
        target: Environment,
        options: AuditCloneOptions,
        operation_id: str | None = None,
        *,
        source_access: TableAccess | None = None,
        target_access: TableAccess | None = None,
    ) -> AuditCloneResult:
        return await self.run(
            source, target, options, operation_id, source_access=source_access, target_access=target_access
        )

    async def _clone(
        self,
        source: Environment,
        target: Environment,
        source_access: TableAccess,
        target_access: TableAccess,
        options: AuditCloneOptions,
        result: AuditCloneResult,
    ) -> None:
        await self._require_schema(source_access, "source")
        await self._require_schema(target_access, "target")

        applied = []
        if isinstance(source_access, RoutineAccess) and isinstance(target_access, RoutineAccess):
            applied = await self._clone_routines(source_access, target_access, result)
        else:
            result.warnings.append("Data store does not expose routines; audit functions and triggers were not cloned")

        if options.include_audit_logs:
            rows = filter_audit_logs(await self._fetch(source_access, AUDIT_LOGS_TABLE), options, self._clock())
            if options.anonymize_audit_data:
                anonymizer = AuditLogAnonymizer(target.label, preserve_structure=options.preserve_audit_structure)
                rows = anonymizer.anonymize(rows)
                result.logs_anonymized = len(rows)
                result.records_anonymized += len(rows)
            result.logs_cloned = await self._write(target_access, AUDIT_LOGS_TABLE, rows, result)

        result.structure_preserved = options.preserve_audit_structure or not options.anonymize_audit_data

        if applied:
            result.trigger_check_passed = await self._check_triggers(target_access, applied, result)

    async def _clone_routines(
        self,
        source_access: RoutineAccess,
        target_access: RoutineAccess,
        result: AuditCloneResult,
    ) -> list[TriggerDefinition]:
        functions = await with_timeout(
            source_access.list_functions(AUDIT_SCHEMA), self._timeout, AUDIT_SCHEMA, "list_functions"
        )
        for routine in functions:
            try:
                await with_timeout(
                    target_access.apply_function(routine), self._timeout, routine.qualified_name, "apply_function"
                )
            except TableAccessError as e:
                result.errors.append(f"Could not clone function {routine.qualified_name}: {e}")
                continue
            result.functions_cloned.append(routine.qualified_name)

        applied = []
        triggers = await with_timeout(
            source_access.list_triggers(AUDIT_SCHEMA), self._timeout, AUDIT_SCHEMA, "list_triggers"
        )
        for trigger in triggers:
            if isinstance(target_access, TableAccess) and not await with_timeout(
                target_access.exists(trigger.table), self._timeout, trigger.table, "exists"
            ):
                result.warnings.append(f"Skipped trigger {trigger.name}: table {trigger.table} missing on target")
                continue
            try:
                await with_timeout(target_access.apply_trigger(trigger), self._timeout, trigger.table, "apply_trigger")
            except TableAccessError as e:
                result.errors.append(f"Could not clone trigger {trigger.name}: {e}")
                continue
            result.triggers_cloned.append(trigger.name)
            applied.append(trigger)

        logger.info(
            "Cloned %d audit functions and %d triggers",
            len(result.functions_cloned),
            len(result.triggers_cloned),
        )
        return applied

    async def _check_triggers(
        self,
        target_access: RoutineAccess,
        triggers: list[TriggerDefinition],
        result: AuditCloneResult,
    ) -> bool:
        passed = True
        for trigger in triggers:
            try:
                fired = await with_timeout(
                    target_access.check_trigger(trigger), self._timeout, trigger.table, "check_trigger"
                )
            except TableAccessError as e:
                passed = False
                result.warnings.append(f"Audit trigger {trigger.name} could not be checked: {e}")
                continue
            if not fired:
                passed = False
                result.warnings.append(f"Audit trigger {trigger.name} did not pass the functional check")
        return passed


__all__ = [
    "AUDIT_LOGS_TABLE",
    "AUDIT_SCHEMA",
    "AuditSystemCloner",
    "filter_audit_logs",
]
