"""
Options and result types for the data cloner and the environment cloner.

Options are frozen pydantic models; results are dataclasses with
``to_dict()`` for reporting and JSON output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from envclone.planner import DEFAULT_DATA_GROUPS
from envclone.specialized.models import SpecializedSystemsCloneResult, SpecializedSystemsOptions

if TYPE_CHECKING:
    from envclone.cloning.validation import ValidationReport


class TableStatus(str, Enum):
    """
    Outcome of cloning one table.

    Values:
        SUCCESS: Every batch was written
        ERROR: The table, or at least one of its batches, failed
        EMPTY: Nothing to clone (missing on either side, or no rows)
        DRY_RUN: Rows were read and prepared but not written
    """

    SUCCESS = "success"
    ERROR = "error"
    EMPTY = "empty"
    DRY_RUN = "dry-run"


STATUS_ICONS = {
    TableStatus.SUCCESS: "✅",
    TableStatus.ERROR: "❌",
    TableStatus.EMPTY: "ℹ️",
    TableStatus.DRY_RUN: "🧪",
}


@dataclass(frozen=True)
class TableCloneResult:
    """
    Result of cloning one table.

    Attributes:
        table: Table name
        status: Outcome
        records: Rows written (or that would be written, for dry runs)
        error: Error text; present exactly when status is ERROR
        anonymized: Rows passed through a registered anonymization rule
        duration_seconds: Wall time for the table
        note: Extra context, e.g. why a table is empty
    """

    table: str
    status: TableStatus
    records: int = 0
    error: str | None = None
    anonymized: int = 0
    duration_seconds: float = 0.0
    note: str | None = None

    def __post_init__(self) -> None:
        if self.status is TableStatus.ERROR and not self.error:
            raise ValueError(f"Error result for {self.table} must carry an error message")
        if self.status is not TableStatus.ERROR and self.error is not None:
            raise ValueError(f"{self.status.value} result for {self.table} cannot carry an error")

    @property
    def ok(self) -> bool:
        return self.status is not TableStatus.ERROR

    @property
    def icon(self) -> str:
        return STATUS_ICONS[self.status]

    @classmethod
    def failure(cls, table: str, error: str, records: int = 0, **kwargs: Any) -> TableCloneResult:
        return cls(table, TableStatus.ERROR, records=records, error=error, **kwargs)

    @classmethod
    def empty(cls, table: str, note: str | None = None, **kwargs: Any) -> TableCloneResult:
        return cls(table, TableStatus.EMPTY, note=note, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "status": self.status.value,
            "records": self.records,
            "error": self.error,
            "anonymized": self.anonymized,
            "duration_seconds": round(self.duration_seconds, 3),
            "note": self.note,
        }

    def __str__(self) -> str:
        if self.error:
            return f"{self.icon} {self.table}: {self.error}"
        detail = f" ({self.note})" if self.note and self.status is TableStatus.EMPTY else ""
        return f"{self.icon} {self.table}: {self.records} records{detail}"


@dataclass(frozen=True)
class CloneStatistics:
    """Aggregate counters for one clone invocation."""

    tables_cloned: int = 0
    records_cloned: int = 0
    records_anonymized: int = 0
    functions_cloned: int = 0
    triggers_cloned: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "tables_cloned": self.tables_cloned,
            "records_cloned": self.records_cloned,
            "records_anonymized": self.records_anonymized,
            "functions_cloned": self.functions_cloned,
            "triggers_cloned": self.triggers_cloned,
        }


class CloneOptions(BaseModel):
    """
    Options for a generic data clone.

    Attributes:
        tables: Explicit table list; None clones the default data set
        groups: Table groups added to the default data set
        dry_run: Do everything except writing
        exclude_sensitive: Skip tables holding personal data
        anonymize: Apply the anonymization registry
        truncate: Clear target tables (reverse dependency order) before loading
        page_size: Rows per source fetch
        batch_size: Rows per target write
        operation_timeout: Seconds allowed for each fetch, write, probe or delete
        validate_after_clone: Run integrity and anonymization checks afterwards
        preserve_user_roles: Keep profile roles when anonymizing
        anonymize_groups: Table groups whose amount and description rules apply
    """

    model_config = ConfigDict(frozen=True)

    tables: list[str] | None = None
    groups: list[str] = Field(default_factory=lambda: list(DEFAULT_DATA_GROUPS))
    dry_run: bool = False
    exclude_sensitive: bool = False
    anonymize: bool = True
    truncate: bool = False
    page_size: int = Field(default=1000, gt=0)
    batch_size: int = Field(default=500, gt=0)
    operation_timeout: float = Field(default=30.0, gt=0)
    validate_after_clone: bool = False
    preserve_user_roles: bool = True
    anonymize_groups: list[str] = Field(
        default_factory=lambda: ["bill_notifications", "transaction_references"]
    )


@dataclass
class CloneResult:
    """
    Aggregate result of a data clone.

    Attributes:
        success: True if no table errored and no fatal error occurred
        operation_id: Unique identifier of the invocation
        source_environment: Source environment name
        target_environment: Target environment name
        dry_run: Whether writes were suppressed
        tables: Per-table results in processing order
        errors: Fatal and per-table error messages
        warnings: Non-fatal problems
        started_at: When the clone started
        completed_at: When the clone finished
        duration_seconds: Wall time
        validation: Post-clone validation report, when requested
        aborted: True when the run stopped before cloning any table
    """

    success: bool
    operation_id: str
    source_environment: str
    target_environment: str
    dry_run: bool = False
    tables: list[TableCloneResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    duration_seconds: float = 0.0
    validation: ValidationReport | None = None
    aborted: bool = False

    def table(self, name: str) -> TableCloneResult | None:
        for result in self.tables:
            if result.table == name:
                return result
        return None

    def _count(self, status: TableStatus) -> int:
        return sum(1 for r in self.tables if r.status is status)

    @property
    def successes(self) -> int:
        return self._count(TableStatus.SUCCESS) + self._count(TableStatus.DRY_RUN)

    @property
    def failures(self) -> int:
        return self._count(TableStatus.ERROR)

    @property
    def empties(self) -> int:
        return self._count(TableStatus.EMPTY)

    @property
    def total_records(self) -> int:
        return sum(r.records for r in self.tables)

    @property
    def statistics(self) -> CloneStatistics:
        return CloneStatistics(
            tables_cloned=self._count(TableStatus.SUCCESS),
            records_cloned=sum(r.records for r in self.tables if r.status is not TableStatus.DRY_RUN),
            records_anonymized=sum(r.anonymized for r in self.tables),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "operation_id": self.operation_id,
            "source_environment": self.source_environment,
            "target_environment": self.target_environment,
            "dry_run": self.dry_run,
            "tables": [r.to_dict() for r in self.tables],
            "summary": {
                "successes": self.successes,
                "errors": self.failures,
                "empty": self.empties,
                "total_records": self.total_records,
            },
            "statistics": self.statistics.to_dict(),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "duration_seconds": round(self.duration_seconds, 3),
            "validation": self.validation.to_dict() if self.validation else None,
            "aborted": self.aborted,
        }


class EnvironmentCloneOptions(BaseModel):
    """
    Options for a comprehensive environment clone.

    Attributes:
        data: Generic data clone options
        specialized: Specialized systems to clone afterwards (None for none)
        include_bill_notifications: Add the bill notification tables
        include_transaction_references: Add the transaction reference tables
        anonymize_bill_data: Anonymize bill frequency and bill notification amounts and text
        anonymize_reference_amounts: Anonymize transaction reference amounts and text
        preserve_user_roles: Keep profile roles when anonymizing
        create_backup: Snapshot the target before any destructive step
        validate_after_clone: Run integrity and anonymization checks afterwards
        rollback_on_failure: Restore the backup if the clone fails
    """

    model_config = ConfigDict(frozen=True)

    data: CloneOptions = Field(default_factory=CloneOptions)
    specialized: SpecializedSystemsOptions | None = None
    include_bill_notifications: bool = False
    include_transaction_references: bool = True
    anonymize_bill_data: bool = True
    anonymize_reference_amounts: bool = True
    preserve_user_roles: bool = True
    create_backup: bool = False
    validate_after_clone: bool = False
    rollback_on_failure: bool = False

    def data_options(self) -> CloneOptions:
        """Data clone options with the group toggles and shared flags applied."""
        groups = [
            g for g in self.data.groups if g not in ("bill_notifications", "transaction_references")
        ]
        if self.include_transaction_references:
            groups.append("transaction_references")
        if self.include_bill_notifications:
            groups.append("bill_notifications")
        anonymize_groups = []
        if self.anonymize_bill_data:
            anonymize_groups.append("bill_notifications")
        if self.anonymize_reference_amounts:
            anonymize_groups.append("transaction_references")
        tables = self.data.tables
        if tables is not None:
            tables = list(tables)
        return self.data.model_copy(
            update={
                "groups": groups,
                "anonymize_groups": anonymize_groups,
                "tables": tables,
                "preserve_user_roles": self.preserve_user_roles,
                "validate_after_clone": False,
            }
        )


@dataclass
class ComprehensiveCloneResult:
    """
    Aggregate result of a comprehensive environment clone.

    Attributes:
        success: True iff the data clone and every requested specialized system succeeded
        operation_id: Unique identifier of the invocation
        source_environment: Source environment name
        target_environment: Target environment name
        statistics: Aggregate counters
        data_result: Generic data clone result
        specialized_systems_result: Specialized systems result, when requested
        backup_id: Backup identifier, whenever a backup was requested and taken
        validation_result: Post-clone validation report, when requested
        rolled_back: Whether the backup was restored after a failure
        errors: Error messages
        warnings: Warning messages
        duration_seconds: Wall time
        completed_at: When the clone finished
        aborted: True when the run stopped before any clone step
    """

    success: bool
    operation_id: str
    source_environment: str
    target_environment: str
    statistics: CloneStatistics = field(default_factory=CloneStatistics)
    data_result: CloneResult | None = None
    specialized_systems_result: SpecializedSystemsCloneResult | None = None
    backup_id: str | None = None
    validation_result: ValidationReport | None = None
    rolled_back: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    completed_at: datetime | None = None
    aborted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "operation_id": self.operation_id,
            "source_environment": self.source_environment,
            "target_environment": self.target_environment,
            "statistics": self.statistics.to_dict(),
            "data_result": self.data_result.to_dict() if self.data_result else None,
            "specialized_systems_result": (
                self.specialized_systems_result.to_dict() if self.specialized_systems_result else None
            ),
            "backup_id": self.backup_id,
            "validation_result": self.validation_result.to_dict() if self.validation_result else None,
            "rolled_back": self.rolled_back,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "duration_seconds": round(self.duration_seconds, 3),
            "completed_at": self.completed_at,
            "aborted": self.aborted,
        }


__all__ = [
    "STATUS_ICONS",
    "CloneOptions",
    "CloneResult",
    "CloneStatistics",
    "ComprehensiveCloneResult",
    "EnvironmentCloneOptions",
    "TableCloneResult",
    "TableStatus",
]
