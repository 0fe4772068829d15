"""
Post-clone validation.

CloneValidator checks a target environment after a clone:

- Data integrity: every declared foreign key value points at an existing row
  of the referenced table (when that table is part of the validated set).
- Anonymization completeness: no recognisable personal data survived in the
  tables that have anonymization rules.
- Row counts: source and target hold the same number of rows per table.

Integrity violations are errors; incomplete anonymization and count
mismatches are warnings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from envclone.access.interface import Row, TableAccess
from envclone.access.transfer import iter_pages, with_timeout
from envclone.anonymization.rules import EMAIL_PATTERN, MESSAGE_PLACEHOLDER
from envclone.exceptions import TableAccessError
from envclone.planner import TablePlanner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConstraintReport:
    """Outcome of checking one foreign key."""

    table: str
    column: str
    references: str
    checked: int
    violations: int
    sample: tuple[Any, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.violations == 0

    def __str__(self) -> str:
        return (
            f"{self.table}.{self.column} -> {self.references}: "
            f"{self.violations} dangling of {self.checked}"
        )


@dataclass
class IntegrityReport:
    """Foreign key checks for a set of tables."""

    constraints: list[ConstraintReport] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors and all(c.is_valid for c in self.constraints)

    @property
    def violations(self) -> list[ConstraintReport]:
        return [c for c in self.constraints if not c.is_valid]

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "constraints": [
                {
                    "table": c.table,
                    "column": c.column,
                    "references": c.references,
                    "checked": c.checked,
                    "violations": c.violations,
                    "sample": list(c.sample),
                }
                for c in self.constraints
            ],
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class TableAnonymizationReport:
    """Anonymization check for one table."""

    table: str
    checked: int
    unanonymized: int
    detail: str = ""

    @property
    def is_complete(self) -> bool:
        return self.unanonymized == 0


@dataclass
class AnonymizationReport:
    """Anonymization checks for a set of tables."""

    tables: list[TableAnonymizationReport] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.errors and all(t.is_complete for t in self.tables)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_complete": self.is_complete,
            "tables": [
                {
                    "table": t.table,
                    "checked": t.checked,
                    "unanonymized": t.unanonymized,
                    "detail": t.detail,
                }
                for t in self.tables
            ],
            "errors": list(self.errors),
        }


@dataclass
class ValidationReport:
    """Combined integrity and anonymization validation."""

    integrity: IntegrityReport
    anonymization: AnonymizationReport | None = None

    @property
    def is_valid(self) -> bool:
        return self.integrity.is_valid

    def warnings(self) -> list[str]:
        if self.anonymization is None:
            return []
        messages = [
            f"Anonymization incomplete for {t.table}: {t.unanonymized} of {t.checked} rows ({t.detail})"
            for t in self.anonymization.tables
            if not t.is_complete
        ]
        messages.extend(f"Anonymization check failed: {e}" for e in self.anonymization.errors)
        return messages

    def errors(self) -> list[str]:
        messages = [f"Referential integrity violation: {c}" for c in self.integrity.violations]
        messages.extend(f"Integrity check failed: {e}" for e in self.integrity.errors)
        return messages

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "integrity": self.integrity.to_dict(),
            "anonymization": self.anonymization.to_dict() if self.anonymization else None,
        }


@dataclass(frozen=True)
class TableCountComparison:
    """Row counts of one table on both sides."""

    table: str
    source_count: int | None
    target_count: int | None
    error: str | None = None

    @property
    def matches(self) -> bool:
        return self.error is None and self.source_count == self.target_count


@dataclass
class CountVerificationReport:
    """Row count comparison for a set of tables."""

    tables: list[TableCountComparison] = field(default_factory=list)

    @property
    def all_match(self) -> bool:
        return all(t.matches for t in self.tables)

    @property
    def mismatches(self) -> list[TableCountComparison]:
        return [t for t in self.tables if not t.matches]

    def to_dict(self) -> dict[str, Any]:
        return {
            "all_match": self.all_match,
            "tables": [
                {
                    "table": t.table,
                    "source_count": t.source_count,
                    "target_count": t.target_count,
                    "matches": t.matches,
                    "error": t.error,
                }
                for t in self.tables
            ],
        }


@runtime_checkable
class CloneValidationService(Protocol):
    """Validation collaborator used by the cloners after a clone."""

    async def validate_data_integrity(self, access: TableAccess, tables: Sequence[str]) -> IntegrityReport:
        ...

    async def validate_anonymization(
        self,
        access: TableAccess,
        tables: Sequence[str],
        label: str,
    ) -> AnonymizationReport:
        ...


RowCheck = Callable[[Row], bool]


def _anonymization_checks(label: str) -> dict[str, tuple[RowCheck, str]]:
    """Per table: predicate that is True for a row still holding personal data."""
    domain = f"@{label}.local"
    return {
        "profiles": (
            lambda row: bool(row.get("email")) and not str(row["email"]).endswith(domain),
            f"email not ending in {domain}",
        ),
        "user_sessions": (lambda row: True, "sessions present"),
        "notifications": (
            lambda row: isinstance(row.get("message"), str) and bool(EMAIL_PATTERN.search(row["message"])),
            "email address in message",
        ),
        "messages": (
            lambda row: row.get("content") not in (None, MESSAGE_PLACEHOLDER),
            "content not replaced",
        ),
    }


class CloneValidator:
    """
    Default validation collaborator.

    Args:
        planner: Source of foreign key declarations
        page_size: Rows per fetch while scanning tables
        timeout: Seconds allowed per data store call
    """

    def __init__(
        self,
        planner: TablePlanner | None = None,
        *,
        page_size: int = 1000,
        timeout: float = 30.0,
    ) -> None:
        self._planner = planner or TablePlanner()
        self._page_size = page_size
        self._timeout = timeout

    async def _rows(self, access: TableAccess, table: str) -> list[Row]:
        rows: list[Row] = []
        async for page in iter_pages(access, table, page_size=self._page_size, timeout=self._timeout):
            rows.extend(page)
        return rows

    async def _present(self, access: TableAccess, tables: Sequence[str]) -> list[str]:
        present = []
        for table in tables:
            if await with_timeout(access.exists(table), self._timeout, table, "exists"):
                present.append(table)
        return present

    async def validate_data_integrity(self, access: TableAccess, tables: Sequence[str]) -> IntegrityReport:
        report = IntegrityReport()
        try:
            present = await self._present(access, tables)
        except TableAccessError as e:
            report.errors.append(str(e))
            return report

        keys: dict[str, set[str]] = {}
        for table in present:
            spec = self._planner.spec_for(table)
            foreign_keys = {c: ref for c, ref in spec.foreign_keys.items() if ref in present}
            if not foreign_keys:
                continue
            try:
                rows = await self._rows(access, table)
                for column, ref in foreign_keys.items():
                    if ref not in keys:
                        keys[ref] = await self._key_values(access, ref)
                    values = [row[column] for row in rows if row.get(column) is not None]
                    dangling = [v for v in values if str(v) not in keys[ref]]
                    report.constraints.append(
                        ConstraintReport(table, column, ref, len(values), len(dangling), tuple(dangling[:5]))
                    )
            except TableAccessError as e:
                report.errors.append(str(e))

        for violation in report.violations:
            logger.error("Referential integrity violation: %s", violation)
        return report

    async def _key_values(self, access: TableAccess, table: str) -> set[str]:
        key = self._planner.spec_for(table).conflict_key
        column = key[0] if len(key) == 1 else "id"
        return {str(row[column]) for row in await self._rows(access, table) if row.get(column) is not None}

    async def validate_anonymization(
        self,
        access: TableAccess,
        tables: Sequence[str],
        label: str,
    ) -> AnonymizationReport:
        report = AnonymizationReport()
        checks = _anonymization_checks(label)
        for table in tables:
            if table not in checks:
                continue
            check, detail = checks[table]
            try:
                if not await with_timeout(access.exists(table), self._timeout, table, "exists"):
                    continue
                rows = await self._rows(access, table)
            except TableAccessError as e:
                report.errors.append(str(e))
                continue
            bad = sum(1 for row in rows if check(row))
            report.tables.append(TableAnonymizationReport(table, len(rows), bad, detail))
            if bad:
                logger.warning("Anonymization incomplete for %s: %d of %d rows (%s)", table, bad, len(rows), detail)
        return report

    async def validate(self, access: TableAccess, tables: Sequence[str], label: str) -> ValidationReport:
        integrity = await self.validate_data_integrity(access, tables)
        anonymization = await self.validate_anonymization(access, tables, label)
        return ValidationReport(integrity, anonymization)

    async def verify_counts(
        self,
        source: TableAccess,
        target: TableAccess,
        tables: Sequence[str],
    ) -> CountVerificationReport:
        report = CountVerificationReport()
        for table in tables:
            try:
                source_count = await with_timeout(source.count(table), self._timeout, table, "count")
                target_count = await with_timeout(target.count(table), self._timeout, table, "count")
            except TableAccessError as e:
                report.tables.append(TableCountComparison(table, None, None, str(e)))
                continue
            report.tables.append(TableCountComparison(table, source_count, target_count))
        return report


__all__ = [
    "AnonymizationReport",
    "CloneValidationService",
    "CloneValidator",
    "ConstraintReport",
    "CountVerificationReport",
    "IntegrityReport",
    "TableAnonymizationReport",
    "TableCountComparison",
    "ValidationReport",
]
