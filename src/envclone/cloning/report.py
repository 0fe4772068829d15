"""
Human-readable and JSON renderings of clone results.

Per-table lines use ✅ success, ❌ error, ℹ️ empty and 🧪 dry-run.
"""

from __future__ import annotations

from typing import Any

from envclone.cloning.models import STATUS_ICONS, CloneResult, ComprehensiveCloneResult, TableStatus
from envclone.cloning.validation import CountVerificationReport
from envclone.serialization import json_dumps
from envclone.specialized.models import SpecializedSystemsCloneResult, SystemCloneResult

RULE = "=" * 60
SUBRULE = "-" * 40

_COMMON_FIELDS = {
    "system",
    "success",
    "skipped",
    "tables_cloned",
    "records_cloned",
    "records_anonymized",
    "errors",
    "warnings",
    "duration_seconds",
}


def _messages(lines: list[str], title: str, messages: list[str]) -> None:
    if not messages:
        return
    lines.append("")
    lines.append(f"{title} ({len(messages)}):")
    lines.extend(f"  - {m}" for m in messages)


def format_clone_report(result: CloneResult, *, title: str = "DATA CLONE REPORT") -> str:
    """Per-table breakdown, summary counts, warnings and errors."""
    lines = [RULE, title, RULE]
    lines.append(f"Operation:  {result.operation_id}")
    lines.append(f"Source:     {result.source_environment}")
    lines.append(f"Target:     {result.target_environment}")
    if result.dry_run:
        lines.append("Mode:       dry run (nothing was written)")
    lines.append("")

    if result.tables:
        lines.append("TABLES")
        lines.append(SUBRULE)
        for table in result.tables:
            lines.append(str(table))
        lines.append("")

    lines.append("SUMMARY")
    lines.append(SUBRULE)
    lines.append(f"Successful: {result.successes}")
    lines.append(f"Errors:     {result.failures}")
    lines.append(f"Empty:      {result.empties}")
    if result.dry_run:
        lines.append(f"Would write: {result.total_records}")
    else:
        lines.append(f"Records:    {result.total_records}")
    anonymized = sum(t.anonymized for t in result.tables)
    if anonymized:
        lines.append(f"Anonymized: {anonymized}")
    lines.append(f"Duration:   {result.duration_seconds:.2f}s")

    _messages(lines, "WARNINGS", result.warnings)
    _messages(lines, "ERRORS", result.errors)
    lines.append("")
    lines.append("✅ Clone completed successfully" if result.success else "❌ Clone failed")
    return "\n".join(lines)


def _system_lines(result: SystemCloneResult) -> list[str]:
    name = result.system.capitalize()
    if result.skipped:
        return [f"{STATUS_ICONS[TableStatus.EMPTY]} {name}: skipped"]
    icon = "✅" if result.success else "❌"
    lines = [
        f"{icon} {name}: {len(result.tables_cloned)} tables, "
        f"{result.records_cloned} records, {result.records_anonymized} anonymized"
    ]
    for key, value in result.to_dict().items():
        if key in _COMMON_FIELDS or isinstance(value, list) and not value:
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        lines.append(f"    {key}: {value}")
    return lines


def format_specialized_report(result: SpecializedSystemsCloneResult) -> str:
    lines = [RULE, "SPECIALIZED SYSTEMS CLONE REPORT", RULE]
    lines.append(f"Operation:  {result.operation_id}")
    lines.append("")
    for sub in result.results:
        lines.extend(_system_lines(sub))
    if not result.results:
        lines.append("No specialized systems were cloned")
    lines.append("")
    lines.append(f"Systems cloned: {', '.join(result.systems_cloned) or 'none'}")
    lines.append(f"Duration:       {result.total_duration:.2f}s")
    _messages(lines, "WARNINGS", result.warnings)
    _messages(lines, "ERRORS", result.errors)
    return "\n".join(lines)


def format_comprehensive_report(result: ComprehensiveCloneResult) -> str:
    lines = [RULE, "ENVIRONMENT CLONE REPORT", RULE]
    lines.append(f"Operation:  {result.operation_id}")
    lines.append(f"Source:     {result.source_environment}")
    lines.append(f"Target:     {result.target_environment}")
    if result.backup_id:
        lines.append(f"Backup:     {result.backup_id}")
    lines.append("")

    stats = result.statistics
    lines.append("STATISTICS")
    lines.append(SUBRULE)
    lines.append(f"Tables cloned:      {stats.tables_cloned}")
    lines.append(f"Records cloned:     {stats.records_cloned}")
    lines.append(f"Records anonymized: {stats.records_anonymized}")
    lines.append(f"Functions cloned:   {stats.functions_cloned}")
    lines.append(f"Triggers cloned:    {stats.triggers_cloned}")
    lines.append(f"Duration:           {result.duration_seconds:.2f}s")

    if result.data_result and result.data_result.tables:
        lines.append("")
        lines.append("TABLES")
        lines.append(SUBRULE)
        lines.extend(str(t) for t in result.data_result.tables)

    if result.specialized_systems_result and result.specialized_systems_result.results:
        lines.append("")
        lines.append("SPECIALIZED SYSTEMS")
        lines.append(SUBRULE)
        for sub in result.specialized_systems_result.results:
            lines.extend(_system_lines(sub))

    if result.validation_result is not None:
        lines.append("")
        state = "passed" if result.validation_result.is_valid else "failed"
        lines.append(f"Validation: {state}")
    if result.rolled_back:
        lines.append(f"Rolled back to backup {result.backup_id}")

    _messages(lines, "WARNINGS", result.warnings)
    _messages(lines, "ERRORS", result.errors)
    lines.append("")
    lines.append("✅ Environment clone completed successfully" if result.success else "❌ Environment clone failed")
    return "\n".join(lines)


def format_verification_report(report: CountVerificationReport) -> str:
    lines = ["", "VERIFICATION", SUBRULE]
    for table in report.tables:
        if table.error:
            lines.append(f"❌ {table.table}: {table.error}")
        elif table.matches:
            lines.append(f"✅ {table.table}: {table.source_count} rows")
        else:
            lines.append(f"❌ {table.table}: source={table.source_count} target={table.target_count}")
    lines.append("All counts match" if report.all_match else f"{len(report.mismatches)} tables differ")
    return "\n".join(lines)


def to_json(result: Any, *, indent: int | None = 2) -> str:
    """JSON rendering of any result exposing ``to_dict()``."""
    return json_dumps(result.to_dict(), indent=indent)


__all__ = [
    "format_clone_report",
    "format_comprehensive_report",
    "format_specialized_report",
    "format_verification_report",
    "to_json",
]
