"""
Data cloning: options, results, the generic DataCloner, validation, backups,
the comprehensive EnvironmentCloner and report formatting.
"""

from envclone.cloning.backup import BackupManager, TableBackup, TableSnapshotBackupManager
from envclone.cloning.data_cloner import PREFLIGHT_TABLES, DataCloner, shape_rows
from envclone.cloning.environment_cloner import EnvironmentCloner
from envclone.cloning.models import (
    STATUS_ICONS,
    CloneOptions,
    CloneResult,
    CloneStatistics,
    ComprehensiveCloneResult,
    EnvironmentCloneOptions,
    TableCloneResult,
    TableStatus,
)
from envclone.cloning.report import (
    format_clone_report,
    format_comprehensive_report,
    format_specialized_report,
    format_verification_report,
    to_json,
)
from envclone.cloning.validation import (
    AnonymizationReport,
    CloneValidationService,
    CloneValidator,
    CountVerificationReport,
    IntegrityReport,
    ValidationReport,
)

__all__ = [
    "PREFLIGHT_TABLES",
    "STATUS_ICONS",
    "AnonymizationReport",
    "BackupManager",
    "CloneOptions",
    "CloneResult",
    "CloneStatistics",
    "CloneValidationService",
    "CloneValidator",
    "ComprehensiveCloneResult",
    "CountVerificationReport",
    "DataCloner",
    "EnvironmentCloneOptions",
    "EnvironmentCloner",
    "IntegrityReport",
    "TableBackup",
    "TableCloneResult",
    "TableSnapshotBackupManager",
    "TableStatus",
    "ValidationReport",
    "format_clone_report",
    "format_comprehensive_report",
    "format_specialized_report",
    "format_verification_report",
    "shape_rows",
    "to_json",
]
