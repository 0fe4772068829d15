"""
envclone - Environment cloning and anonymization for Python.

This library provides:
- Production safety guards for every clone and write
- Dependency-ordered, batched table cloning with upserts
- Deterministic anonymization of personal data
- Specialized cloners for audit, conversations and reservations
- Target backups, post-clone validation and rollback
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("envclone-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from envclone.access import (
    ConnectionFactory,
    InMemoryConnectionFactory,
    InMemoryTableAccess,
    SQLAlchemyConnectionFactory,
    SQLAlchemyTableAccess,
    TableAccess,
)
from envclone.anonymization import AnonymizationRegistry, build_default_registry
from envclone.cloning import (
    CloneOptions,
    CloneResult,
    ComprehensiveCloneResult,
    DataCloner,
    EnvironmentCloneOptions,
    EnvironmentCloner,
    TableCloneResult,
    TableSnapshotBackupManager,
    TableStatus,
    format_clone_report,
    format_comprehensive_report,
    format_specialized_report,
)
from envclone.config import ClonerConfig
from envclone.environments import (
    DotenvEnvironmentResolver,
    Environment,
    EnvironmentStatus,
    EnvironmentType,
    StaticEnvironmentResolver,
)
from envclone.exceptions import (
    AnonymizationError,
    BackupError,
    CloneOptionsError,
    ConfigurationError,
    EnvCloneError,
    EnvironmentNotFoundError,
    IntegrityViolationError,
    OperationTimeoutError,
    PlannerError,
    ProductionSafetyViolation,
    SchemaValidationError,
    TableAccessError,
)
from envclone.logbuffer import LogBuffer, LogEntry
from envclone.planner import DEFAULT_TABLE_SPECS, TablePlanner, TableSpec
from envclone.safety import ProductionSafetyGuard
from envclone.specialized import (
    SpecializedSystemsCloner,
    SpecializedSystemsCloneResult,
    SpecializedSystemsOptions,
)

__all__ = [
    "__version__",
    # Environments
    "DotenvEnvironmentResolver",
    "Environment",
    "EnvironmentStatus",
    "EnvironmentType",
    "StaticEnvironmentResolver",
    # Safety and planning
    "DEFAULT_TABLE_SPECS",
    "ProductionSafetyGuard",
    "TablePlanner",
    "TableSpec",
    # Access
    "ConnectionFactory",
    "InMemoryConnectionFactory",
    "InMemoryTableAccess",
    "SQLAlchemyConnectionFactory",
    "SQLAlchemyTableAccess",
    "TableAccess",
    # Anonymization
    "AnonymizationRegistry",
    "build_default_registry",
    # Cloning
    "CloneOptions",
    "CloneResult",
    "ComprehensiveCloneResult",
    "DataCloner",
    "EnvironmentCloneOptions",
    "EnvironmentCloner",
    "TableCloneResult",
    "TableSnapshotBackupManager",
    "TableStatus",
    "format_clone_report",
    "format_comprehensive_report",
    "format_specialized_report",
    # Specialized systems
    "SpecializedSystemsCloner",
    "SpecializedSystemsCloneResult",
    "SpecializedSystemsOptions",
    # Config and logging
    "ClonerConfig",
    "LogBuffer",
    "LogEntry",
    # Exceptions
    "AnonymizationError",
    "BackupError",
    "CloneOptionsError",
    "ConfigurationError",
    "EnvCloneError",
    "EnvironmentNotFoundError",
    "IntegrityViolationError",
    "OperationTimeoutError",
    "PlannerError",
    "ProductionSafetyViolation",
    "SchemaValidationError",
    "TableAccessError",
]
