"""
Library exceptions for the envclone package.

Exception Hierarchy:
    EnvCloneError
    ├── ConfigurationError
    │   ├── EnvironmentNotFoundError
    │   └── PlannerError
    ├── ProductionSafetyViolation
    ├── CloneOptionsError
    ├── TableAccessError
    │   └── OperationTimeoutError
    ├── AnonymizationError
    ├── SchemaValidationError
    ├── IntegrityViolationError
    └── BackupError
"""


class EnvCloneError(Exception):
    """Base exception for envclone library."""

    pass


class ConfigurationError(EnvCloneError):
    """Raised when environment credentials or settings are missing or invalid."""

    pass


class EnvironmentNotFoundError(ConfigurationError):
    """Raised when a resolver has no configuration for an environment alias."""

    def __init__(self, alias: str, location: str | None = None) -> None:
        self.alias = alias
        self.location = location
        where = f" (looked in {location})" if location else ""
        super().__init__(f"Environment not found: {alias}{where}")


class PlannerError(ConfigurationError):
    """Raised when table specifications cannot be ordered."""

    def __init__(self, message: str, tables: list[str] | None = None) -> None:
        self.tables = tables or []
        super().__init__(message)


class ProductionSafetyViolation(EnvCloneError):
    """
    Raised when an operation would misuse a production environment.

    Attributes:
        environment_name: Name of the offending environment
        operation: The operation that was vetoed (e.g. "clone_target")
        reason: Human readable explanation, surfaced verbatim to operators
    """

    def __init__(self, environment_name: str, operation: str, reason: str) -> None:
        self.environment_name = environment_name
        self.operation = operation
        self.reason = reason
        super().__init__(reason)


class CloneOptionsError(EnvCloneError):
    """Raised when clone options are inconsistent."""

    pass


class TableAccessError(EnvCloneError):
    """Raised when a table probe, read, or write fails at the data store."""

    def __init__(self, table: str, operation: str, message: str) -> None:
        self.table = table
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed for table {table}: {message}")


class OperationTimeoutError(TableAccessError):
    """Raised when a data store call exceeds its timeout."""

    def __init__(self, table: str, operation: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(table, operation, f"timed out after {timeout:g}s")


class AnonymizationError(EnvCloneError):
    """Raised when an anonymization strategy alters a protected key column."""

    def __init__(self, table: str, column: str) -> None:
        self.table = table
        self.column = column
        super().__init__(
            f"Anonymization of {table} changed protected column {column!r}; "
            "key columns must survive anonymization unchanged"
        )


class SchemaValidationError(EnvCloneError):
    """Raised when a system's expected tables or routines are missing."""

    def __init__(self, system: str, missing: list[str], side: str = "source") -> None:
        self.system = system
        self.missing = missing
        self.side = side
        super().__init__(
            f"{system} schema validation failed on {side}: missing {', '.join(missing)}"
        )


class IntegrityViolationError(EnvCloneError):
    """Raised when rows to be cloned would break referential or range integrity."""

    def __init__(self, system: str, violations: list[str]) -> None:
        self.system = system
        self.violations = violations
        shown = "; ".join(violations[:5])
        more = f" (+{len(violations) - 5} more)" if len(violations) > 5 else ""
        super().__init__(f"{system} data integrity violation: {shown}{more}")


class BackupError(EnvCloneError):
    """Raised when a backup cannot be created or restored."""

    def __init__(self, backup_id: str | None, message: str) -> None:
        self.backup_id = backup_id
        super().__init__(f"Backup {backup_id or '<new>'} failed: {message}")


__all__ = [
    "EnvCloneError",
    "ConfigurationError",
    "EnvironmentNotFoundError",
    "PlannerError",
    "ProductionSafetyViolation",
    "CloneOptionsError",
    "TableAccessError",
    "OperationTimeoutError",
    "AnonymizationError",
    "SchemaValidationError",
    "IntegrityViolationError",
    "BackupError",
]
