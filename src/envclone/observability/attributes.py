"""
Standard span attributes for envclone.

Attribute constants used across the cloners so that spans from different
components can be correlated in one trace.

Example:
    >>> with tracer.span(
    ...     "envclone.data_cloner.clone_table",
    ...     {ATTR_TABLE: "profiles", ATTR_DRY_RUN: False},
    ... ):
    ...     pass
"""

# =============================================================================
# Operation Attributes
# =============================================================================

ATTR_OPERATION_ID = "envclone.operation.id"
"""Unique identifier of one clone invocation."""

ATTR_SOURCE_ENV = "envclone.source.environment"
"""Name of the source environment."""

ATTR_TARGET_ENV = "envclone.target.environment"
"""Name of the target environment."""

ATTR_DRY_RUN = "envclone.dry_run"
"""Whether writes are suppressed (boolean)."""

# =============================================================================
# Table Attributes
# =============================================================================

ATTR_TABLE = "envclone.table"
"""Table name, optionally schema-qualified."""

ATTR_TABLE_COUNT = "envclone.table.count"
"""Number of tables in an operation (integer)."""

ATTR_BATCH_SIZE = "envclone.batch.size"
"""Number of rows in a write batch (integer)."""

ATTR_PAGE_OFFSET = "envclone.page.offset"
"""Offset of a fetched page (integer)."""

# =============================================================================
# Specialized System Attributes
# =============================================================================

ATTR_SYSTEM = "envclone.system"
"""Specialized system name (audit, conversations, reservations)."""

# =============================================================================
# Database Attributes (OTEL semantic)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'sqlite')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation name (e.g., 'SELECT', 'INSERT')."""

__all__ = [
    "ATTR_OPERATION_ID",
    "ATTR_SOURCE_ENV",
    "ATTR_TARGET_ENV",
    "ATTR_DRY_RUN",
    "ATTR_TABLE",
    "ATTR_TABLE_COUNT",
    "ATTR_BATCH_SIZE",
    "ATTR_PAGE_OFFSET",
    "ATTR_SYSTEM",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
]
