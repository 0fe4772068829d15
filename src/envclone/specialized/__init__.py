"""
Specialized system cloners.

Each specialized system (audit, conversations, reservations) is a fixed
group of tables, and for audit also functions and triggers, cloned with its
own anonymization and post-clone checks. SpecializedSystemsCloner runs them
in a fixed order.
"""

from envclone.specialized.audit import AUDIT_LOGS_TABLE, AUDIT_SCHEMA, AuditSystemCloner
from envclone.specialized.base import SystemCloner
from envclone.specialized.conversations import ConversationsSystemCloner
from envclone.specialized.models import (
    SYSTEM_NAMES,
    AuditCloneOptions,
    AuditCloneResult,
    ConversationsCloneOptions,
    ConversationsCloneResult,
    LogLevel,
    MessageType,
    ReservationsCloneOptions,
    ReservationsCloneResult,
    ReservationStatus,
    SpecializedSystemsCloneResult,
    SpecializedSystemsOptions,
    SystemCloneResult,
)
from envclone.specialized.orchestrator import SpecializedSystemsCloner
from envclone.specialized.reservations import ReservationsSystemCloner

__all__ = [
    "AUDIT_LOGS_TABLE",
    "AUDIT_SCHEMA",
    "SYSTEM_NAMES",
    "AuditCloneOptions",
    "AuditCloneResult",
    "AuditSystemCloner",
    "ConversationsCloneOptions",
    "ConversationsCloneResult",
    "ConversationsSystemCloner",
    "LogLevel",
    "MessageType",
    "ReservationStatus",
    "ReservationsCloneOptions",
    "ReservationsCloneResult",
    "ReservationsSystemCloner",
    "SpecializedSystemsCloneResult",
    "SpecializedSystemsCloner",
    "SpecializedSystemsOptions",
    "SystemCloneResult",
    "SystemCloner",
]
