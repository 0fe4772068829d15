"""
Options and results for the specialized system cloners.

Options are frozen pydantic models. Every ``include_<system>_system`` flag
that is true must come with that system's options object.

Results are dataclasses accumulated by the cloners while they run.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LogLevel(str, Enum):
    """Audit log levels accepted by the log level filter."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class MessageType(str, Enum):
    """Conversation message types accepted by the message type filter."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class ReservationStatus(str, Enum):
    """Reservation statuses accepted by the status filter."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class AuditCloneOptions(BaseModel):
    """
    Options for cloning the audit system.

    Attributes:
        include_audit_logs: Copy audit log rows (functions and triggers are always cloned)
        anonymize_audit_data: Anonymize user identifiers and payloads
        preserve_audit_structure: Keep payload keys when anonymizing; otherwise drop payloads
        max_log_age: Only copy logs younger than this many days
        log_level_filter: Only copy logs at these levels
    """

    model_config = ConfigDict(frozen=True)

    include_audit_logs: bool = True
    anonymize_audit_data: bool = True
    preserve_audit_structure: bool = True
    max_log_age: int | None = Field(default=None, gt=0)
    log_level_filter: list[LogLevel] | None = None


class ConversationsCloneOptions(BaseModel):
    """
    Options for cloning the conversations system.

    Attributes:
        include_messages: Copy messages (conversations and participants are always copied)
        anonymize_message_content: Replace message content
        preserve_conversation_structure: Require every participant and message to
            reference a cloned conversation
        max_message_age: Only copy messages younger than this many days
        message_type_filter: Only copy messages of these types
    """

    model_config = ConfigDict(frozen=True)

    include_messages: bool = True
    anonymize_message_content: bool = True
    preserve_conversation_structure: bool = True
    max_message_age: int | None = Field(default=None, gt=0)
    message_type_filter: list[MessageType] | None = None


class ReservationsCloneOptions(BaseModel):
    """
    Options for cloning the reservations system.

    Attributes:
        include_reservations: Copy reservations
        include_availability: Copy availability calendar rows
        include_pricing_rules: Copy pricing rules
        include_payments: Copy reservation payments
        anonymize_guest_data: Replace guest contact details
        anonymize_pricing_data: Replace amounts with rounded, varied figures
        max_reservation_age: Only copy reservations created within this many days
        status_filter: Only copy reservations in these statuses
    """

    model_config = ConfigDict(frozen=True)

    include_reservations: bool = True
    include_availability: bool = True
    include_pricing_rules: bool = True
    include_payments: bool = True
    anonymize_guest_data: bool = True
    anonymize_pricing_data: bool = False
    max_reservation_age: int | None = Field(default=None, gt=0)
    status_filter: list[ReservationStatus] | None = None


SYSTEM_NAMES = ("audit", "conversations", "reservations")


class SpecializedSystemsOptions(BaseModel):
    """
    Which specialized systems to clone, and how.

    Attributes:
        strict: Treat a requested system that is missing on the source as a
            failure instead of a warning
    """

    model_config = ConfigDict(frozen=True)

    include_audit_system: bool = False
    audit_options: AuditCloneOptions | None = None
    include_conversations_system: bool = False
    conversations_options: ConversationsCloneOptions | None = None
    include_reservations_system: bool = False
    reservations_options: ReservationsCloneOptions | None = None
    strict: bool = False

    @model_validator(mode="after")
    def _require_system_options(self) -> SpecializedSystemsOptions:
        for problem in self.missing_options():
            raise ValueError(problem)
        return self

    def missing_options(self) -> list[str]:
        problems = []
        for system in SYSTEM_NAMES:
            if getattr(self, f"include_{system}_system") and getattr(self, f"{system}_options") is None:
                problems.append(f"{system}_options are required when include_{system}_system is true")
        return problems

    @property
    def requested_systems(self) -> list[str]:
        return [s for s in SYSTEM_NAMES if getattr(self, f"include_{s}_system")]


@dataclass
class SystemCloneResult:
    """
    Common shape of a specialized system clone result.

    Attributes:
        system: System name
        success: True when the sub-clone finished without errors
        skipped: True when the system was not present and was not cloned
        tables_cloned: Tables written
        records_cloned: Rows written across all tables
        records_anonymized: Rows passed through anonymization
        errors: Error messages
        warnings: Warning messages
        duration_seconds: Wall time
    """

    system: str = ""
    success: bool = False
    skipped: bool = False
    tables_cloned: list[str] = field(default_factory=list)
    records_cloned: int = 0
    records_anonymized: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AuditCloneResult(SystemCloneResult):
    """Audit system result with log, function and trigger counters."""

    system: str = "audit"
    functions_cloned: list[str] = field(default_factory=list)
    triggers_cloned: list[str] = field(default_factory=list)
    logs_cloned: int = 0
    logs_anonymized: int = 0
    structure_preserved: bool = False
    trigger_check_passed: bool | None = None


@dataclass
class ConversationsCloneResult(SystemCloneResult):
    """Conversations system result with per-entity counters."""

    system: str = "conversations"
    conversations_cloned: int = 0
    participants_cloned: int = 0
    messages_cloned: int = 0
    messages_anonymized: int = 0
    relationships_preserved: bool = False
    realtime_validated: bool | None = None


@dataclass
class ReservationsCloneResult(SystemCloneResult):
    """Reservations system result with per-entity counters and the calendar check."""

    system: str = "reservations"
    reservations_cloned: int = 0
    availability_records_cloned: int = 0
    pricing_rules_cloned: int = 0
    payments_cloned: int = 0
    guest_data_anonymized: int = 0
    pricing_data_anonymized: int = 0
    relationships_preserved: bool = False
    calendar_consistency_validated: bool | None = None


@dataclass
class SpecializedSystemsCloneResult:
    """
    Aggregate of the specialized system sub-clones.

    Attributes:
        success: False if any requested system failed
        operation_id: Identifier of the invocation
        systems_cloned: Names of systems that completed successfully
        audit_result: Audit sub-result, if the system was dispatched
        conversations_result: Conversations sub-result, if dispatched
        reservations_result: Reservations sub-result, if dispatched
        errors: Errors from this layer and every sub-clone
        warnings: Warnings from this layer and every sub-clone
        total_duration: Wall time in seconds
        aborted: True when validation or the safety guard stopped the run
    """

    success: bool = False
    operation_id: str = ""
    systems_cloned: list[str] = field(default_factory=list)
    audit_result: AuditCloneResult | None = None
    conversations_result: ConversationsCloneResult | None = None
    reservations_result: ReservationsCloneResult | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total_duration: float = 0.0
    aborted: bool = False

    @property
    def results(self) -> list[SystemCloneResult]:
        return [
            r
            for r in (self.audit_result, self.conversations_result, self.reservations_result)
            if r is not None
        ]

    @property
    def records_cloned(self) -> int:
        return sum(r.records_cloned for r in self.results)

    @property
    def records_anonymized(self) -> int:
        return sum(r.records_anonymized for r in self.results)

    @property
    def tables_cloned(self) -> list[str]:
        return [t for r in self.results for t in r.tables_cloned]

    @property
    def functions_cloned(self) -> int:
        return len(self.audit_result.functions_cloned) if self.audit_result else 0

    @property
    def triggers_cloned(self) -> int:
        return len(self.audit_result.triggers_cloned) if self.audit_result else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "operation_id": self.operation_id,
            "systems_cloned": list(self.systems_cloned),
            "audit_result": self.audit_result.to_dict() if self.audit_result else None,
            "conversations_result": (
                self.conversations_result.to_dict() if self.conversations_result else None
            ),
            "reservations_result": (
                self.reservations_result.to_dict() if self.reservations_result else None
            ),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "total_duration": round(self.total_duration, 3),
            "aborted": self.aborted,
        }


__all__ = [
    "SYSTEM_NAMES",
    "AuditCloneOptions",
    "AuditCloneResult",
    "ConversationsCloneOptions",
    "ConversationsCloneResult",
    "LogLevel",
    "MessageType",
    "ReservationStatus",
    "ReservationsCloneOptions",
    "ReservationsCloneResult",
    "SpecializedSystemsCloneResult",
    "SpecializedSystemsOptions",
    "SystemCloneResult",
]
