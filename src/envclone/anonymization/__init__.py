"""
Anonymization rule set.

Strategies are registered per table in an AnonymizationRegistry. Every
strategy implements ``anonymize(rows) -> rows`` and must leave primary key
and foreign key columns unchanged.
"""

from envclone.anonymization.base import (
    AnonymizationStrategy,
    DropAllStrategy,
    IdentityStrategy,
    record_suffix,
    stable_hash,
)
from envclone.anonymization.domain import (
    AuditLogAnonymizer,
    GuestDataAnonymizer,
    PaymentAnonymizer,
    PricingAnonymizer,
    ReferenceDataAnonymizer,
    anonymize_amount,
    anonymize_payload,
)
from envclone.anonymization.registry import AnonymizationRegistry
from envclone.anonymization.rules import (
    MESSAGE_PLACEHOLDER,
    NOTIFICATION_PLACEHOLDER,
    MessageAnonymizer,
    NotificationAnonymizer,
    ProfileAnonymizer,
    SessionAnonymizer,
    build_default_registry,
)

__all__ = [
    "AnonymizationRegistry",
    "AnonymizationStrategy",
    "AuditLogAnonymizer",
    "DropAllStrategy",
    "GuestDataAnonymizer",
    "IdentityStrategy",
    "MESSAGE_PLACEHOLDER",
    "MessageAnonymizer",
    "NOTIFICATION_PLACEHOLDER",
    "NotificationAnonymizer",
    "PaymentAnonymizer",
    "PricingAnonymizer",
    "ProfileAnonymizer",
    "ReferenceDataAnonymizer",
    "SessionAnonymizer",
    "anonymize_amount",
    "anonymize_payload",
    "build_default_registry",
    "record_suffix",
    "stable_hash",
]
