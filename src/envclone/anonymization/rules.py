"""
Anonymization rules for the core application tables.

- profiles: synthetic email and tagged display name, tokens removed
- user_sessions: dropped entirely
- notifications: email-bearing bodies replaced, marked read
- messages: content replaced, metadata flagged as anonymized

The bill notification and transaction reference groups get amount and
description rules only when their group is named in ``groups``.

Only columns already present on a row are touched, so rules never add
columns the target table may not have.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Sequence

from envclone.access.interface import Row
from envclone.anonymization.base import (
    Clock,
    DropAllStrategy,
    load_json_object,
    record_suffix,
    utc_now,
)
from envclone.anonymization.domain import (
    bill_frequency_anonymizer,
    bill_notification_anonymizer,
    reference_amount_anonymizer,
)
from envclone.anonymization.registry import AnonymizationRegistry

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(\.[\w-]+)+")
NOTIFICATION_PLACEHOLDER = "Notification content anonymized"
MESSAGE_PLACEHOLDER = "Message content anonymized"
DEFAULT_MEMBER_ROLE = "member"


def is_token_column(column: str) -> bool:
    return column in ("access_token", "refresh_token") or column.endswith(
        ("_access_token", "_refresh_token")
    )


def synthetic_email(row: Row, label: str) -> str:
    return f"user_{record_suffix(row)}@{label}.local"


class ProfileAnonymizer:
    """
    Anonymizes user profiles.

    The synthetic email uses the first six characters of the profile id,
    so re-running yields the same address and relations built on it hold.

    Args:
        label: Target environment label (e.g. ``test``)
        now: Clock for ``updated_at``
        preserve_roles: Keep the ``role`` column; otherwise reset to ``member``
    """

    def __init__(self, label: str, *, now: Clock = utc_now, preserve_roles: bool = True) -> None:
        self.label = label
        self._now = now
        self._preserve_roles = preserve_roles

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        return [self._anonymize_row(row) for row in rows]

    def _anonymize_row(self, row: Row) -> Row:
        out = dict(row)
        suffix = record_suffix(row)
        tag = f"({self.label.upper()})"

        if "email" in out:
            out["email"] = synthetic_email(row, self.label)
        if "full_name" in out:
            name = (out.get("full_name") or "").strip()
            if not name:
                out["full_name"] = f"User {suffix.upper()}"
            elif not name.endswith(tag):
                out["full_name"] = f"{name} {tag}"
        for column in out:
            if is_token_column(column):
                out[column] = None
        if "updated_at" in out:
            out["updated_at"] = self._now()
        if not self._preserve_roles and "role" in out:
            out["role"] = DEFAULT_MEMBER_ROLE
        return out


class SessionAnonymizer(DropAllStrategy):
    """Sessions are never meaningfully clonable: drop every row."""


class NotificationAnonymizer:
    """Replaces notification bodies that contain an email address and marks them read."""

    def __init__(self, *, now: Clock = utc_now, placeholder: str = NOTIFICATION_PLACEHOLDER) -> None:
        self._now = now
        self._placeholder = placeholder

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        result = []
        for row in rows:
            out = dict(row)
            message = out.get("message")
            if isinstance(message, str) and EMAIL_PATTERN.search(message):
                out["message"] = self._placeholder
            if "is_read" in out:
                out["is_read"] = True
            if "read_at" in out:
                out["read_at"] = self._now()
            result.append(out)
        return result


class MessageAnonymizer:
    """Replaces message content with a placeholder and flags metadata as anonymized."""

    def __init__(self, placeholder: str = MESSAGE_PLACEHOLDER) -> None:
        self._placeholder = placeholder

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        return [self._anonymize_row(row) for row in rows]

    def _anonymize_row(self, row: Row) -> Row:
        out = dict(row)
        if "content" in out:
            out["content"] = self._placeholder
        if out.get("metadata") is not None:
            metadata = load_json_object(out["metadata"])
            if isinstance(metadata, dict):
                out["metadata"] = {**metadata, "anonymized": True}
            else:
                out["metadata"] = {"anonymized": True}
        return out


def build_default_registry(
    label: str,
    *,
    now: Clock = utc_now,
    preserve_user_roles: bool = True,
    groups: Collection[str] = (),
) -> AnonymizationRegistry:
    """Registry with the rules for the core application tables and the requested groups."""
    registry = AnonymizationRegistry()
    registry.register("profiles", ProfileAnonymizer(label, now=now, preserve_roles=preserve_user_roles))
    registry.register("user_sessions", SessionAnonymizer())
    registry.register("notifications", NotificationAnonymizer(now=now))
    registry.register("messages", MessageAnonymizer())
    if "bill_notifications" in groups:
        registry.register("bill_frequencies", bill_frequency_anonymizer())
        registry.register("bill_notifications", bill_notification_anonymizer())
    if "transaction_references" in groups:
        registry.register("transaction_reference_amounts", reference_amount_anonymizer())
    return registry


__all__ = [
    "EMAIL_PATTERN",
    "MESSAGE_PLACEHOLDER",
    "NOTIFICATION_PLACEHOLDER",
    "MessageAnonymizer",
    "NotificationAnonymizer",
    "ProfileAnonymizer",
    "SessionAnonymizer",
    "build_default_registry",
    "is_token_column",
    "synthetic_email",
]
