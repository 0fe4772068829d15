"""
Anonymization rules for the specialized systems.

Personal fields (names, emails, phone numbers, addresses, network
identifiers) are replaced. Structural fields (ids, foreign keys,
timestamps, statuses) are left untouched. Amounts are left untouched
unless pricing anonymization is requested.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from envclone.access.interface import Row
from envclone.anonymization.base import load_json_object, record_suffix, stable_hash, stable_int

TEST_USER_AGENT = "Mozilla/5.0 (Test Browser) TestAgent/1.0"

SENSITIVE_PAYLOAD_KEYS = frozenset(
    {
        "email",
        "name",
        "full_name",
        "phone",
        "address",
        "guest_name",
        "guest_email",
        "guest_phone",
    }
)

RESERVATION_PRICE_FIELDS = ("base_price", "cleaning_fee", "service_fee", "taxes")
PRICING_RULE_FIELDS = ("price", "base_price", "price_per_night", "min_price", "max_price", "weekend_price")
PAYMENT_AMOUNT_FIELDS = ("amount", "fee_amount", "refund_amount")
BILL_AMOUNT_FIELDS = ("amount",)
REFERENCE_AMOUNT_FIELDS = ("amount", "reference_amount", "alert_threshold")
BILL_DESCRIPTION_PLACEHOLDER = "Recurring charge anonymized"
BILL_NOTIFICATION_PLACEHOLDER = "Bill notification anonymized"
REFERENCE_DESCRIPTION_PLACEHOLDER = "Reference amount anonymized"

_PRICE_STEP = 50
_PRICE_VARIATION = 20


def _fake_phone(seed: Any) -> str:
    return f"+1555{stable_int(seed, 'phone') % 10_000_000:07d}"


def _fake_ip(seed: Any) -> str:
    digest = stable_int(seed, "ip")
    return f"10.{digest % 256}.{(digest >> 8) % 256}.{(digest >> 16) % 254 + 1}"


def _fake_payload_value(key: str, value: Any, label: str) -> Any:
    if value is None:
        return None
    digest = stable_hash(value, 8, key)
    if key.endswith("email"):
        return f"anon{digest}@{label}.local"
    if key.endswith("phone"):
        return _fake_phone(value)
    if key == "address":
        return f"{stable_int(value) % 999 + 1} Test Street"
    return f"Anonymized {digest[:6].upper()}"


def anonymize_payload(payload: Any, label: str) -> Any:
    """Replace sensitive keys anywhere in a JSON payload, keeping its shape."""
    if isinstance(payload, dict):
        return {
            k: (
                _fake_payload_value(k, v, label)
                if k in SENSITIVE_PAYLOAD_KEYS and not isinstance(v, (dict, list))
                else anonymize_payload(v, label)
            )
            for k, v in payload.items()
        }
    if isinstance(payload, list):
        return [anonymize_payload(item, label) for item in payload]
    return payload


def anonymize_amount(value: Any, seed: Any) -> Any:
    """
    Round an amount to the nearest 50 and add a deterministic variation.

    Zero and missing amounts are kept. The result keeps the input's type.
    """
    if value is None or isinstance(value, bool):
        return value
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        return value
    if amount == 0:
        return value

    rounded = (amount / _PRICE_STEP).quantize(Decimal(1), rounding=ROUND_HALF_UP) * _PRICE_STEP
    variation = stable_int(seed, "price") % (2 * _PRICE_VARIATION + 1) - _PRICE_VARIATION
    result = max(rounded + variation, Decimal(10))

    if isinstance(value, Decimal):
        return result.quantize(Decimal("0.01"))
    if isinstance(value, int):
        return int(result)
    return float(result)


class AuditLogAnonymizer:
    """
    Anonymizes audit log entries.

    Args:
        label: Domain label for synthetic emails
        preserve_structure: Keep JSON payload keys and anonymize their values;
            otherwise payloads are dropped
    """

    payload_columns = ("old_values", "new_values")

    def __init__(self, label: str = "test", *, preserve_structure: bool = True) -> None:
        self.label = label
        self.preserve_structure = preserve_structure

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        return [self._anonymize_row(row) for row in rows]

    def _anonymize_row(self, row: Row) -> Row:
        out = dict(row)
        if out.get("user_email"):
            out["user_email"] = f"user{stable_hash(out['user_email'])}@{self.label}.local"
        if out.get("ip_address"):
            out["ip_address"] = _fake_ip(out["ip_address"])
        if out.get("user_agent"):
            out["user_agent"] = TEST_USER_AGENT
        if out.get("session_id"):
            out["session_id"] = f"test_session_{stable_hash(out['session_id'])}"
        for column in self.payload_columns:
            if out.get(column) is None:
                continue
            if self.preserve_structure:
                out[column] = anonymize_payload(load_json_object(out[column]), self.label)
            else:
                out[column] = None
        return out


class GuestDataAnonymizer:
    """Anonymizes reservation guest contact details."""

    def __init__(self, label: str = "test") -> None:
        self.label = label

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        result = []
        for row in rows:
            out = dict(row)
            suffix = record_suffix(row, 8)
            if "guest_name" in out and out["guest_name"] is not None:
                out["guest_name"] = f"Guest {suffix[:6].upper()}"
            if "guest_email" in out and out["guest_email"] is not None:
                out["guest_email"] = f"guest{stable_hash(suffix)}@{self.label}.local"
            if "guest_phone" in out and out["guest_phone"] is not None:
                out["guest_phone"] = _fake_phone(suffix)
            if out.get("special_requests"):
                out["special_requests"] = "Special requests anonymized"
            result.append(out)
        return result


class PricingAnonymizer:
    """
    Anonymizes monetary fields on a row.

    When ``total_field`` is present it is recomputed from the anonymized
    components, so totals stay consistent.

    Args:
        fields: Columns holding amounts
        total_field: Column holding the sum of `fields`
    """

    def __init__(self, fields: Iterable[str], total_field: str | None = None) -> None:
        self.fields = tuple(fields)
        self.total_field = total_field

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        result = []
        for row in rows:
            out = dict(row)
            seed = record_suffix(row, 12)
            for field in self.fields:
                if field in out:
                    out[field] = anonymize_amount(out[field], f"{seed}:{field}")
            total = self.total_field
            if total and out.get(total) is not None:
                parts = [out[f] for f in self.fields if out.get(f) is not None]
                if parts:
                    out[total] = type(out[total])(sum(Decimal(str(p)) for p in parts))
                else:
                    out[total] = anonymize_amount(out[total], f"{seed}:{total}")
            result.append(out)
        return result


class PaymentAnonymizer:
    """Anonymizes payment references, processor responses and optionally amounts."""

    def __init__(self, *, anonymize_amounts: bool = True) -> None:
        self._amounts = PricingAnonymizer(PAYMENT_AMOUNT_FIELDS) if anonymize_amounts else None

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        rows = self._amounts.anonymize(rows) if self._amounts else [dict(r) for r in rows]
        for out in rows:
            if out.get("transaction_id"):
                out["transaction_id"] = f"test_txn_{stable_hash(out['transaction_id'], 10)}"
            if out.get("processor_response") is not None:
                out["processor_response"] = {
                    "status": out.get("status") or "succeeded",
                    "anonymized": True,
                }
        return rows


class ReferenceDataAnonymizer:
    """
    Anonymizes reference rows: amounts are rounded and varied, free text
    is replaced with a fixed placeholder.

    Args:
        amount_fields: Columns holding amounts
        placeholder: Replacement for non-empty text columns
        text_fields: Columns holding free text
    """

    def __init__(
        self,
        amount_fields: Iterable[str],
        placeholder: str,
        text_fields: Iterable[str] = ("description",),
    ) -> None:
        self._amounts = PricingAnonymizer(amount_fields)
        self.placeholder = placeholder
        self.text_fields = tuple(text_fields)

    def anonymize(self, rows: Sequence[Row]) -> list[Row]:
        rows = self._amounts.anonymize(rows)
        for out in rows:
            for field in self.text_fields:
                if out.get(field):
                    out[field] = self.placeholder
        return rows


def bill_frequency_anonymizer() -> ReferenceDataAnonymizer:
    return ReferenceDataAnonymizer(BILL_AMOUNT_FIELDS, BILL_DESCRIPTION_PLACEHOLDER)


def bill_notification_anonymizer() -> ReferenceDataAnonymizer:
    return ReferenceDataAnonymizer(
        BILL_AMOUNT_FIELDS, BILL_NOTIFICATION_PLACEHOLDER, text_fields=("description", "message")
    )


def reference_amount_anonymizer() -> ReferenceDataAnonymizer:
    return ReferenceDataAnonymizer(REFERENCE_AMOUNT_FIELDS, REFERENCE_DESCRIPTION_PLACEHOLDER)


__all__ = [
    "BILL_AMOUNT_FIELDS",
    "BILL_DESCRIPTION_PLACEHOLDER",
    "BILL_NOTIFICATION_PLACEHOLDER",
    "PAYMENT_AMOUNT_FIELDS",
    "PRICING_RULE_FIELDS",
    "REFERENCE_AMOUNT_FIELDS",
    "REFERENCE_DESCRIPTION_PLACEHOLDER",
    "RESERVATION_PRICE_FIELDS",
    "SENSITIVE_PAYLOAD_KEYS",
    "TEST_USER_AGENT",
    "AuditLogAnonymizer",
    "GuestDataAnonymizer",
    "PaymentAnonymizer",
    "PricingAnonymizer",
    "ReferenceDataAnonymizer",
    "anonymize_amount",
    "anonymize_payload",
    "bill_frequency_anonymizer",
    "bill_notification_anonymizer",
    "reference_amount_anonymizer",
]
