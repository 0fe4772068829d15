"""
Reservations system cloner.

Clones reservations, the availability calendar, pricing rules and
reservation payments. Before anything is written the reservations are
checked for integrity:

- ``check_out_date`` must fall after ``check_in_date``
- ``loft_id`` must exist in the target's lofts
- every payment must belong to a reservation being cloned; payments of
  filtered-out reservations are dropped

After cloning, the availability calendar is compared with the reservations.
Disagreements are warnings.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date, datetime, timedelta
from typing import Any

from envclone.access.interface import Row, TableAccess
from envclone.access.transfer import with_timeout
from envclone.anonymization.domain import (
    PRICING_RULE_FIELDS,
    RESERVATION_PRICE_FIELDS,
    GuestDataAnonymizer,
    PaymentAnonymizer,
    PricingAnonymizer,
)
from envclone.environments.models import Environment
from envclone.exceptions import IntegrityViolationError
from envclone.specialized.base import SystemCloner, coerce_datetime, keys_of, within_age
from envclone.specialized.models import (
    ReservationsCloneOptions,
    ReservationsCloneResult,
    ReservationStatus,
)

logger = logging.getLogger(__name__)

RESERVATIONS_TABLE = "reservations"
AVAILABILITY_TABLE = "loft_availability"
PRICING_RULES_TABLE = "pricing_rules"
PAYMENTS_TABLE = "reservation_payments"
LOFTS_TABLE = "lofts"

# Reservations in these statuses do not occupy the calendar
_NON_BLOCKING = {ReservationStatus.CANCELLED.value}


def as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            stamp = coerce_datetime(value)
            return stamp.date() if stamp else None
    return None


def stay_dates(reservation: Row) -> Iterator[date]:
    """Nights occupied by a reservation: check-in up to, not including, check-out."""
    start = as_date(reservation.get("check_in_date"))
    end = as_date(reservation.get("check_out_date"))
    if start is None or end is None:
        return
    day = start
    while day < end:
        yield day
        day += timedelta(days=1)


def filter_reservations(rows: list[Row], options: ReservationsCloneOptions, now: datetime) -> list[Row]:
    statuses = {s.value for s in options.status_filter} if options.status_filter else None
    return [
        row
        for row in rows
        if within_age(row, options.max_reservation_age, now)
        and (statuses is None or str(row.get("status")) in statuses)
    ]


def date_range_violations(reservations: list[Row]) -> list[str]:
    violations = []
    for row in reservations:
        check_in = as_date(row.get("check_in_date"))
        check_out = as_date(row.get("check_out_date"))
        if check_in is not None and check_out is not None and check_out <= check_in:
            violations.append(
                f"reservation {row.get('id')} has check_out_date {check_out} not after check_in_date {check_in}"
            )
    return violations


def calendar_mismatches(reservations: list[Row], availability: list[Row]) -> list[str]:
    """
    Compare blocked calendar dates with reservation stays.

    A date marked unavailable must be covered by a reservation of that loft,
    and every reserved night must be marked unavailable. A reserved night
    with no calendar row at all is reported too.
    """
    reserved: set[tuple[str, date]] = set()
    for row in reservations:
        if str(row.get("status")) in _NON_BLOCKING:
            continue
        loft = str(row.get("loft_id"))
        reserved.update((loft, day) for day in stay_dates(row))

    mismatches = []
    listed: set[tuple[str, date]] = set()
    for row in availability:
        day = as_date(row.get("date"))
        if day is None:
            continue
        key = (str(row.get("loft_id")), day)
        listed.add(key)
        available = row.get("is_available", True)
        if not available and key not in reserved:
            mismatches.append(f"loft {key[0]} is blocked on {day} without a reservation")
        elif available and key in reserved:
            mismatches.append(f"loft {key[0]} is reserved on {day} but marked available")
    for loft, day in sorted(reserved - listed):
        mismatches.append(f"loft {loft} is reserved on {day} but has no calendar entry")
    return mismatches


class ReservationsSystemCloner(SystemCloner[ReservationsCloneResult]):
    """Clones reservations with their calendar, pricing rules and payments."""

    system = "reservations"
    required_tables = (RESERVATIONS_TABLE, AVAILABILITY_TABLE, PRICING_RULES_TABLE, PAYMENTS_TABLE)

    def new_result(self) -> ReservationsCloneResult:
        return ReservationsCloneResult()

    async def clone_reservations_system(
        self,
        source: Environment,
        target: Environment,
        options: ReservationsCloneOptions,
        operation_id: str | None = None,
        *,
        source_access: TableAccess | None = None,
        target_access: TableAccess | None = None,
    ) -> ReservationsCloneResult:
        return await self.run(
            source, target, options, operation_id, source_access=source_access, target_access=target_access
        )

    async def _clone(
        self,
        source: Environment,
        target: Environment,
        source_access: TableAccess,
        target_access: TableAccess,
        options: ReservationsCloneOptions,
        result: ReservationsCloneResult,
    ) -> None:
        await self._require_schema(source_access, "source")
        await self._require_schema(target_access, "target")

        reservations: list[Row] = []
        if options.include_reservations:
            reservations = filter_reservations(
                await self._fetch(source_access, RESERVATIONS_TABLE), options, self._clock()
            )
        availability = await self._fetch(source_access, AVAILABILITY_TABLE) if options.include_availability else []
        pricing_rules = await self._fetch(source_access, PRICING_RULES_TABLE) if options.include_pricing_rules else []
        payments = await self._fetch(source_access, PAYMENTS_TABLE) if options.include_payments else []

        violations = date_range_violations(reservations)
        violations += await self._loft_violations(target_access, reservations, result)
        if violations:
            raise IntegrityViolationError(self.system, violations)

        reservation_ids = keys_of(reservations)
        kept = [p for p in payments if str(p.get("reservation_id")) in reservation_ids]
        if len(kept) < len(payments):
            result.warnings.append(
                f"Dropped {len(payments) - len(kept)} payments whose reservations are not being cloned"
            )
        payments = kept

        reservations, pricing_rules, payments = self._anonymize(
            target, options, reservations, pricing_rules, payments, result
        )

        result.reservations_cloned = await self._write(target_access, RESERVATIONS_TABLE, reservations, result)
        result.availability_records_cloned = await self._write(target_access, AVAILABILITY_TABLE, availability, result)
        result.pricing_rules_cloned = await self._write(target_access, PRICING_RULES_TABLE, pricing_rules, result)
        result.payments_cloned = await self._write(target_access, PAYMENTS_TABLE, payments, result)
        result.relationships_preserved = True

        if options.include_reservations and options.include_availability:
            mismatches = calendar_mismatches(reservations, availability)
            result.calendar_consistency_validated = not mismatches
            if mismatches:
                shown = "; ".join(mismatches[:5])
                more = f" (+{len(mismatches) - 5} more)" if len(mismatches) > 5 else ""
                result.warnings.append(f"Calendar consistency check found {len(mismatches)} mismatches: {shown}{more}")

    async def _loft_violations(
        self,
        target_access: TableAccess,
        reservations: list[Row],
        result: ReservationsCloneResult,
    ) -> list[str]:
        if not reservations:
            return []
        if not await with_timeout(target_access.exists(LOFTS_TABLE), self._timeout, LOFTS_TABLE, "exists"):
            result.warnings.append("Target has no lofts table; reservation loft references were not checked")
            return []
        lofts = keys_of(await self._fetch(target_access, LOFTS_TABLE))
        return [
            f"reservation {row.get('id')} references missing loft {row['loft_id']}"
            for row in reservations
            if row.get("loft_id") is not None and str(row["loft_id"]) not in lofts
        ]

    def _anonymize(
        self,
        target: Environment,
        options: ReservationsCloneOptions,
        reservations: list[Row],
        pricing_rules: list[Row],
        payments: list[Row],
        result: ReservationsCloneResult,
    ) -> tuple[list[Row], list[Row], list[Row]]:
        if options.anonymize_guest_data and reservations:
            reservations = GuestDataAnonymizer(target.label).anonymize(reservations)
            result.guest_data_anonymized = len(reservations)

        if options.anonymize_pricing_data:
            reservations = PricingAnonymizer(RESERVATION_PRICE_FIELDS, "total_amount").anonymize(reservations)
            pricing_rules = PricingAnonymizer(PRICING_RULE_FIELDS).anonymize(pricing_rules)
            result.pricing_data_anonymized = len(reservations) + len(pricing_rules) + len(payments)

        if payments and (options.anonymize_guest_data or options.anonymize_pricing_data):
            payments = PaymentAnonymizer(anonymize_amounts=options.anonymize_pricing_data).anonymize(payments)

        touched = 0
        if options.anonymize_guest_data or options.anonymize_pricing_data:
            touched = len(reservations) + len(payments)
        if options.anonymize_pricing_data:
            touched += len(pricing_rules)
        result.records_anonymized += touched
        return reservations, pricing_rules, payments


__all__ = [
    "AVAILABILITY_TABLE",
    "PAYMENTS_TABLE",
    "PRICING_RULES_TABLE",
    "RESERVATIONS_TABLE",
    "ReservationsSystemCloner",
    "calendar_mismatches",
    "filter_reservations",
    "stay_dates",
]
