"""Unit tests for ReservationsSystemCloner and its calendar helpers."""

from datetime import date, datetime

import pytest

from envclone.access import InMemoryConnectionFactory
from envclone.specialized import ReservationsCloneOptions, ReservationsSystemCloner, ReservationStatus
from envclone.specialized.reservations import (
    as_date,
    calendar_mismatches,
    date_range_violations,
    filter_reservations,
    stay_dates,
)
from tests.fixtures import FIXED_NOW, fixed_clock
from tests.fixtures.systems import reservation_tables, system_stores


@pytest.fixture
def stores():
    return system_stores("reservations")


@pytest.fixture
def cloner(stores):
    source, target = stores
    factory = InMemoryConnectionFactory({"prod": source, "test": target})
    return ReservationsSystemCloner(factory, clock=fixed_clock, enable_tracing=False)


def update_row(store, table, row_id, **changes):
    rows = store.rows(table)
    for row in rows:
        if row["id"] == row_id:
            row.update(changes)
    store.create_table(table, rows)


class TestCalendarHelpers:
    def test_as_date(self):
        assert as_date("2024-05-10") == date(2024, 5, 10)
        assert as_date("2024-05-10T15:00:00+00:00") == date(2024, 5, 10)
        assert as_date(datetime(2024, 5, 10, 15)) == date(2024, 5, 10)
        assert as_date("not a date") is None
        assert as_date(None) is None

    def test_stay_dates_exclude_checkout(self):
        reservation = {"check_in_date": "2024-05-10", "check_out_date": "2024-05-12"}
        assert list(stay_dates(reservation)) == [date(2024, 5, 10), date(2024, 5, 11)]

    def test_stay_dates_without_dates(self):
        assert list(stay_dates({"check_in_date": None, "check_out_date": "2024-05-12"})) == []

    def test_date_range_violations(self):
        rows = [
            {"id": "res-1", "check_in_date": "2024-05-10", "check_out_date": "2024-05-10"},
            {"id": "res-2", "check_in_date": "2024-05-10", "check_out_date": "2024-05-11"},
        ]
        assert date_range_violations(rows) == [
            "reservation res-1 has check_out_date 2024-05-10 not after check_in_date 2024-05-10"
        ]

    def test_calendar_mismatches(self):
        reservations = [
            {"loft_id": "loft-1", "status": "confirmed", "check_in_date": "2024-05-10", "check_out_date": "2024-05-12"},
            {"loft_id": "loft-2", "status": "cancelled", "check_in_date": "2024-05-10", "check_out_date": "2024-05-11"},
        ]
        availability = [
            {"loft_id": "loft-1", "date": "2024-05-10", "is_available": False},
            {"loft_id": "loft-1", "date": "2024-05-11", "is_available": True},
            {"loft_id": "loft-2", "date": "2024-05-10", "is_available": False},
        ]

        assert calendar_mismatches(reservations, availability) == [
            "loft loft-1 is reserved on 2024-05-11 but marked available",
            "loft loft-2 is blocked on 2024-05-10 without a reservation",
        ]

    def test_reserved_night_without_calendar_row(self):
        reservations = [
            {"loft_id": "loft-1", "status": "confirmed", "check_in_date": "2024-05-10", "check_out_date": "2024-05-12"},
        ]

        assert calendar_mismatches(reservations, []) == [
            "loft loft-1 is reserved on 2024-05-10 but has no calendar entry",
            "loft loft-1 is reserved on 2024-05-11 but has no calendar entry",
        ]

    def test_cancelled_reservation_needs_no_calendar_row(self):
        reservations = [
            {"loft_id": "loft-1", "status": "cancelled", "check_in_date": "2024-05-10", "check_out_date": "2024-05-12"},
        ]
        assert calendar_mismatches(reservations, []) == []

    def test_filter_reservations(self):
        rows = reservation_tables()["reservations"]
        recent = filter_reservations(rows, ReservationsCloneOptions(max_reservation_age=180), FIXED_NOW)
        assert [r["id"] for r in recent] == ["res-0001"]
        options = ReservationsCloneOptions(status_filter=[ReservationStatus.CANCELLED])
        assert [r["id"] for r in filter_reservations(rows, options, FIXED_NOW)] == ["res-0002"]


class TestCloneReservations:
    @pytest.mark.asyncio
    async def test_full_clone(self, cloner, prod_env, test_env):
        result = await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        assert result.success
        assert result.reservations_cloned == 2
        assert result.availability_records_cloned == 2
        assert result.pricing_rules_cloned == 1
        assert result.payments_cloned == 2
        assert result.records_cloned == 7
        assert result.guest_data_anonymized == 2
        assert result.pricing_data_anonymized == 0
        assert result.records_anonymized == 4
        assert result.relationships_preserved
        assert result.calendar_consistency_validated is True
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_guest_data_anonymized(self, cloner, stores, prod_env, test_env):
        _, target = stores

        await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        reservation = {r["id"]: r for r in target.rows("reservations")}["res-0001"]
        assert reservation["guest_name"].startswith("Guest ")
        assert reservation["guest_email"].endswith("@test.local")
        assert reservation["guest_phone"].startswith("+1555")
        assert reservation["special_requests"] == "Special requests anonymized"
        assert reservation["total_amount"] == 290.0
        assert reservation["check_in_date"] == "2024-05-10"

        payment = {p["id"]: p for p in target.rows("reservation_payments")}["pay-1"]
        assert payment["transaction_id"].startswith("test_txn_")
        assert payment["processor_response"] == {"status": "succeeded", "anonymized": True}
        assert payment["amount"] == 290.0

    @pytest.mark.asyncio
    async def test_pricing_anonymized(self, cloner, stores, prod_env, test_env):
        _, target = stores

        result = await cloner.clone_reservations_system(
            prod_env, test_env, ReservationsCloneOptions(anonymize_pricing_data=True)
        )

        assert result.pricing_data_anonymized == 5
        assert result.records_anonymized == 5
        for reservation in target.rows("reservations"):
            components = [reservation[f] for f in ("base_price", "cleaning_fee", "service_fee", "taxes")]
            assert reservation["total_amount"] == pytest.approx(sum(components))
        assert 130 <= target.rows("pricing_rules")[0]["price"] <= 170

    @pytest.mark.asyncio
    async def test_payments_of_filtered_reservations_dropped(self, cloner, stores, prod_env, test_env):
        _, target = stores

        result = await cloner.clone_reservations_system(
            prod_env, test_env, ReservationsCloneOptions(max_reservation_age=180)
        )

        assert result.success
        assert result.reservations_cloned == 1
        assert result.payments_cloned == 1
        assert "Dropped 1 payments whose reservations are not being cloned" in result.warnings
        assert [p["id"] for p in target.rows("reservation_payments")] == ["pay-1"]

    @pytest.mark.asyncio
    async def test_availability_only(self, cloner, stores, prod_env, test_env):
        _, target = stores

        result = await cloner.clone_reservations_system(
            prod_env,
            test_env,
            ReservationsCloneOptions(include_reservations=False, include_pricing_rules=False),
        )

        assert result.success
        assert result.availability_records_cloned == 2
        assert result.reservations_cloned == 0
        assert result.payments_cloned == 0
        assert result.calendar_consistency_validated is None
        assert "Dropped 2 payments whose reservations are not being cloned" in result.warnings
        assert target.rows("pricing_rules") == []


class TestReservationIntegrity:
    @pytest.mark.asyncio
    async def test_inverted_dates_abort(self, cloner, stores, prod_env, test_env):
        source, target = stores
        update_row(source, "reservations", "res-0001", check_out_date="2024-05-09")

        result = await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        assert not result.success
        assert result.errors == [
            "reservations data integrity violation: "
            "reservation res-0001 has check_out_date 2024-05-09 not after check_in_date 2024-05-10"
        ]
        assert target.rows_written == 0

    @pytest.mark.asyncio
    async def test_unknown_loft_aborts(self, cloner, stores, prod_env, test_env):
        source, target = stores
        update_row(source, "reservations", "res-0002", loft_id="loft-9")

        result = await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        assert not result.success
        assert result.errors == [
            "reservations data integrity violation: reservation res-0002 references missing loft loft-9"
        ]
        assert target.rows_written == 0

    @pytest.mark.asyncio
    async def test_target_without_lofts_only_warns(self, cloner, stores, prod_env, test_env):
        _, target = stores
        target.drop_table("lofts")

        result = await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        assert result.success
        assert "Target has no lofts table; reservation loft references were not checked" in result.warnings

    @pytest.mark.asyncio
    async def test_calendar_mismatch_is_a_warning(self, cloner, stores, prod_env, test_env):
        source, _ = stores
        availability = source.rows("loft_availability")
        availability[1]["is_available"] = True
        source.create_table("loft_availability", availability)

        result = await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        assert result.success
        assert result.calendar_consistency_validated is False
        assert result.warnings == [
            "Calendar consistency check found 1 mismatches: loft loft-1 is reserved on 2024-05-11 but marked available"
        ]

    @pytest.mark.asyncio
    async def test_missing_payments_table_on_target(self, cloner, stores, prod_env, test_env):
        _, target = stores
        target.drop_table("reservation_payments")

        result = await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        assert not result.success
        assert result.errors == [
            "reservations schema validation failed on target: missing reservation_payments"
        ]

    @pytest.mark.asyncio
    async def test_empty_calendar_is_a_warning(self, cloner, stores, prod_env, test_env):
        source, _ = stores
        source.create_table("loft_availability", [], columns={"loft_id", "date", "is_available"})

        result = await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        assert result.success
        assert result.availability_records_cloned == 0
        assert result.calendar_consistency_validated is False
        assert result.warnings == [
            "Calendar consistency check found 2 mismatches: "
            "loft loft-1 is reserved on 2024-05-10 but has no calendar entry; "
            "loft loft-1 is reserved on 2024-05-11 but has no calendar entry"
        ]

    @pytest.mark.asyncio
    async def test_loft_lookup_is_bounded(self, stores, prod_env, test_env):
        source, target = stores
        target.delay("lofts", "exists", 0.2)
        factory = InMemoryConnectionFactory({"prod": source, "test": target})
        cloner = ReservationsSystemCloner(factory, clock=fixed_clock, timeout=0.01, enable_tracing=False)

        result = await cloner.clone_reservations_system(prod_env, test_env, ReservationsCloneOptions())

        assert not result.success
        assert result.errors == [
            "Reservations clone failed: exists failed for table lofts: timed out after 0.01s"
        ]
        assert target.rows_written == 0
