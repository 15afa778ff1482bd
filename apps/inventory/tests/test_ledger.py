"""Tests for the inventory ledger primitives."""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.db import transaction

from apps.inventory.exceptions import InsufficientAvailability, LedgerInconsistency
from apps.inventory.ledger import InventoryLedger, RoomRequest, merge_room_requests
from apps.inventory.models import InventoryDay
from shared.domain.exceptions import TransactionRequired
from shared.domain.value_objects import DateRange

CHECK_IN = date(2030, 6, 1)


def _seed(room_id, nights=3, total=2, booked=0, held=0, status=InventoryDay.Status.OPEN, price="100.00"):
    for offset in range(nights):
        InventoryDay.objects.create(
            room_id=room_id,
            date=CHECK_IN + timedelta(days=offset),
            total_rooms=total,
            booked_rooms=booked,
            held_rooms=held,
            price_per_night=Decimal(price),
            status=status,
        )


def _stay(nights=3):
    return DateRange(CHECK_IN, CHECK_IN + timedelta(days=nights))


def _counters(room_id):
    return list(
        InventoryDay.objects.filter(room_id=room_id).order_by("date").values_list("booked_rooms", "held_rooms")
    )


def test_merge_room_requests_sums_duplicates_and_sorts():
    first, second = uuid.UUID(int=2), uuid.UUID(int=1)

    merged = merge_room_requests([RoomRequest(first, 1), RoomRequest(second, 2), RoomRequest(first, 3)])

    assert merged == [RoomRequest(second, 2), RoomRequest(first, 4)]


@pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
def test_room_request_rejects_bad_quantity(quantity):
    with pytest.raises(ValueError):
        RoomRequest(uuid.uuid4(), quantity)


@pytest.mark.django_db
def test_check_availability_true_when_every_night_has_room():
    room_id = uuid.uuid4()
    _seed(room_id, total=2, held=1)

    assert InventoryLedger().check_availability([RoomRequest(room_id, 1)], _stay()) is True
    assert InventoryLedger().check_availability([RoomRequest(room_id, 2)], _stay()) is False


@pytest.mark.django_db
def test_check_availability_missing_row_counts_as_unavailable():
    room_id = uuid.uuid4()
    _seed(room_id, nights=2)

    assert InventoryLedger().check_availability([RoomRequest(room_id, 1)], _stay(3)) is False


@pytest.mark.django_db
def test_check_availability_closed_row_is_unavailable():
    room_id = uuid.uuid4()
    _seed(room_id, status=InventoryDay.Status.CLOSED)

    assert InventoryLedger().check_availability([RoomRequest(room_id, 1)], _stay()) is False


@pytest.mark.django_db(transaction=True)
def test_mutators_require_transaction():
    room_id = uuid.uuid4()
    _seed(room_id)

    with pytest.raises(TransactionRequired):
        InventoryLedger().batch_increment_held([RoomRequest(room_id, 1)], _stay())


@pytest.mark.django_db
def test_batch_increment_held_updates_every_night():
    room_id = uuid.uuid4()
    _seed(room_id)

    with transaction.atomic():
        InventoryLedger().batch_increment_held([RoomRequest(room_id, 2)], _stay())

    assert _counters(room_id) == [(0, 2)] * 3


@pytest.mark.django_db
def test_batch_increment_held_is_all_or_nothing():
    ok_room, full_room = uuid.uuid4(), uuid.uuid4()
    _seed(ok_room)
    _seed(full_room, total=1)
    InventoryDay.objects.filter(room_id=full_room, date=CHECK_IN + timedelta(days=2)).update(held_rooms=1)

    with pytest.raises(InsufficientAvailability):
        with transaction.atomic():
            InventoryLedger().batch_increment_held(
                [RoomRequest(ok_room, 1), RoomRequest(full_room, 1)],
                _stay(),
            )

    assert _counters(ok_room) == [(0, 0)] * 3
    assert _counters(full_room) == [(0, 0), (0, 0), (0, 1)]


@pytest.mark.django_db
def test_batch_increment_held_rejects_missing_night():
    room_id = uuid.uuid4()
    _seed(room_id, nights=2)

    with pytest.raises(InsufficientAvailability):
        with transaction.atomic():
            InventoryLedger().batch_increment_held([RoomRequest(room_id, 1)], _stay(3))

    assert _counters(room_id) == [(0, 0)] * 2


@pytest.mark.django_db
def test_batch_decrement_held_clamps_at_zero():
    room_id = uuid.uuid4()
    _seed(room_id, held=1)

    with transaction.atomic():
        InventoryLedger().batch_decrement_held([RoomRequest(room_id, 2)], _stay())

    assert _counters(room_id) == [(0, 0)] * 3


@pytest.mark.django_db
def test_reserved_counters_round_trip():
    room_id = uuid.uuid4()
    _seed(room_id, total=3)
    ledger = InventoryLedger()

    with transaction.atomic():
        ledger.batch_increment_reserved([RoomRequest(room_id, 2)], _stay())
    assert _counters(room_id) == [(2, 0)] * 3

    with transaction.atomic():
        ledger.batch_decrement_reserved([RoomRequest(room_id, 2)], _stay())
    assert _counters(room_id) == [(0, 0)] * 3


@pytest.mark.django_db
def test_transfer_held_to_booked_moves_counters():
    room_id = uuid.uuid4()
    _seed(room_id, held=2)

    with transaction.atomic():
        InventoryLedger().transfer_held_to_booked([RoomRequest(room_id, 2)], _stay())

    assert _counters(room_id) == [(2, 0)] * 3


@pytest.mark.django_db
def test_transfer_held_to_booked_short_count_is_inconsistency():
    room_id = uuid.uuid4()
    _seed(room_id, held=1)

    with pytest.raises(LedgerInconsistency):
        with transaction.atomic():
            InventoryLedger().transfer_held_to_booked([RoomRequest(room_id, 2)], _stay())

    assert _counters(room_id) == [(0, 1)] * 3


@pytest.mark.django_db
def test_find_by_rooms_and_date_range_excludes_checkout_night():
    room_id = uuid.uuid4()
    _seed(room_id, nights=4)

    rows = InventoryLedger().find_by_rooms_and_date_range([room_id], _stay(3))

    assert [row.date for row in rows] == [CHECK_IN + timedelta(days=i) for i in range(3)]
    assert all(row.available_rooms == 2 for row in rows)
