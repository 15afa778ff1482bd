"""Tests for hold creation, release, queries and expiry."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.utils import timezone

from apps.holds.application.command_handlers import (
    CreateHoldCommand,
    CreateHoldHandler,
    HoldQueries,
    HoldSweeper,
    ReleaseHoldCommand,
    ReleaseHoldHandler,
)
from apps.holds.exceptions import (
    CurrencyMismatch,
    HoldNotActive,
    HoldNotFound,
    InvalidCurrency,
    InvalidDateRange,
    InvalidReleaseReason,
    InvalidRooms,
    RoomsNotAvailable,
)
from apps.holds.models import Hold, HoldRoom
from apps.holds.repository import HoldRepository
from apps.inventory.ledger import InventoryLedger
from apps.inventory.models import InventoryDay
from shared.domain.exceptions import Forbidden, TransactionFailed

NOW = datetime(2030, 5, 1, 12, 0, tzinfo=dt_timezone.utc)
CHECK_IN = date(2030, 6, 1)
CHECK_OUT = date(2030, 6, 4)
HOTEL_ID = uuid.UUID("7d4b1b6e-58a4-4a3c-9f0e-3a7f2f4b9c11")


def _user(username="buyer"):
    return get_user_model().objects.create_user(username=username, password="pass")


def _seed(room_id, total=2, price="100.00", nights=3, currency="USD"):
    for offset in range(nights):
        InventoryDay.objects.create(
            room_id=room_id,
            date=CHECK_IN + timedelta(days=offset),
            total_rooms=total,
            price_per_night=Decimal(price),
            currency=currency,
        )


def _held(room_id):
    return list(InventoryDay.objects.filter(room_id=room_id).order_by("date").values_list("held_rooms", flat=True))


def _handlers(clock=lambda: NOW):
    repo, ledger = HoldRepository(), InventoryLedger()
    return (
        CreateHoldHandler(repo, ledger, clock=clock),
        ReleaseHoldHandler(repo, ledger, clock=clock),
        HoldQueries(repo),
        HoldSweeper(repo, ledger),
    )


def _command(user, rooms, check_in=CHECK_IN, check_out=CHECK_OUT, currency=None):
    return CreateHoldCommand(
        user_id=user.id,
        hotel_id=HOTEL_ID,
        check_in=check_in,
        check_out=check_out,
        rooms=rooms,
        number_of_guests=2,
        currency=currency,
    )


# ===== Create =====

@pytest.mark.django_db
def test_create_hold_reserves_rooms_and_prices_stay():
    user = _user()
    room_id = uuid.uuid4()
    _seed(room_id, price="120.50")
    create, *_ = _handlers()

    hold = create.handle(_command(user, [{"room_id": room_id, "quantity": 2}]))

    assert hold.status == Hold.Status.ACTIVE
    assert hold.quantity == 2
    assert hold.total_price == Decimal("723.00")
    assert hold.currency == "USD"
    assert hold.expires_at == NOW + timedelta(minutes=15)
    assert _held(room_id) == [2, 2, 2]
    assert list(HoldRoom.objects.filter(hold=hold).values_list("room_id", "quantity")) == [(room_id, 2)]


@pytest.mark.django_db
def test_create_hold_merges_repeated_rooms():
    user = _user()
    room_id = uuid.uuid4()
    _seed(room_id)
    create, *_ = _handlers()

    hold = create.handle(_command(user, [{"room_id": room_id}, {"room_id": str(room_id), "quantity": 1}]))

    assert HoldRoom.objects.get(hold=hold).quantity == 2
    assert _held(room_id) == [2, 2, 2]


@pytest.mark.django_db
@pytest.mark.parametrize("rooms", [[], [{"room_id": uuid.UUID(int=1), "quantity": 0}], [{"quantity": 1}]])
def test_create_hold_rejects_invalid_rooms(rooms):
    create, *_ = _handlers()

    with pytest.raises(InvalidRooms):
        create.handle(_command(_user(), rooms))


@pytest.mark.django_db
def test_create_hold_rejects_empty_stay():
    create, *_ = _handlers()

    with pytest.raises(InvalidDateRange):
        create.handle(_command(_user(), [{"room_id": uuid.uuid4()}], check_out=CHECK_IN))


@pytest.mark.django_db
@pytest.mark.parametrize("currency", ["US1", "DOLLARS", ""])
def test_create_hold_rejects_malformed_currency(currency):
    room_id = uuid.uuid4()
    _seed(room_id)
    create, *_ = _handlers()

    with pytest.raises(InvalidCurrency):
        create.handle(_command(_user(), [{"room_id": room_id}], currency=currency))

    assert _held(room_id) == [0, 0, 0]


@pytest.mark.django_db
def test_create_hold_is_priced_in_the_rooms_currency():
    room_id = uuid.uuid4()
    _seed(room_id, currency="EUR")
    create, *_ = _handlers()

    hold = create.handle(_command(_user(), [{"room_id": room_id}], currency="eur"))

    assert hold.currency == "EUR"
    assert hold.total_price == Decimal("300.00")


@pytest.mark.django_db
def test_create_hold_rejects_currency_other_than_the_rooms():
    room_id = uuid.uuid4()
    _seed(room_id, currency="USD")
    create, *_ = _handlers()

    with pytest.raises(CurrencyMismatch):
        create.handle(_command(_user(), [{"room_id": room_id}], currency="JPY"))

    assert _held(room_id) == [0, 0, 0]
    assert not Hold.objects.exists()


@pytest.mark.django_db
def test_create_hold_rejects_rooms_priced_in_mixed_currencies():
    room_a, room_b = uuid.uuid4(), uuid.uuid4()
    _seed(room_a, currency="USD")
    _seed(room_b, currency="EUR")
    create, *_ = _handlers()

    with pytest.raises(CurrencyMismatch):
        create.handle(_command(_user(), [{"room_id": room_a}, {"room_id": room_b}]))

    assert _held(room_a) == [0, 0, 0]
    assert _held(room_b) == [0, 0, 0]


@pytest.mark.django_db
def test_third_buyer_is_rejected_on_overlapping_night():
    room_a, room_b = uuid.uuid4(), uuid.uuid4()
    _seed(room_a)
    _seed(room_b)
    create, *_ = _handlers()

    create.handle(_command(_user("first"), [{"room_id": room_a}, {"room_id": room_b}]))
    create.handle(_command(_user("second"), [{"room_id": room_a}, {"room_id": room_b}]))

    with pytest.raises(RoomsNotAvailable):
        create.handle(
            _command(_user("third"), [{"room_id": room_a}], check_in=CHECK_OUT - timedelta(days=1), check_out=CHECK_OUT)
        )

    assert _held(room_a) == [2, 2, 2]
    assert _held(room_b) == [2, 2, 2]
    assert Hold.objects.count() == 2


@pytest.mark.django_db
def test_contenders_for_last_room_only_capacity_succeeds():
    room_id = uuid.uuid4()
    _seed(room_id, total=1, nights=1)
    create, *_ = _handlers()
    outcomes = []

    for index in range(5):
        try:
            create.handle(
                _command(_user(f"buyer{index}"), [{"room_id": room_id}], check_out=CHECK_IN + timedelta(days=1))
            )
            outcomes.append("ok")
        except RoomsNotAvailable:
            outcomes.append("rejected")

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 4
    assert _held(room_id) == [1]


@pytest.mark.django_db
def test_increment_is_authoritative_over_precheck(monkeypatch):
    room_id = uuid.uuid4()
    _seed(room_id, total=1)
    InventoryDay.objects.filter(room_id=room_id, date=CHECK_IN).update(held_rooms=1)
    create, *_ = _handlers()
    monkeypatch.setattr(create.ledger, "check_availability", lambda rooms, dates: True)

    with pytest.raises(RoomsNotAvailable):
        create.handle(_command(_user(), [{"room_id": room_id}]))

    assert _held(room_id) == [1, 0, 0]
    assert not Hold.objects.exists()


@pytest.mark.django_db
def test_database_error_rolls_back_and_is_retryable(monkeypatch):
    room_id = uuid.uuid4()
    _seed(room_id)
    create, *_ = _handlers()

    def lock_timeout(**kwargs):
        raise OperationalError("canceling statement due to lock timeout")

    monkeypatch.setattr(create.hold_repo, "create", lock_timeout)

    with pytest.raises(TransactionFailed) as excinfo:
        create.handle(_command(_user(), [{"room_id": room_id}]))

    assert excinfo.value.retryable is True
    assert _held(room_id) == [0, 0, 0]


@pytest.mark.django_db
def test_hold_created_event_schedules_expiry(monkeypatch, django_capture_on_commit_callbacks):
    from apps.holds import tasks

    scheduled = []
    monkeypatch.setattr(
        tasks.expire_hold,
        "apply_async",
        lambda args=None, countdown=None, **kwargs: scheduled.append((args, countdown)),
    )
    room_id = uuid.uuid4()
    _seed(room_id)
    create, *_ = _handlers(clock=lambda: datetime.now(dt_timezone.utc))

    with django_capture_on_commit_callbacks(execute=True):
        hold = create.handle(_command(_user(), [{"room_id": room_id}]))

    assert len(scheduled) == 1
    args, countdown = scheduled[0]
    assert args == [str(hold.id)]
    assert 14 * 60 < countdown <= 15 * 60


# ===== Release =====

@pytest.mark.django_db
def test_release_restores_counters_and_is_idempotent():
    user = _user()
    room_id = uuid.uuid4()
    _seed(room_id)
    create, release, *_ = _handlers()
    hold = create.handle(_command(user, [{"room_id": room_id, "quantity": 2}]))

    first = release.handle(ReleaseHoldCommand(hold_id=hold.id, user_id=user.id))
    second = release.handle(ReleaseHoldCommand(hold_id=hold.id, user_id=user.id))

    assert first.changed is True
    assert second.changed is False
    assert first.to_dict() == second.to_dict() == {"hold_id": str(hold.id), "status": "released"}
    assert _held(room_id) == [0, 0, 0]
    hold.refresh_from_db()
    assert hold.status == Hold.Status.RELEASED
    assert hold.released_at == NOW


@pytest.mark.django_db
def test_release_checks_owner():
    room_id = uuid.uuid4()
    _seed(room_id)
    create, release, *_ = _handlers()
    hold = create.handle(_command(_user(), [{"room_id": room_id}]))

    with pytest.raises(Forbidden):
        release.handle(ReleaseHoldCommand(hold_id=hold.id, user_id=_user("intruder").id))

    assert _held(room_id) == [1, 1, 1]


@pytest.mark.django_db
def test_release_of_missing_hold():
    _, release, *_ = _handlers()

    with pytest.raises(HoldNotFound):
        release.handle(ReleaseHoldCommand(hold_id=uuid.uuid4(), user_id=1))


@pytest.mark.django_db
def test_release_rejects_unknown_reason():
    _, release, *_ = _handlers()

    with pytest.raises(InvalidReleaseReason):
        release.handle(ReleaseHoldCommand(hold_id=uuid.uuid4(), user_id=1, reason="converted"))


@pytest.mark.django_db
def test_release_of_expired_hold_is_not_active():
    user = _user()
    room_id = uuid.uuid4()
    _seed(room_id)
    create, release, _, sweeper = _handlers()
    hold = create.handle(_command(user, [{"room_id": room_id}]))
    sweeper.sweep(now=NOW + timedelta(minutes=16))

    with pytest.raises(HoldNotActive):
        release.handle(ReleaseHoldCommand(hold_id=hold.id, user_id=user.id))

    assert _held(room_id) == [0, 0, 0]


# ===== Queries =====

@pytest.mark.django_db
def test_get_hold_reports_expiry_without_transition():
    user = _user()
    room_id = uuid.uuid4()
    _seed(room_id)
    create, _, queries, _ = _handlers(clock=lambda: datetime.now(dt_timezone.utc) - timedelta(minutes=30))
    hold = create.handle(_command(user, [{"room_id": room_id}]))

    fetched = queries.get_hold(hold.id, user.id)

    assert fetched.is_expired() is True
    assert fetched.status == Hold.Status.ACTIVE
    with pytest.raises(Forbidden):
        queries.get_hold(hold.id, _user("other").id)
    with pytest.raises(HoldNotFound):
        queries.get_hold("not-a-uuid", user.id)


@pytest.mark.django_db
def test_active_holds_are_newest_first():
    user = _user()
    room_id = uuid.uuid4()
    _seed(room_id, total=5)
    repo, ledger = HoldRepository(), InventoryLedger()
    release = ReleaseHoldHandler(repo, ledger)
    holds = [
        CreateHoldHandler(repo, ledger, clock=lambda m=minute: NOW + timedelta(minutes=m)).handle(
            _command(user, [{"room_id": room_id}])
        )
        for minute in range(3)
    ]
    release.handle(ReleaseHoldCommand(hold_id=holds[1].id, user_id=user.id))

    active = HoldQueries(repo).get_active_holds_by_user(user.id)

    assert [hold.id for hold in active] == [holds[2].id, holds[0].id]
    assert HoldQueries(repo).get_active_holds_by_user(_user("nobody").id) == []


# ===== Sweeper =====

@pytest.mark.django_db
def test_sweep_expires_due_holds_and_frees_rooms():
    user = _user()
    room_id = uuid.uuid4()
    _seed(room_id)
    create, _, queries, sweeper = _handlers()
    hold = create.handle(_command(user, [{"room_id": room_id, "quantity": 2}]))

    assert sweeper.sweep(now=NOW + timedelta(minutes=14))["processed"] == 0

    stats = sweeper.sweep(now=NOW + timedelta(minutes=16))

    assert stats == {"processed": 1, "expired": 1, "skipped": 0, "failed": 0}
    assert _held(room_id) == [0, 0, 0]
    assert queries.get_hold(hold.id, user.id).status == Hold.Status.EXPIRED
    assert sweeper.sweep(now=NOW + timedelta(minutes=17))["processed"] == 0


@pytest.mark.django_db
def test_sweep_continues_after_a_failed_hold(monkeypatch):
    room_id = uuid.uuid4()
    _seed(room_id)
    create, _, _, sweeper = _handlers()
    create.handle(_command(_user("a"), [{"room_id": room_id}]))
    create.handle(_command(_user("b"), [{"room_id": room_id}]))

    ledger = sweeper.release_handler.ledger
    original = ledger.batch_decrement_held
    calls = []

    def flaky(rooms, dates):
        calls.append(rooms)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return original(rooms, dates)

    monkeypatch.setattr(ledger, "batch_decrement_held", flaky)

    stats = sweeper.sweep(now=NOW + timedelta(minutes=16))

    assert stats == {"processed": 2, "expired": 1, "skipped": 0, "failed": 1}
    assert _held(room_id) == [1, 1, 1]
    assert Hold.objects.filter(status=Hold.Status.ACTIVE).count() == 1


@pytest.mark.django_db
def test_expire_one_skips_holds_not_yet_due():
    room_id = uuid.uuid4()
    _seed(room_id)
    create, _, _, sweeper = _handlers()
    hold = create.handle(_command(_user(), [{"room_id": room_id}]))

    assert sweeper.expire_one(hold.id, now=NOW + timedelta(minutes=5)) == "skipped"
    assert sweeper.expire_one(hold.id, now=NOW + timedelta(minutes=20)) == "expired"
    assert sweeper.expire_one(hold.id, now=NOW + timedelta(minutes=21)) == "skipped"
    assert _held(room_id) == [0, 0, 0]


@pytest.mark.django_db
def test_sweep_records_sweep_time_without_touching_handler_clock():
    user = _user()
    room_id = uuid.uuid4()
    _seed(room_id)
    create, _, _, sweeper = _handlers()
    hold = create.handle(_command(user, [{"room_id": room_id}]))
    swept_at = NOW + timedelta(minutes=16)

    sweeper.sweep(now=swept_at)

    hold.refresh_from_db()
    assert hold.status == Hold.Status.EXPIRED
    assert hold.released_at == swept_at
    assert sweeper.release_handler.clock is timezone.now
