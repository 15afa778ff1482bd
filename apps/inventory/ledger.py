"""
Inventory Ledger

This is the CRITICAL component for preventing over-reservation.
Every change of ``held_rooms`` / ``booked_rooms`` MUST go through it.

Strategy (Defense in Depth):
1. Pessimistic locking: SELECT FOR UPDATE on the touched rows, in a fixed
   (room, date) order so concurrent holds never deadlock each other
2. Conditional UPDATE: the capacity rule is part of the WHERE clause and the
   affected-row count is compared with the number of nights
3. Savepoint: a short count raises inside ``transaction.atomic`` so no
   partial increment survives
4. Database CHECK constraints as the final safety net
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List
from uuid import UUID

from django.db import connections, transaction  # type: ignore
from django.db.models import F, Value  # type: ignore
from django.db.models.functions import Greatest  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.base import ValueObject
from shared.domain.exceptions import TransactionRequired
from shared.domain.value_objects import DateRange

from .exceptions import InsufficientAvailability, LedgerInconsistency
from .models import InventoryDay

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomRequest(ValueObject):
    """Rooms of one type requested for every night of a stay"""
    room_id: UUID
    quantity: int = 1

    def __post_init__(self):
        if not isinstance(self.room_id, UUID):
            object.__setattr__(self, 'room_id', UUID(str(self.room_id)))
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Quantity must be an integer, got {self.quantity!r}")
        if self.quantity < 1:
            raise ValueError("Quantity must be at least 1")


def merge_room_requests(rooms: Iterable[RoomRequest]) -> List[RoomRequest]:
    """
    Sum quantities of repeated room ids

    The result is sorted by room id: that order is also the lock order.
    """
    totals: "OrderedDict[UUID, int]" = OrderedDict()
    for room in rooms:
        totals[room.room_id] = totals.get(room.room_id, 0) + room.quantity
    return [RoomRequest(room_id, quantity) for room_id, quantity in sorted(totals.items(), key=lambda i: str(i[0]))]


class InventoryLedger:
    """
    Authoritative availability counters and their only legal mutators

    Bound to an explicit database alias. Mutators must be called inside a
    unit of work opened on the same alias; they raise ``TransactionRequired``
    otherwise.

    Usage:
        ledger = InventoryLedger()
        with DjangoUnitOfWork(using=ledger.using):
            ledger.batch_increment_held(rooms, dates)
    """

    def __init__(self, using: str = 'default'):
        self.using = using

    # ===== Reads =====

    def find_by_rooms_and_date_range(self, room_ids: Iterable[UUID], dates: DateRange) -> List[InventoryDay]:
        """Rows for the given rooms over [check_in, check_out)"""
        return list(
            self._rows()
            .filter(
                room_id__in=list(room_ids),
                date__gte=dates.start_date,
                date__lt=dates.end_date,
            )
            .order_by('room_id', 'date')
        )

    def check_availability(self, rooms: Iterable[RoomRequest], dates: DateRange) -> bool:
        """
        Advisory availability check

        True if every room has an open row with enough free rooms for every
        night. A missing row counts as unavailable. Nothing is reserved: the
        increment inside the unit of work is what actually decides.
        """
        requests = merge_room_requests(rooms)
        if not requests:
            return False

        rows = self.find_by_rooms_and_date_range([r.room_id for r in requests], dates)
        by_key = {(row.room_id, row.date): row for row in rows}

        for request in requests:
            for day in dates.days():
                row = by_key.get((request.room_id, day))
                if row is None or not row.can_hold(request.quantity):
                    logger.debug(
                        f"Room {request.room_id} unavailable on {day} "
                        f"(requested {request.quantity}, row={row})"
                    )
                    return False
        return True

    # ===== Mutators =====

    def batch_increment_held(self, rooms: Iterable[RoomRequest], dates: DateRange) -> None:
        """
        Hold rooms for every night, all-or-nothing

        Raises:
            InsufficientAvailability: a row is missing, not open, or would
                exceed capacity. No row keeps an increment in that case.
        """
        self._increment('held_rooms', rooms, dates)

    def batch_decrement_held(self, rooms: Iterable[RoomRequest], dates: DateRange) -> None:
        """Release held rooms; clamps at zero and never raises for empty rows"""
        self._decrement('held_rooms', rooms, dates)

    def batch_increment_reserved(self, rooms: Iterable[RoomRequest], dates: DateRange) -> None:
        """Book rooms directly (no hold), all-or-nothing"""
        self._increment('booked_rooms', rooms, dates)

    def batch_decrement_reserved(self, rooms: Iterable[RoomRequest], dates: DateRange) -> None:
        """Release booked rooms; clamps at zero"""
        self._decrement('booked_rooms', rooms, dates)

    def transfer_held_to_booked(self, rooms: Iterable[RoomRequest], dates: DateRange) -> None:
        """
        Turn held rooms into booked rooms in one UPDATE per room

        ``booked + held`` is unchanged, so capacity cannot be exceeded.

        Raises:
            LedgerInconsistency: some night holds fewer rooms than requested.
        """
        self._require_transaction('transfer_held_to_booked')
        requests = merge_room_requests(rooms)
        nights = len(dates)

        with transaction.atomic(using=self.using):
            self._lock(requests, dates)
            for request in requests:
                updated = (
                    self._range(request.room_id, dates)
                    .filter(held_rooms__gte=request.quantity)
                    .update(
                        held_rooms=F('held_rooms') - request.quantity,
                        booked_rooms=F('booked_rooms') + request.quantity,
                        updated_at=timezone.now(),
                    )
                )
                if updated != nights:
                    logger.error(
                        f"Cannot transfer {request.quantity} held->booked for room {request.room_id} "
                        f"{dates}: {updated}/{nights} nights matched"
                    )
                    raise LedgerInconsistency(
                        room_id=request.room_id,
                        dates=dates,
                        requested=request.quantity,
                    )

        logger.info(f"Transferred held->booked for {len(requests)} room type(s), {dates}")

    # ===== Internals =====

    def _rows(self):
        return InventoryDay.objects.using(self.using)

    def _range(self, room_id: UUID, dates: DateRange):
        return self._rows().filter(room_id=room_id, date__gte=dates.start_date, date__lt=dates.end_date)

    def _require_transaction(self, operation: str) -> None:
        if not transaction.get_connection(self.using).in_atomic_block:
            raise TransactionRequired(f"{operation} must run inside a unit of work on '{self.using}'")

    def _lock(self, requests: List[RoomRequest], dates: DateRange) -> None:
        """SELECT ... FOR UPDATE in (room, date) order; no-op where unsupported"""
        queryset = (
            self._rows()
            .filter(
                room_id__in=[r.room_id for r in requests],
                date__gte=dates.start_date,
                date__lt=dates.end_date,
            )
            .order_by('room_id', 'date')
        )
        if connections[self.using].features.has_select_for_update:
            queryset = queryset.select_for_update()
        list(queryset.values_list('pk', flat=True))

    def _increment(self, field: str, rooms: Iterable[RoomRequest], dates: DateRange) -> None:
        self._require_transaction(f'increment {field}')
        requests = merge_room_requests(rooms)
        nights = len(dates)

        with transaction.atomic(using=self.using):
            self._lock(requests, dates)
            for request in requests:
                updated = (
                    self._range(request.room_id, dates)
                    .filter(
                        status=InventoryDay.Status.OPEN,
                        total_rooms__gte=F('booked_rooms') + F('held_rooms') + request.quantity,
                    )
                    .update(**{field: F(field) + request.quantity, 'updated_at': timezone.now()})
                )
                if updated != nights:
                    logger.info(
                        f"Insufficient availability for room {request.room_id} {dates}: "
                        f"{updated}/{nights} nights can take {request.quantity} more"
                    )
                    raise InsufficientAvailability(
                        room_id=request.room_id,
                        dates=dates,
                        requested=request.quantity,
                    )

        logger.info(f"Incremented {field} for {len(requests)} room type(s), {dates}")

    def _decrement(self, field: str, rooms: Iterable[RoomRequest], dates: DateRange) -> None:
        self._require_transaction(f'decrement {field}')
        requests = merge_room_requests(rooms)

        with transaction.atomic(using=self.using):
            self._lock(requests, dates)
            for request in requests:
                queryset = self._range(request.room_id, dates)
                clamped = queryset.filter(**{f'{field}__lt': request.quantity}).count()
                if clamped:
                    logger.warning(
                        f"Clamping {field} at 0 for room {request.room_id} on {clamped} night(s) of {dates}"
                    )
                queryset.update(
                    **{
                        field: Greatest(F(field) - request.quantity, Value(0)),
                        'updated_at': timezone.now(),
                    }
                )

        logger.info(f"Decremented {field} for {len(requests)} room type(s), {dates}")
