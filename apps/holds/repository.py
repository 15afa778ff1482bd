"""
Hold Repository

Persistence for the Hold header and its HoldRoom lines. Like the inventory
ledger it is bound to one database alias, and its writes refuse to run
outside an atomic block on that alias.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from django.db import connections, transaction  # type: ignore

from apps.inventory.ledger import RoomRequest
from shared.domain.exceptions import TransactionRequired
from shared.domain.value_objects import DateRange, Money

from .models import Hold, HoldRoom

logger = logging.getLogger(__name__)


def _as_uuid(value) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


class HoldRepository:
    """Hold store bound to an explicit database alias"""

    def __init__(self, using: str = 'default'):
        self.using = using

    def _holds(self):
        return Hold.objects.using(self.using)

    def _require_transaction(self, operation: str) -> None:
        if not transaction.get_connection(self.using).in_atomic_block:
            raise TransactionRequired(f"{operation} must run inside a unit of work on '{self.using}'")

    # ===== Writes =====

    def create(
        self,
        *,
        user_id: int,
        hotel_id: UUID,
        dates: DateRange,
        number_of_guests: int,
        rooms: Iterable[RoomRequest],
        price: Money,
        expires_at: datetime,
        line_prices: Optional[Dict[UUID, Money]] = None,
        created_at: Optional[datetime] = None,
    ) -> Hold:
        """Insert the header and one line per (already merged) room request"""
        self._require_transaction('create hold')
        rooms = list(rooms)

        hold = Hold(
            user_id=user_id,
            hotel_id=hotel_id,
            check_in_date=dates.start_date,
            check_out_date=dates.end_date,
            number_of_guests=number_of_guests,
            quantity=sum(room.quantity for room in rooms),
            total_price=price.amount,
            currency=price.currency,
            status=Hold.Status.ACTIVE,
            expires_at=expires_at,
        )
        if created_at is not None:
            hold.created_at = created_at
        hold.save(using=self.using, force_insert=True)
        line_prices = line_prices or {}
        HoldRoom.objects.using(self.using).bulk_create(
            [
                HoldRoom(
                    hold=hold,
                    room_id=room.room_id,
                    quantity=room.quantity,
                    total_price=line_prices[room.room_id].amount if room.room_id in line_prices else 0,
                )
                for room in rooms
            ]
        )
        return hold

    def transition(self, hold_id: UUID, to_status: str, *, released_at: Optional[datetime] = None) -> bool:
        """
        Move an active hold to ``to_status``

        Conditional on ``status = active``: returns False when another
        writer got there first and leaves the row untouched.
        """
        self._require_transaction('transition hold')
        updates = {'status': to_status}
        if released_at is not None:
            updates['released_at'] = released_at
        updated = self._holds().filter(pk=hold_id, status=Hold.Status.ACTIVE).update(**updates)
        if not updated:
            logger.info(f"Hold {hold_id} was not active, {to_status} transition skipped")
        return updated == 1

    # ===== Reads =====

    def get(self, hold_id) -> Optional[Hold]:
        hold_id = _as_uuid(hold_id)
        if hold_id is None:
            return None
        return self._holds().prefetch_related('rooms').filter(pk=hold_id).first()

    def get_for_update(self, hold_id) -> Optional[Hold]:
        """Load and row-lock a hold; must run inside the unit of work"""
        self._require_transaction('lock hold')
        hold_id = _as_uuid(hold_id)
        if hold_id is None:
            return None
        queryset = self._holds().filter(pk=hold_id)
        if connections[self.using].features.has_select_for_update:
            queryset = queryset.select_for_update()
        return queryset.prefetch_related('rooms').first()

    def find_active_by_user(self, user_id: int) -> List[Hold]:
        return list(
            self._holds()
            .filter(user_id=user_id, status=Hold.Status.ACTIVE)
            .prefetch_related('rooms')
            .order_by('-created_at')
        )

    def find_expired_active(self, now: datetime, limit: Optional[int] = None) -> List[Hold]:
        """Active holds whose TTL passed before ``now``, oldest first"""
        queryset = (
            self._holds()
            .filter(status=Hold.Status.ACTIVE, expires_at__lt=now)
            .prefetch_related('rooms')
            .order_by('expires_at')
        )
        if limit:
            queryset = queryset[:limit]
        return list(queryset)
