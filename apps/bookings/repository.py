"""Persistence for bookings and processed payment events."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from django.db import transaction  # type: ignore

from apps.holds.models import Hold
from shared.domain.exceptions import TransactionRequired

from .models import Booking, ProcessedPaymentEvent


class BookingRepository:
    """Booking store bound to an explicit database alias"""

    def __init__(self, using: str = 'default'):
        self.using = using

    def _require_transaction(self, operation: str) -> None:
        if not transaction.get_connection(self.using).in_atomic_block:
            raise TransactionRequired(f"{operation} must run inside a unit of work on '{self.using}'")

    # ===== Payment events =====

    def is_event_processed(self, event_id: str) -> bool:
        return ProcessedPaymentEvent.objects.using(self.using).filter(event_id=event_id).exists()

    def record_event(self, event_id: str, event_type: str, hold: Optional[Hold]) -> ProcessedPaymentEvent:
        self._require_transaction('record payment event')
        event = ProcessedPaymentEvent(event_id=event_id, event_type=event_type, hold=hold)
        event.save(using=self.using, force_insert=True)
        return event

    def booking_code_for_event(self, event_id: str) -> Optional[str]:
        """Booking code produced for an already processed event, if any"""
        hold_id = (
            ProcessedPaymentEvent.objects.using(self.using)
            .filter(event_id=event_id)
            .values_list('hold_id', flat=True)
            .first()
        )
        if hold_id is None:
            return None
        return (
            Booking.objects.using(self.using)
            .filter(hold_id=hold_id)
            .values_list('booking_code', flat=True)
            .first()
        )

    # ===== Bookings =====

    def find_by_hold(self, hold_id: UUID) -> List[Booking]:
        return list(Booking.objects.using(self.using).filter(hold_id=hold_id).order_by('room_id'))

    def create_for_hold(
        self,
        hold: Hold,
        *,
        booking_code: str,
        payment_intent_id: str,
        charge_id: str = '',
    ) -> List[Booking]:
        """One confirmed booking per hold room line, sharing ``booking_code``"""
        self._require_transaction('create bookings')
        bookings = [
            Booking(
                booking_code=booking_code,
                hold=hold,
                user_id=hold.user_id,
                hotel_id=hold.hotel_id,
                room_id=line.room_id,
                check_in_date=hold.check_in_date,
                check_out_date=hold.check_out_date,
                number_of_guests=hold.number_of_guests,
                quantity=line.quantity,
                total_price=line.total_price,
                currency=hold.currency,
                status=Booking.Status.CONFIRMED,
                payment_intent_id=payment_intent_id,
                charge_id=charge_id or '',
            )
            for line in hold.rooms.all()
        ]
        return Booking.objects.using(self.using).bulk_create(bookings)
