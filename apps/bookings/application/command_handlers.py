"""
Booking Command Handlers

Turns a successful payment into confirmed bookings.

Commands:
- PaymentSucceeded: A verified, deduplicated payment for a hold
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
import logging

from apps.bookings.exceptions import HoldNotConvertible, PaymentMismatch
from apps.bookings.models import Booking
from apps.bookings.repository import BookingRepository
from apps.holds.domain.events import HoldConverted
from apps.holds.exceptions import HoldNotFound
from apps.holds.models import Hold
from apps.holds.repository import HoldRepository
from apps.inventory.ledger import InventoryLedger
from shared.application.uow import DjangoUnitOfWork
from shared.domain.value_objects import Money

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class PaymentSucceeded:
    """
    Command to convert a paid hold

    ``amount`` is in major currency units (e.g. dollars, not cents).
    """
    event_id: str
    event_type: str
    hold_id: UUID
    amount: Decimal
    currency: str
    payment_intent_id: str
    charge_id: str = ''


@dataclass
class ConversionResult:
    already_processed: bool
    hold_id: Optional[UUID] = None
    booking_code: Optional[str] = None
    bookings: List[Booking] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'received': True,
            'already_processed': self.already_processed,
            'booking_code': self.booking_code,
        }


# ===== Command Handlers =====

class ConvertHoldHandler:
    """
    Handler for PaymentSucceeded command

    Strategy:
    1. Idempotency gate on the provider event id
    2. Unit of work: lock the hold row (SELECT FOR UPDATE)
    3. Validate status and amount against the hold
    4. Move held -> booked in the ledger, mark the hold converted
    5. Write one booking per room line and record the event id
    6. Commit, then publish HoldConverted

    Any failure rolls everything back and leaves the event unrecorded, so
    the provider's retry can succeed later.
    """

    def __init__(
        self,
        hold_repo: HoldRepository,
        booking_repo: BookingRepository,
        ledger: InventoryLedger,
    ):
        if not (hold_repo.using == booking_repo.using == ledger.using):
            raise ValueError("Repositories and ledger must share a database alias")
        self.hold_repo = hold_repo
        self.booking_repo = booking_repo
        self.ledger = ledger

    def handle(self, command: PaymentSucceeded) -> ConversionResult:
        if self.booking_repo.is_event_processed(command.event_id):
            logger.info(f"Payment event {command.event_id} already processed, skipping")
            return self._already_processed(command)

        with DjangoUnitOfWork(using=self.hold_repo.using) as uow:
            hold = self.hold_repo.get_for_update(command.hold_id)
            if hold is None:
                raise HoldNotFound(hold_id=command.hold_id)

            # A concurrent delivery of the same event may have committed while we waited for the lock.
            if self.booking_repo.is_event_processed(command.event_id):
                return self._already_processed(command)

            if hold.status == Hold.Status.CONVERTED:
                return self._converted_replay(hold, command)

            if hold.status != Hold.Status.ACTIVE:
                logger.error(
                    f"Payment {command.payment_intent_id} arrived for hold {hold.id} in status {hold.status}; "
                    f"refund required"
                )
                raise HoldNotConvertible(hold_id=hold.id, status=hold.status)

            self._check_amount(hold, command)

            self.ledger.transfer_held_to_booked(hold.room_requests(), hold.dates)
            if not self.hold_repo.transition(hold.id, Hold.Status.CONVERTED):
                raise HoldNotConvertible(hold_id=hold.id)

            booking_code = Booking.generate_booking_code()
            bookings = self.booking_repo.create_for_hold(
                hold,
                booking_code=booking_code,
                payment_intent_id=command.payment_intent_id,
                charge_id=command.charge_id,
            )
            self.booking_repo.record_event(command.event_id, command.event_type, hold)

            uow.record(HoldConverted(
                hold_id=hold.id,
                booking_code=booking_code,
                payment_intent_id=command.payment_intent_id,
            ))

        logger.info(
            f"Hold {hold.id} converted to booking {booking_code} "
            f"({len(bookings)} line(s), payment {command.payment_intent_id})"
        )
        return ConversionResult(
            already_processed=False,
            hold_id=hold.id,
            booking_code=booking_code,
            bookings=bookings,
        )

    def _already_processed(self, command: PaymentSucceeded) -> ConversionResult:
        return ConversionResult(
            already_processed=True,
            hold_id=command.hold_id,
            booking_code=self.booking_repo.booking_code_for_event(command.event_id),
        )

    def _converted_replay(self, hold: Hold, command: PaymentSucceeded) -> ConversionResult:
        """Same payment seen under a new event id: record it, change nothing else"""
        bookings = self.booking_repo.find_by_hold(hold.id)
        if not bookings or any(b.payment_intent_id != command.payment_intent_id for b in bookings):
            logger.error(
                f"Hold {hold.id} already converted by another payment; "
                f"payment {command.payment_intent_id} requires a refund"
            )
            raise HoldNotConvertible(hold_id=hold.id, status=hold.status)

        self.booking_repo.record_event(command.event_id, command.event_type, hold)
        logger.info(f"Hold {hold.id} already converted by payment {command.payment_intent_id}")
        return ConversionResult(
            already_processed=True,
            hold_id=hold.id,
            booking_code=bookings[0].booking_code,
            bookings=bookings,
        )

    @staticmethod
    def _check_amount(hold: Hold, command: PaymentSucceeded) -> None:
        expected = hold.price.quantize()
        try:
            paid = Money(command.amount, command.currency).quantize()
        except (ValueError, ArithmeticError) as exc:
            raise PaymentMismatch(str(exc)) from exc
        if paid != expected:
            logger.error(f"Payment {command.payment_intent_id} for hold {hold.id}: got {paid}, expected {expected}")
            raise PaymentMismatch(expected=expected, received=paid)


def build_converter(using: str = 'default') -> ConvertHoldHandler:
    return ConvertHoldHandler(
        HoldRepository(using=using),
        BookingRepository(using=using),
        InventoryLedger(using=using),
    )
