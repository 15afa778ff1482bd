"""
Hold Command Handlers

These are the use cases for the hold domain.
Each mutation runs in one unit of work covering the ledger counters and
the hold rows; events are published after commit.

Commands:
- CreateHoldCommand: Hold rooms for a buyer for the TTL
- ReleaseHoldCommand: Give the rooms back (buyer release or expiry)

Queries:
- HoldQueries: Ownership-checked reads

Background:
- HoldSweeper: Expire active holds whose TTL passed
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID
import logging

from django.conf import settings
from django.utils import timezone

from apps.holds.domain.events import HoldCreated, HoldExpired, HoldReleased
from apps.holds.exceptions import (
    HoldNotActive,
    HoldNotFound,
    InvalidCurrency,
    InvalidDateRange,
    InvalidReleaseReason,
    InvalidRooms,
    RoomsNotAvailable,
)
from apps.holds.models import Hold
from apps.holds.repository import HoldRepository
from apps.holds.services import price_room_lines, pricing_currency
from apps.inventory.exceptions import InsufficientAvailability
from apps.inventory.ledger import InventoryLedger, RoomRequest, merge_room_requests
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import Forbidden
from shared.domain.value_objects import DateRange, Money

logger = logging.getLogger(__name__)


def hold_ttl() -> timedelta:
    return timedelta(minutes=getattr(settings, 'HOLD_TTL_MINUTES', 15))


def default_currency() -> str:
    return getattr(settings, 'HOLD_DEFAULT_CURRENCY', 'USD')


# ===== Commands =====

@dataclass
class CreateHoldCommand:
    """
    Command to hold rooms for a buyer

    ``rooms`` holds ``RoomRequest`` objects or ``{"room_id", "quantity"}``
    mappings; repeated room ids are merged.
    """
    user_id: int
    hotel_id: UUID
    check_in: date
    check_out: date
    rooms: list = field(default_factory=list)
    number_of_guests: int = 1
    currency: Optional[str] = None


@dataclass
class ReleaseHoldCommand:
    """
    Command to release a hold

    ``user_id`` None marks a system release (sweeper): no ownership check.
    ``now`` pins the release time; the handler clock is used otherwise.
    """
    hold_id: UUID
    user_id: Optional[int] = None
    reason: str = Hold.Status.RELEASED
    now: Optional[datetime] = None


@dataclass
class ReleaseResult:
    hold_id: UUID
    status: str
    changed: bool

    def to_dict(self) -> dict:
        return {'hold_id': str(self.hold_id), 'status': self.status}


# ===== Command Handlers =====

class CreateHoldHandler:
    """
    Handler for CreateHold command

    Strategy:
    1. Validate rooms and dates
    2. Advisory availability check (fast rejection, no state change)
    3. Unit of work: increment held counters (authoritative), price the
       stay from the locked rows, insert Hold + HoldRooms
    4. Commit, then publish HoldCreated (schedules the expiry task)
    """

    def __init__(
        self,
        hold_repo: HoldRepository,
        ledger: InventoryLedger,
        clock: Callable[[], datetime] = timezone.now,
    ):
        if hold_repo.using != ledger.using:
            raise ValueError("Hold repository and ledger must share a database alias")
        self.hold_repo = hold_repo
        self.ledger = ledger
        self.clock = clock

    def handle(self, command: CreateHoldCommand) -> Hold:
        """
        Handle hold creation

        Returns: Created Hold

        Raises:
            InvalidRooms, InvalidDateRange, InvalidCurrency: Bad input
            CurrencyMismatch: Rooms not priced in the requested currency
            RoomsNotAvailable: Some room-night lacks capacity
            TransactionFailed: Database aborted the unit of work
        """
        rooms = self._room_requests(command.rooms)
        dates = self._date_range(command.check_in, command.check_out)
        requested_currency = self._currency(command.currency)

        logger.info(
            f"Creating hold for user {command.user_id}, hotel {command.hotel_id}, "
            f"{len(rooms)} room type(s), dates {dates}"
        )

        if not self.ledger.check_availability(rooms, dates):
            raise RoomsNotAvailable(hotel_id=command.hotel_id, dates=dates)

        with DjangoUnitOfWork(using=self.hold_repo.using) as uow:
            try:
                self.ledger.batch_increment_held(rooms, dates)
            except InsufficientAvailability as exc:
                raise RoomsNotAvailable(**exc.details) from exc

            rows = self.ledger.find_by_rooms_and_date_range([room.room_id for room in rooms], dates)
            currency = pricing_currency(rows, requested_currency, default_currency())
            line_prices = price_room_lines(rows, rooms, currency)
            price = sum(line_prices.values(), Money.zero(currency))

            now = self.clock()
            hold = self.hold_repo.create(
                user_id=command.user_id,
                hotel_id=command.hotel_id,
                dates=dates,
                number_of_guests=command.number_of_guests,
                rooms=rooms,
                price=price,
                line_prices=line_prices,
                expires_at=now + hold_ttl(),
                created_at=now,
            )

            uow.record(HoldCreated(
                hold_id=hold.id,
                user_id=command.user_id,
                hotel_id=command.hotel_id,
                expires_at=hold.expires_at,
                total_price=str(price.amount),
                currency=price.currency,
            ))

        logger.info(f"Hold {hold.id} created, {price}, expires at {hold.expires_at.isoformat()}")
        return hold

    @staticmethod
    def _room_requests(items) -> List[RoomRequest]:
        if not items:
            raise InvalidRooms()
        requests = []
        for item in items:
            if isinstance(item, RoomRequest):
                requests.append(item)
                continue
            try:
                requests.append(RoomRequest(item['room_id'], item.get('quantity', 1)))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise InvalidRooms(str(exc) or None) from exc
        return merge_room_requests(requests)

    @staticmethod
    def _currency(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            return Money.zero(value).currency
        except (TypeError, ValueError) as exc:
            raise InvalidCurrency(currency=value) from exc

    @staticmethod
    def _date_range(check_in: date, check_out: date) -> DateRange:
        if not check_in or not check_out or check_out <= check_in:
            raise InvalidDateRange(check_in=check_in, check_out=check_out)
        return DateRange(check_in, check_out)


class ReleaseHoldHandler:
    """
    Handler for ReleaseHold command

    Releasing is idempotent: a hold already in the requested terminal
    status answers success without touching the ledger. The status change
    is a conditional update, so when a sweeper, a buyer and a payment race
    exactly one of them moves the counters.
    """

    REASONS = (Hold.Status.RELEASED, Hold.Status.EXPIRED)

    def __init__(
        self,
        hold_repo: HoldRepository,
        ledger: InventoryLedger,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.hold_repo = hold_repo
        self.ledger = ledger
        self.clock = clock

    def handle(self, command: ReleaseHoldCommand) -> ReleaseResult:
        if command.reason not in self.REASONS:
            raise InvalidReleaseReason(reason=command.reason)

        hold = self.hold_repo.get(command.hold_id)
        if hold is None:
            raise HoldNotFound(hold_id=command.hold_id)
        if command.user_id is not None and hold.user_id != command.user_id:
            raise Forbidden(hold_id=hold.id)
        if hold.status != Hold.Status.ACTIVE:
            return self._settled(hold, command.reason)

        with DjangoUnitOfWork(using=self.hold_repo.using) as uow:
            now = command.now or self.clock()
            if not self.hold_repo.transition(hold.id, command.reason, released_at=now):
                # Lost the race; nothing was written in this unit of work.
                return self._settled(self.hold_repo.get(hold.id), command.reason)

            self.ledger.batch_decrement_held(hold.room_requests(), hold.dates)

            if command.reason == Hold.Status.EXPIRED:
                uow.record(HoldExpired(hold_id=hold.id))
            else:
                uow.record(HoldReleased(hold_id=hold.id, user_id=command.user_id))

        logger.info(f"Hold {hold.id} {command.reason}, {hold.quantity} room(s) returned for {hold.dates}")
        return ReleaseResult(hold_id=hold.id, status=command.reason, changed=True)

    @staticmethod
    def _settled(hold: Hold, reason: str) -> ReleaseResult:
        if hold.status == reason:
            logger.info(f"Hold {hold.id} already {reason}, nothing to do")
            return ReleaseResult(hold_id=hold.id, status=hold.status, changed=False)
        raise HoldNotActive(hold_id=hold.id, status=hold.status)


# ===== Queries =====

class HoldQueries:
    """Read side; never changes a hold's status"""

    def __init__(self, hold_repo: HoldRepository):
        self.hold_repo = hold_repo

    def get_hold(self, hold_id, user_id: int) -> Hold:
        hold = self.hold_repo.get(hold_id)
        if hold is None:
            raise HoldNotFound(hold_id=hold_id)
        if hold.user_id != user_id:
            raise Forbidden(hold_id=hold.id)
        return hold

    def get_active_holds_by_user(self, user_id: int) -> List[Hold]:
        return self.hold_repo.find_active_by_user(user_id)


# ===== Background =====

class HoldSweeper:
    """
    Expire active holds whose TTL passed

    Each hold is released in its own unit of work, so one failure does not
    roll back or stop the rest of the batch.
    """

    def __init__(
        self,
        hold_repo: HoldRepository,
        ledger: InventoryLedger,
        batch_size: Optional[int] = None,
    ):
        self.hold_repo = hold_repo
        self.batch_size = batch_size or getattr(settings, 'HOLD_SWEEP_BATCH_SIZE', 500)
        self.release_handler = ReleaseHoldHandler(hold_repo, ledger)

    def sweep(self, now: Optional[datetime] = None, batch_size: Optional[int] = None) -> dict:
        """
        Returns:
            dict: {"processed", "expired", "skipped", "failed"}
        """
        now = now or timezone.now()
        holds = self.hold_repo.find_expired_active(now, limit=batch_size or self.batch_size)
        stats = {'processed': 0, 'expired': 0, 'skipped': 0, 'failed': 0}

        for hold in holds:
            stats['processed'] += 1
            stats[self._expire(hold.id, now)] += 1

        if stats['processed']:
            logger.info(
                f"Hold sweep at {now.isoformat()}: {stats['expired']} expired, "
                f"{stats['skipped']} skipped, {stats['failed']} failed"
            )
        return stats

    def expire_one(self, hold_id, now: Optional[datetime] = None) -> str:
        """
        Expire a single hold if its TTL passed

        Returns "expired", "skipped" (missing, not active or not yet due)
        or "failed".
        """
        now = now or timezone.now()
        hold = self.hold_repo.get(hold_id)
        if hold is None or not hold.is_expired(now):
            return 'skipped'
        return self._expire(hold.id, now)

    def _expire(self, hold_id: UUID, now: datetime) -> str:
        try:
            result = self.release_handler.handle(
                ReleaseHoldCommand(hold_id=hold_id, reason=Hold.Status.EXPIRED, now=now)
            )
        except HoldNotActive as exc:
            logger.info(f"Hold {hold_id} settled concurrently ({exc.details.get('status')}), skipped")
            return 'skipped'
        except Exception as e:
            logger.error(f"Error expiring hold {hold_id}: {e}", exc_info=True)
            return 'failed'
        return 'expired' if result.changed else 'skipped'


# ===== Wiring =====

def build_handlers(using: str = 'default') -> dict:
    """Handlers sharing one repository and ledger bound to ``using``"""
    hold_repo = HoldRepository(using=using)
    ledger = InventoryLedger(using=using)
    return {
        'create': CreateHoldHandler(hold_repo, ledger),
        'release': ReleaseHoldHandler(hold_repo, ledger),
        'queries': HoldQueries(hold_repo),
        'sweeper': HoldSweeper(hold_repo, ledger),
    }
