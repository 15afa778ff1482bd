"""
Hold Domain Events

Published on the message bus after the unit of work that produced them
has committed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class HoldEvent(DomainEvent):
    """Base for every hold lifecycle event"""
    hold_id: UUID

    def __post_init__(self):
        if self.aggregate_id is None:
            self.aggregate_id = self.hold_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['hold_id'] = str(self.hold_id)
        return data


@dataclass(kw_only=True)
class HoldCreated(HoldEvent):
    """
    Event: rooms were held for a buyer

    Triggers:
    - Schedule the per-hold expiry task (countdown = TTL)
    """
    user_id: int
    hotel_id: UUID
    expires_at: datetime
    total_price: str
    currency: str


@dataclass(kw_only=True)
class HoldReleased(HoldEvent):
    """Event: the buyer gave the rooms back before paying"""
    user_id: Optional[int] = None


@dataclass(kw_only=True)
class HoldExpired(HoldEvent):
    """Event: the TTL passed without payment, rooms returned to the pool"""


@dataclass(kw_only=True)
class HoldConverted(HoldEvent):
    """Event: payment succeeded and the hold became confirmed bookings"""
    booking_code: str
    payment_intent_id: str
