"""Pricing helpers for holds."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, Optional
from uuid import UUID

from apps.inventory.ledger import RoomRequest
from apps.inventory.models import InventoryDay
from shared.domain.value_objects import Money

from .exceptions import CurrencyMismatch


def pricing_currency(rows: Iterable[InventoryDay], requested: Optional[str], default: str) -> str:
    """The single currency the priced rows share.

    Rows in more than one currency, or in a currency other than ``requested``,
    cannot be priced as one hold.
    """

    currencies = sorted({row.currency.upper() for row in rows})
    if len(currencies) > 1:
        raise CurrencyMismatch(currencies=", ".join(currencies))
    currency = currencies[0] if currencies else (requested or default)
    if requested and requested != currency:
        raise CurrencyMismatch(requested=requested, priced_in=currency)
    return currency


def price_room_lines(rows: Iterable[InventoryDay], rooms: Iterable[RoomRequest], currency: str) -> Dict[UUID, Money]:
    """Price of each room line: ``price_per_night * quantity`` summed over its nights."""

    quantities = {room.room_id: room.quantity for room in rooms}
    totals = {room_id: Decimal("0") for room_id in quantities}
    for row in rows:
        quantity = quantities.get(row.room_id)
        if quantity:
            totals[row.room_id] += row.price_per_night * quantity
    return {room_id: Money(amount, currency).quantize() for room_id, amount in totals.items()}
