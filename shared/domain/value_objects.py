"""
Common Value Objects

Value objects used across the engine:
- Money: Monetary amount with currency
- DateRange: Stay period (check-in inclusive, check-out exclusive)
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator

from shared.domain.base import ValueObject

CENTS = Decimal('0.01')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a non-negative monetary amount with an ISO 4217 currency code.
    Immutable and supports arithmetic operations.
    """
    amount: Decimal
    currency: str = 'USD'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"Invalid currency code: {self.currency!r}")
        object.__setattr__(self, 'currency', self.currency.upper())

    @classmethod
    def zero(cls, currency: str = 'USD') -> 'Money':
        return cls(Decimal('0'), currency)

    def quantize(self) -> 'Money':
        """Round to cents"""
        return Money(self.amount.quantize(CENTS, rounding=ROUND_HALF_UP), self.currency)

    def __add__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        if not isinstance(factor, (int, Decimal)):
            raise TypeError("Can only multiply Money by int or Decimal")
        return Money(self.amount * factor, self.currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Represents a range from start_date (inclusive) to end_date (exclusive),
    i.e. the nights of a stay. Ledger rows exist per night.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.start_date >= self.end_date:
            raise ValueError(f"Start date ({self.start_date}) must be before end date ({self.end_date})")

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Check if this range overlaps with another

        end_date is exclusive, so adjacent ranges don't overlap.
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")
        return self.start_date < other.end_date and self.end_date > other.start_date

    def contains(self, check_date: date) -> bool:
        return self.start_date <= check_date < self.end_date

    def days(self) -> Iterator[date]:
        """Yield every night of the range in order"""
        current = self.start_date
        while current < self.end_date:
            yield current
            current += timedelta(days=1)

    def __len__(self) -> int:
        """Number of nights"""
        return (self.end_date - self.start_date).days

    def __str__(self):
        return f"{self.start_date.isoformat()} - {self.end_date.isoformat()}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"
