"""
Base Domain Classes

Building blocks shared by every bounded context of the engine:
- ValueObject: Immutable objects compared by value
- DomainEvent: Something that happened, published after commit
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects

    Value objects are immutable and compared by their attributes.
    Two value objects with the same attributes are equal.
    """


@dataclass
class DomainEvent:
    """
    Base class for domain events

    Events are recorded inside a unit of work and handed to the
    message bus only once the surrounding transaction has committed.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=datetime.now)
    aggregate_id: Any = None

    def to_dict(self) -> dict:
        """Convert event to dictionary for logging/serialization"""
        return {
            'event_id': str(self.event_id),
            'event_type': self.__class__.__name__,
            'occurred_at': self.occurred_at.isoformat(),
            'aggregate_id': str(self.aggregate_id) if self.aggregate_id else None,
        }
