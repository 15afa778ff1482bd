"""
Unit of Work Pattern

Wraps one database transaction around every mutation of the engine
(ledger counters + hold/booking rows) and publishes domain events only
after that transaction commits.
"""

from abc import ABC, abstractmethod
from typing import List
import logging

from django.db import DatabaseError, transaction

from shared.domain.base import DomainEvent
from shared.domain.exceptions import TransactionFailed

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work pattern"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""

    @abstractmethod
    def record(self, event: DomainEvent):
        """Remember an event to publish after commit"""


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    Opens ``transaction.atomic`` on an explicit database alias. Repositories
    bound to the same alias (see ``InventoryLedger`` and ``HoldRepository``)
    refuse to mutate unless such a block is open.

    Usage:
        with DjangoUnitOfWork(using=ledger.using) as uow:
            ledger.batch_increment_held(rooms, dates)
            hold = hold_repo.create(...)
            uow.record(HoldCreated(...))
            # Transaction commits here
        # Events are published after commit

    Database errors raised inside the block (lock timeouts, deadlocks,
    serialization failures) leave as ``TransactionFailed`` so callers can
    retry; the transaction has already been rolled back at that point.
    """

    def __init__(self, using: str = 'default'):
        self.using = using
        self._events: List[DomainEvent] = []
        self._transaction = None

    def __enter__(self):
        """Start database transaction"""
        self._transaction = transaction.atomic(using=self.using)
        self._transaction.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Complete or rollback transaction"""
        try:
            try:
                if exc_type is None:
                    self.commit()
                else:
                    self.rollback()
            finally:
                if self._transaction:
                    self._transaction.__exit__(exc_type, exc_val, exc_tb)
        except DatabaseError as exc:
            logger.warning(f"Commit failed on '{self.using}': {exc}")
            raise TransactionFailed(str(exc)) from exc

        if exc_type is not None and issubclass(exc_type, DatabaseError):
            logger.warning(f"Transaction aborted on '{self.using}': {exc_val}")
            raise TransactionFailed(str(exc_val)) from exc_val
        return False

    def commit(self):
        """
        Schedule event publishing

        ``transaction.on_commit`` defers publishing until the outermost
        atomic block on this alias has committed.
        """
        events = self._events.copy()
        self._events.clear()
        logger.debug(f"Committing unit of work with {len(events)} events")

        if events:
            transaction.on_commit(lambda: self._publish_events(events), using=self.using)

    def rollback(self):
        """Discard recorded events; atomic() undoes the writes"""
        if self._events:
            logger.warning(f"Rolling back unit of work, discarding {len(self._events)} events")
        self._events.clear()

    def record(self, event: DomainEvent):
        self._events.append(event)

    @property
    def pending_events(self) -> List[DomainEvent]:
        return self._events.copy()

    def _publish_events(self, events: List[DomainEvent]):
        """Hand committed events to the message bus"""
        from shared.application.message_bus import message_bus

        logger.info(f"Publishing {len(events)} domain events after commit")

        try:
            message_bus.publish_events(events)
        except Exception as e:
            # The data is already committed; publishing failures only get logged.
            logger.error(f"Error publishing events: {e}", exc_info=True)
