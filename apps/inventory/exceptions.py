"""Errors raised by the inventory ledger."""

from shared.domain.exceptions import Conflict, DomainError


class InsufficientAvailability(Conflict):
    """One or more (room, night) rows cannot absorb the requested quantity."""

    code = "INSUFFICIENT_AVAILABILITY"
    default_message = "Not enough rooms available for the requested dates"


class LedgerInconsistency(DomainError):
    """Counters do not match what a hold says it reserved."""

    code = "LEDGER_INCONSISTENCY"
    status_code = 500
    default_message = "Inventory counters are inconsistent with the hold"
