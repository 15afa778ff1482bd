"""Errors raised by the hold orchestrator."""

from shared.domain.exceptions import Conflict, NotFound, ValidationFailed


class InvalidRooms(ValidationFailed):
    code = "INVALID_ROOMS"
    default_message = "At least one room with a quantity of 1 or more is required"


class InvalidDateRange(ValidationFailed):
    code = "INVALID_DATE_RANGE"
    default_message = "Check-out date must be after check-in date"


class InvalidReleaseReason(ValidationFailed):
    code = "INVALID_RELEASE_REASON"
    default_message = "Release reason must be 'released' or 'expired'"


class InvalidCurrency(ValidationFailed):
    code = "INVALID_CURRENCY"
    default_message = "Currency must be a 3-letter ISO 4217 code"


class CurrencyMismatch(Conflict):
    """The rooms are priced in a currency other than the requested one."""

    code = "CURRENCY_MISMATCH"
    default_message = "The requested rooms are not priced in a single matching currency"


class RoomsNotAvailable(Conflict):
    code = "ROOMS_NOT_AVAILABLE"
    default_message = "The requested rooms are not available for these dates"


class HoldNotFound(NotFound):
    code = "HOLD_NOT_FOUND"
    default_message = "Hold not found"


class HoldNotActive(ValidationFailed):
    """The hold already reached a different terminal status."""

    code = "HOLD_NOT_ACTIVE"
    default_message = "Hold is no longer active"
