"""Errors raised while turning a paid hold into bookings."""

from shared.domain.exceptions import Conflict, Forbidden, ValidationFailed


class HoldNotConvertible(Conflict):
    """The hold was released, expired or converted by another payment."""

    code = "HOLD_NOT_CONVERTIBLE"
    default_message = "Hold can no longer be converted to a booking"


class PaymentMismatch(Conflict):
    code = "PAYMENT_MISMATCH"
    default_message = "Payment amount or currency does not match the hold"


class InvalidSignature(Forbidden):
    code = "INVALID_SIGNATURE"
    default_message = "Invalid signature"


class MalformedPaymentEvent(ValidationFailed):
    code = "INVALID_PAYLOAD"
    default_message = "Payment event payload is malformed"
