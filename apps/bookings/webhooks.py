"""Payment provider webhook verification and parsing."""

from __future__ import annotations

import hashlib
import hmac
import json
from decimal import Decimal
from typing import Optional
from uuid import UUID

from .application.command_handlers import PaymentSucceeded
from .exceptions import MalformedPaymentEvent

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
SIGNATURE_PREFIX = "sha256="
MINOR_UNITS = Decimal("100")


def compute_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Constant-time check of ``X-Payment-Signature`` against the raw body."""

    if not secret or not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature)


def load_event(body: bytes) -> dict:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPaymentEvent("Invalid JSON") from exc
    if not isinstance(payload, dict) or not payload.get("id") or not payload.get("type"):
        raise MalformedPaymentEvent("'id' and 'type' are required")
    return payload


def parse_payment_succeeded(payload: dict) -> PaymentSucceeded:
    """Build the conversion command from a ``payment_intent.succeeded`` event.

    ``data.amount`` is in minor units (cents), as the provider sends it.
    """

    data = payload.get("data")
    if not isinstance(data, dict):
        raise MalformedPaymentEvent("'data' is required")
    metadata = data.get("metadata") or {}

    try:
        hold_id = UUID(str(metadata["hold_id"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedPaymentEvent("'data.metadata.hold_id' must be a hold id") from exc

    amount = data.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise MalformedPaymentEvent("'data.amount' must be a non-negative integer")
    currency = data.get("currency")
    if not isinstance(currency, str) or len(currency) != 3:
        raise MalformedPaymentEvent("'data.currency' must be a 3-letter code")
    if not data.get("id"):
        raise MalformedPaymentEvent("'data.id' is required")

    major_amount = Decimal(amount) / MINOR_UNITS

    return PaymentSucceeded(
        event_id=str(payload["id"]),
        event_type=str(payload["type"]),
        hold_id=hold_id,
        amount=major_amount,
        currency=currency.upper(),
        payment_intent_id=str(data["id"]),
        charge_id=str(data.get("latest_charge") or ""),
    )
