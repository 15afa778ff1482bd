"""Payment webhook endpoint."""

from __future__ import annotations

import structlog
from django.conf import settings  # type: ignore
from django.http import JsonResponse  # type: ignore
from django.views.decorators.csrf import csrf_exempt  # type: ignore
from django.views.decorators.http import require_http_methods  # type: ignore

from shared.domain.exceptions import DomainError

from .application.command_handlers import build_converter
from .exceptions import InvalidSignature
from .webhooks import PAYMENT_SUCCEEDED, load_event, parse_payment_succeeded, verify_signature

logger = structlog.get_logger(__name__)


def _error(exc: DomainError) -> JsonResponse:
    response = JsonResponse({"error": exc.to_dict()}, status=exc.status_code)
    if exc.retryable:
        response["Retry-After"] = "1"
    return response


@csrf_exempt
@require_http_methods(["POST"])
def payment_webhook(request):
    """
    Обработка webhook платёжного провайдера.

    The signature covers the raw body, so it is checked before parsing.
    Only ``payment_intent.succeeded`` converts a hold; other event types are
    acknowledged and logged.
    """
    body = request.body
    signature = request.headers.get("X-Payment-Signature")
    if not verify_signature(body, signature, getattr(settings, "PAYMENT_WEBHOOK_SECRET", "")):
        logger.warning("payment_webhook.invalid_signature")
        return _error(InvalidSignature())

    try:
        payload = load_event(body)
        if payload["type"] != PAYMENT_SUCCEEDED:
            logger.info("payment_webhook.ignored", event_id=payload["id"], event_type=payload["type"])
            return JsonResponse({"received": True, "already_processed": False, "booking_code": None})

        command = parse_payment_succeeded(payload)
        result = build_converter().handle(command)
    except DomainError as exc:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("payment_webhook.failed", code=exc.code, error=exc.message)
        return _error(exc)

    logger.info(
        "payment_webhook.processed",
        event_id=command.event_id,
        hold_id=str(command.hold_id),
        booking_code=result.booking_code,
        already_processed=result.already_processed,
    )
    return JsonResponse(result.to_dict())
