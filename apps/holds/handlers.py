"""Message bus handlers for hold events."""

from __future__ import annotations

import logging

from django.utils import timezone  # type: ignore

from .domain.events import HoldCreated, HoldEvent

logger = logging.getLogger(__name__)


def schedule_hold_expiry(event: HoldCreated) -> None:
    """Queue the per-hold expiry task for the moment the TTL runs out."""

    from .tasks import expire_hold

    countdown = max(0.0, (event.expires_at - timezone.now()).total_seconds())
    expire_hold.apply_async(args=[str(event.hold_id)], countdown=countdown)
    logger.debug(f"Scheduled expiry of hold {event.hold_id} in {countdown:.0f}s")


def log_hold_event(event: HoldEvent) -> None:
    logger.info(f"Hold event {type(event).__name__}", extra={"hold_event": event.to_dict()})
