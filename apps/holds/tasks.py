"""Celery tasks for the hold domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .application.command_handlers import build_handlers

logger = logging.getLogger(__name__)


@shared_task(name="holds.expire_hold")
def expire_hold(hold_id: str) -> str:
    """Expire one hold once its TTL has run out.

    Scheduled with ``countdown = TTL`` when the hold is created. A hold that
    was paid for or released in the meantime is skipped.
    """

    outcome = build_handlers()["sweeper"].expire_one(hold_id)
    logger.debug(f"expire_hold {hold_id}: {outcome}")
    return outcome


# ============================================================================
# PERIODIC TASKS (Celery Beat)
# ============================================================================

@shared_task(name="holds.expire_stale_holds")
def expire_stale_holds() -> dict[str, int]:
    """
    Periodic safety net for holds whose countdown task never ran.

    Runs every HOLD_SWEEP_INTERVAL_SECONDS via Celery Beat.

    Returns:
        dict: {"processed", "expired", "skipped", "failed"}
    """
    return build_handlers()["sweeper"].sweep()
