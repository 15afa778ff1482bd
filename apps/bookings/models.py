"""Booking domain models."""

from __future__ import annotations

import secrets
import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Booking(models.Model):
    """Confirmed booking line created from one room line of a paid hold."""

    class Status(models.TextChoices):
        CONFIRMED = "confirmed", _("Confirmed")
        CANCELLED = "cancelled", _("Cancelled")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking_code = models.CharField(
        max_length=12,
        db_index=True,
        editable=False,
        help_text=_("Shared by every booking line converted from the same hold."),
    )
    hold = models.ForeignKey("holds.Hold", on_delete=models.PROTECT, related_name="bookings")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    hotel_id = models.UUIDField()
    room_id = models.UUIDField()
    check_in_date = models.DateField()
    check_out_date = models.DateField()
    number_of_guests = models.PositiveSmallIntegerField(default=1)
    quantity = models.PositiveIntegerField(default=1)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="USD")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CONFIRMED)
    payment_intent_id = models.CharField(max_length=255, db_index=True)
    charge_id = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "booking"
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["hold", "room_id"], name="booking_unique_hold_room"),
            models.CheckConstraint(
                condition=models.Q(check_out_date__gt=models.F("check_in_date")),
                name="booking_valid_dates",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.booking_code} room {self.room_id}"

    @staticmethod
    def generate_booking_code() -> str:
        return secrets.token_hex(4).upper()


class ProcessedPaymentEvent(models.Model):
    """Payment provider event that has already been applied."""

    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100)
    hold = models.ForeignKey(
        "holds.Hold",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_events",
    )
    processed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "processed_payment_event"
        verbose_name = _("Processed payment event")
        verbose_name_plural = _("Processed payment events")
        ordering = ["-processed_at"]

    def __str__(self) -> str:
        return f"{self.event_type} {self.event_id}"
