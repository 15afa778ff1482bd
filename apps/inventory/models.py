"""Inventory ledger models."""

from __future__ import annotations

from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class InventoryDay(models.Model):
    """Availability counters of one room type for one night."""

    class Status(models.TextChoices):
        OPEN = "open", _("Open")
        CLOSED = "closed", _("Closed")
        SOLD_OUT = "sold_out", _("Sold out")
        MAINTENANCE = "maintenance", _("Maintenance")

    room_id = models.UUIDField(db_index=True)
    date = models.DateField()
    total_rooms = models.PositiveIntegerField(
        default=0,
        help_text=_("Sellable capacity for this night."),
    )
    booked_rooms = models.PositiveIntegerField(
        default=0,
        help_text=_("Rooms confirmed by paid bookings."),
    )
    held_rooms = models.PositiveIntegerField(
        default=0,
        help_text=_("Rooms tentatively reserved by active holds."),
    )
    price_per_night = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="USD")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "inventory_day"
        verbose_name = _("Inventory day")
        verbose_name_plural = _("Inventory days")
        ordering = ["room_id", "date"]
        constraints = [
            models.UniqueConstraint(fields=["room_id", "date"], name="inventory_day_room_date_unique"),
            models.CheckConstraint(
                condition=models.Q(booked_rooms__gte=0) & models.Q(held_rooms__gte=0),
                name="inventory_day_counters_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(total_rooms__gte=models.F("booked_rooms") + models.F("held_rooms")),
                name="inventory_day_within_capacity",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.room_id} @ {self.date} ({self.booked_rooms}+{self.held_rooms}/{self.total_rooms})"

    @property
    def available_rooms(self) -> int:
        return self.total_rooms - self.booked_rooms - self.held_rooms

    def can_hold(self, quantity: int) -> bool:
        return self.status == self.Status.OPEN and self.available_rooms >= quantity
