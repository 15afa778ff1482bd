"""Hold persistence models."""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import DateRange, Money


class Hold(models.Model):
    """Time-boxed tentative reservation of rooms before payment."""

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        RELEASED = "released", _("Released by buyer")
        EXPIRED = "expired", _("Expired")
        CONVERTED = "converted", _("Converted to booking")

    TERMINAL_STATUSES = (Status.RELEASED, Status.EXPIRED, Status.CONVERTED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="holds",
    )
    hotel_id = models.UUIDField()
    check_in_date = models.DateField()
    check_out_date = models.DateField()
    number_of_guests = models.PositiveSmallIntegerField(default=1)
    quantity = models.PositiveIntegerField(
        default=1,
        help_text=_("Total rooms across all lines."),
    )
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="USD")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(default=timezone.now)
    released_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "hold"
        verbose_name = _("Hold")
        verbose_name_plural = _("Holds")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out_date__gt=models.F("check_in_date")),
                name="hold_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "status"], name="hold_user_status_idx"),
            models.Index(fields=["status", "expires_at"], name="hold_status_expires_idx"),
        ]

    def __str__(self) -> str:
        return f"Hold {self.id} ({self.status})"

    @property
    def dates(self) -> DateRange:
        return DateRange(self.check_in_date, self.check_out_date)

    @property
    def price(self) -> Money:
        return Money(self.total_price, self.currency)

    def room_requests(self):
        """Ledger requests covering exactly what this hold reserved."""
        from apps.inventory.ledger import RoomRequest

        return [RoomRequest(line.room_id, line.quantity) for line in self.rooms.all()]

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def is_expired(self, now=None) -> bool:
        """Past its TTL but not yet swept; reads never change the status."""
        now = now or timezone.now()
        return self.status == self.Status.ACTIVE and now > self.expires_at


class HoldRoom(models.Model):
    """Line item of a hold: rooms of one type reserved for every night."""

    hold = models.ForeignKey(Hold, on_delete=models.CASCADE, related_name="rooms")
    room_id = models.UUIDField()
    quantity = models.PositiveIntegerField(default=1)
    total_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Price of this line for the whole stay."),
    )

    class Meta:
        db_table = "hold_room"
        verbose_name = _("Hold room")
        verbose_name_plural = _("Hold rooms")
        constraints = [
            models.UniqueConstraint(fields=["hold", "room_id"], name="hold_room_unique_room"),
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="hold_room_quantity_positive"),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.room_id}"
