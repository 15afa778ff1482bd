import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("holds", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "booking_code",
                    models.CharField(
                        db_index=True,
                        editable=False,
                        help_text="Shared by every booking line converted from the same hold.",
                        max_length=12,
                    ),
                ),
                ("hotel_id", models.UUIDField()),
                ("room_id", models.UUIDField()),
                ("check_in_date", models.DateField()),
                ("check_out_date", models.DateField()),
                ("number_of_guests", models.PositiveSmallIntegerField(default=1)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("total_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("currency", models.CharField(default="USD", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[("confirmed", "Confirmed"), ("cancelled", "Cancelled")],
                        default="confirmed",
                        max_length=20,
                    ),
                ),
                ("payment_intent_id", models.CharField(db_index=True, max_length=255)),
                ("charge_id", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "hold",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="holds.hold",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "db_table": "booking",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("hold", "room_id"), name="booking_unique_hold_room"),
                    models.CheckConstraint(
                        condition=models.Q(("check_out_date__gt", models.F("check_in_date"))),
                        name="booking_valid_dates",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProcessedPaymentEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_id", models.CharField(max_length=255, unique=True)),
                ("event_type", models.CharField(max_length=100)),
                ("processed_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "hold",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payment_events",
                        to="holds.hold",
                    ),
                ),
            ],
            options={
                "verbose_name": "Processed payment event",
                "verbose_name_plural": "Processed payment events",
                "db_table": "processed_payment_event",
                "ordering": ["-processed_at"],
            },
        ),
    ]
