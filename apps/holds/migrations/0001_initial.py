import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Hold",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("hotel_id", models.UUIDField()),
                ("check_in_date", models.DateField()),
                ("check_out_date", models.DateField()),
                ("number_of_guests", models.PositiveSmallIntegerField(default=1)),
                ("quantity", models.PositiveIntegerField(default=1, help_text="Total rooms across all lines.")),
                ("total_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("currency", models.CharField(default="USD", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("released", "Released by buyer"),
                            ("expired", "Expired"),
                            ("converted", "Converted to booking"),
                        ],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("expires_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="holds",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Hold",
                "verbose_name_plural": "Holds",
                "db_table": "hold",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="hold_user_status_idx"),
                    models.Index(fields=["status", "expires_at"], name="hold_status_expires_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("check_out_date__gt", models.F("check_in_date"))),
                        name="hold_valid_dates",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="HoldRoom",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("room_id", models.UUIDField()),
                ("quantity", models.PositiveIntegerField(default=1)),
                (
                    "total_price",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Price of this line for the whole stay.",
                        max_digits=12,
                    ),
                ),
                (
                    "hold",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rooms",
                        to="holds.hold",
                    ),
                ),
            ],
            options={
                "verbose_name": "Hold room",
                "verbose_name_plural": "Hold rooms",
                "db_table": "hold_room",
                "constraints": [
                    models.UniqueConstraint(fields=("hold", "room_id"), name="hold_room_unique_room"),
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="hold_room_quantity_positive",
                    ),
                ],
            },
        ),
    ]
