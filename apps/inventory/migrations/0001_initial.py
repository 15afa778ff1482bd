from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="InventoryDay",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("room_id", models.UUIDField(db_index=True)),
                ("date", models.DateField()),
                (
                    "total_rooms",
                    models.PositiveIntegerField(default=0, help_text="Sellable capacity for this night."),
                ),
                (
                    "booked_rooms",
                    models.PositiveIntegerField(default=0, help_text="Rooms confirmed by paid bookings."),
                ),
                (
                    "held_rooms",
                    models.PositiveIntegerField(default=0, help_text="Rooms tentatively reserved by active holds."),
                ),
                (
                    "price_per_night",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10),
                ),
                ("currency", models.CharField(default="USD", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("open", "Open"),
                            ("closed", "Closed"),
                            ("sold_out", "Sold out"),
                            ("maintenance", "Maintenance"),
                        ],
                        default="open",
                        max_length=20,
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Inventory day",
                "verbose_name_plural": "Inventory days",
                "db_table": "inventory_day",
                "ordering": ["room_id", "date"],
                "constraints": [
                    models.UniqueConstraint(fields=("room_id", "date"), name="inventory_day_room_date_unique"),
                    models.CheckConstraint(
                        condition=models.Q(("booked_rooms__gte", 0), ("held_rooms__gte", 0)),
                        name="inventory_day_counters_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("total_rooms__gte", models.F("booked_rooms") + models.F("held_rooms"))
                        ),
                        name="inventory_day_within_capacity",
                    ),
                ],
            },
        ),
    ]
