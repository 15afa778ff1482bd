"""Admin registration for the inventory ledger."""

from __future__ import annotations

from django.contrib import admin

from .models import InventoryDay


@admin.register(InventoryDay)
class InventoryDayAdmin(admin.ModelAdmin):
    list_display = (
        "room_id",
        "date",
        "status",
        "total_rooms",
        "booked_rooms",
        "held_rooms",
        "available_rooms",
        "price_per_night",
        "currency",
    )
    list_filter = ("status", "date")
    search_fields = ("room_id",)
    date_hierarchy = "date"
    # Counters change only through InventoryLedger.
    readonly_fields = ("booked_rooms", "held_rooms", "updated_at")
