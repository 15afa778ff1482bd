"""Admin registration for holds."""

from __future__ import annotations

from django.contrib import admin

from .models import Hold, HoldRoom


class HoldRoomInline(admin.TabularInline):
    model = HoldRoom
    extra = 0
    can_delete = False
    readonly_fields = ("room_id", "quantity", "total_price")


@admin.register(Hold)
class HoldAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "user",
        "hotel_id",
        "status",
        "check_in_date",
        "check_out_date",
        "quantity",
        "total_price",
        "currency",
        "expires_at",
        "created_at",
    )
    list_filter = ("status", "check_in_date", "currency")
    search_fields = ("id", "hotel_id", "user__username", "user__email")
    inlines = [HoldRoomInline]
    # Status and counters change only through the hold handlers.
    readonly_fields = (
        "user",
        "hotel_id",
        "check_in_date",
        "check_out_date",
        "number_of_guests",
        "quantity",
        "total_price",
        "currency",
        "status",
        "expires_at",
        "created_at",
        "released_at",
    )
