"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, ProcessedPaymentEvent


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "booking_code",
        "hold",
        "user",
        "room_id",
        "status",
        "check_in_date",
        "check_out_date",
        "quantity",
        "total_price",
        "currency",
        "created_at",
    )
    list_filter = ("status", "check_in_date", "check_out_date", "currency")
    search_fields = ("booking_code", "payment_intent_id", "charge_id", "user__username")
    readonly_fields = (
        "booking_code",
        "hold",
        "payment_intent_id",
        "charge_id",
        "created_at",
        "total_price",
        "quantity",
    )


@admin.register(ProcessedPaymentEvent)
class ProcessedPaymentEventAdmin(admin.ModelAdmin):
    list_display = ("event_id", "event_type", "hold", "processed_at")
    list_filter = ("event_type",)
    search_fields = ("event_id",)
    readonly_fields = ("event_id", "event_type", "hold", "processed_at")
