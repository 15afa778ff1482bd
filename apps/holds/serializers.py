"""Serializers for the hold API."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Hold, HoldRoom

# Upper bound of Hold.number_of_guests (PositiveSmallIntegerField).
MAX_GUESTS = 32767


class RoomLineSerializer(serializers.Serializer):
    """Requested room line; quantity rules are enforced by the handler."""

    room_id = serializers.UUIDField()
    quantity = serializers.IntegerField(default=1)


class HoldCreateSerializer(serializers.Serializer):
    """Входные данные для удержания номеров."""

    hotel_id = serializers.UUIDField()
    check_in_date = serializers.DateField()
    check_out_date = serializers.DateField()
    number_of_guests = serializers.IntegerField(min_value=1, max_value=MAX_GUESTS, default=1)
    rooms = RoomLineSerializer(many=True, allow_empty=True)
    currency = serializers.RegexField(r"^[A-Za-z]{3}$", required=False)


class HoldRoomSerializer(serializers.ModelSerializer):
    class Meta:
        model = HoldRoom
        fields = ["room_id", "quantity", "total_price"]


class HoldSerializer(serializers.ModelSerializer):
    """Детальный сериализатор удержания."""

    user_id = serializers.ReadOnlyField()
    rooms = HoldRoomSerializer(many=True, read_only=True)
    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = Hold
        fields = [
            "id",
            "user_id",
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
            "rooms",
            "is_expired",
        ]
        read_only_fields = fields

    def get_is_expired(self, obj: Hold) -> bool:
        return obj.is_expired()


class HoldReleaseSerializer(serializers.Serializer):
    hold_id = serializers.UUIDField()
    status = serializers.CharField()
