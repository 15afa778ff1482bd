"""API views for the hold domain."""

from __future__ import annotations

from drf_spectacular.utils import extend_schema  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.response import Response  # type: ignore

from .application.command_handlers import CreateHoldCommand, ReleaseHoldCommand, build_handlers
from .models import Hold
from .serializers import HoldCreateSerializer, HoldReleaseSerializer, HoldSerializer


class HoldViewSet(viewsets.ViewSet):
    """Удержание номеров покупателем до оплаты.

    Domain errors raised by the handlers are rendered by the project
    exception handler.
    """

    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = "[^/]+"

    def get_handlers(self) -> dict:
        return build_handlers()

    @extend_schema(request=HoldCreateSerializer, responses={201: HoldSerializer})
    def create(self, request):  # type: ignore
        serializer = HoldCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        hold = self.get_handlers()["create"].handle(
            CreateHoldCommand(
                user_id=request.user.id,
                hotel_id=data["hotel_id"],
                check_in=data["check_in_date"],
                check_out=data["check_out_date"],
                rooms=[dict(line) for line in data["rooms"]],
                number_of_guests=data["number_of_guests"],
                currency=data.get("currency"),
            )
        )
        return Response(HoldSerializer(hold).data, status=status.HTTP_201_CREATED)

    @extend_schema(responses={200: HoldSerializer(many=True)})
    def list(self, request):  # type: ignore
        holds = self.get_handlers()["queries"].get_active_holds_by_user(request.user.id)
        return Response(HoldSerializer(holds, many=True).data)

    @extend_schema(responses={200: HoldSerializer})
    def retrieve(self, request, pk=None):  # type: ignore
        hold = self.get_handlers()["queries"].get_hold(pk, request.user.id)
        return Response(HoldSerializer(hold).data)

    @extend_schema(responses={200: HoldReleaseSerializer})
    def destroy(self, request, pk=None):  # type: ignore
        result = self.get_handlers()["release"].handle(
            ReleaseHoldCommand(hold_id=pk, user_id=request.user.id, reason=Hold.Status.RELEASED)
        )
        return Response(result.to_dict(), status=status.HTTP_200_OK)
