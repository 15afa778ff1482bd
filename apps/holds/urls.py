"""URL routing for the hold domain."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import HoldViewSet

router = DefaultRouter()
router.register(r"", HoldViewSet, basename="hold")

urlpatterns = [
    path("", include(router.urls)),
]
