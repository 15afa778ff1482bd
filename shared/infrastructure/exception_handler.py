"""DRF exception handler rendering domain errors."""

from __future__ import annotations

import logging

from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler as drf_exception_handler  # type: ignore

from shared.domain.exceptions import DomainError

logger = logging.getLogger(__name__)


def domain_exception_handler(exc, context):  # type: ignore
    """Map ``DomainError`` to ``{"error": {...}}`` with its status code."""

    if isinstance(exc, DomainError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", exc_info=exc)
        else:
            logger.info(f"{exc.code}: {exc.message}")
        headers = {"Retry-After": "1"} if exc.retryable else None
        return Response({"error": exc.to_dict()}, status=exc.status_code, headers=headers)
    return drf_exception_handler(exc, context)
