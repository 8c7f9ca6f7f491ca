"""
Domain exceptions shared across apps.

Service functions raise subclasses of :class:`ServiceError`; the DRF
exception handler below turns them into JSON error responses so views do
not need a try/except around every service call.
"""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for business-rule failures raised by service functions."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The operation could not be completed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidStatusTransition(ServiceError):
    default_message = "Invalid status transition."

    def __init__(self, current: str | None, new: str, what: str = "payment"):
        self.current = current
        self.new = new
        super().__init__(f"Cannot change {what} status from '{current}' to '{new}'.")


class PaymentProcessingError(ServiceError):
    """A call to the payment processor failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "The payment processor rejected the request."


def service_exception_handler(exc, context):
    """DRF exception handler that also understands :class:`ServiceError`."""
    if isinstance(exc, ServiceError):
        view = context.get("view")
        logger.warning("%s failed: %s", view.__class__.__name__ if view else "request", exc.message)
        return Response({"detail": exc.message}, status=exc.status_code)
    return exception_handler(exc, context)
