"""
Views for the payments app.

Clinic staff list their payments and payment requests and issue refunds.
The payment page endpoints (``/api/pay/{token}/``, the payment intent and
the Stripe public key) are public: a request or link token is the only
credential.  The Stripe webhook relies solely on signature verification.
"""
from __future__ import annotations

import logging

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.http import HttpResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import permissions, viewsets, views
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from common.permissions import ClinicScopedMixin, IsClinicMember

from .filters import PaymentFilter
from .models import Payment, PaymentRequest
from .serializers import (
    PaymentIntentSerializer,
    PaymentPageSerializer,
    PaymentRequestSerializer,
    PaymentSerializer,
    RefundSerializer,
)
from .services import (
    PaymentError,
    create_intent_for_token,
    handle_account_updated,
    handle_payment_failed,
    refund_payment,
    resolve_payment_target,
)
from .stripe_client import get_gateway
from .tasks import process_payment_success

logger = logging.getLogger(__name__)


class PaymentViewSet(ClinicScopedMixin, viewsets.ReadOnlyModelViewSet):
    """Payments received by the caller's clinic, newest first."""

    queryset = Payment.objects.select_related("payment_link", "payment_schedule", "patient")
    serializer_class = PaymentSerializer
    permission_classes = [IsClinicMember]
    filterset_class = PaymentFilter

    def get_queryset(self):
        return super().get_queryset().order_by("-paid_at", "-id")

    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        payment = self.get_object()
        s = RefundSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        payment = refund_payment(
            payment,
            amount=s.validated_data.get("amount"),
            full_refund=s.validated_data["full_refund"],
            user=request.user,
        )
        return Response(PaymentSerializer(payment).data)


class PaymentRequestViewSet(ClinicScopedMixin, viewsets.ReadOnlyModelViewSet):
    queryset = PaymentRequest.objects.select_related("payment_link", "schedule")
    serializer_class = PaymentRequestSerializer
    permission_classes = [IsClinicMember]
    filterset_fields = ["status", "patient", "payment_link"]


class PaymentPageView(views.APIView):
    """Public data for the payment page behind a request or link token."""

    permission_classes = [permissions.AllowAny]

    def get(self, request, token):
        try:
            target = resolve_payment_target(request_token=token)
        except PaymentError:
            try:
                target = resolve_payment_target(link_token=token)
            except PaymentError:
                raise NotFound("Payment not found.")
        return Response(PaymentPageSerializer(target).data)


class PaymentIntentView(views.APIView):
    """Create a Stripe payment intent for the payment page."""

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        s = PaymentIntentSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data
        result = create_intent_for_token(
            request_token=data.get("request_token"),
            link_token=data.get("link_token"),
            amount=data.get("amount"),
            patient_name=data["patient_name"],
            patient_email=data["patient_email"],
            patient_phone=data["patient_phone"],
        )
        return Response(result)


class StripePublicKeyView(views.APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        key = getattr(settings, "STRIPE_PUBLISHABLE_KEY", "")
        if not key:
            logger.error("STRIPE_PUBLISHABLE_KEY is not configured")
            return Response({"detail": "Stripe is not configured."}, status=503)
        return Response({"publishable_key": key})


@method_decorator(csrf_exempt, name="dispatch")
class StripeWebhookView(views.APIView):
    """Handle incoming Stripe webhook events."""

    permission_classes = []
    authentication_classes = []
    throttle_classes = []

    def post(self, request):
        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")
        try:
            event = get_gateway().construct_event(payload, sig_header)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("Rejected Stripe webhook: %s", exc)
            return HttpResponse(status=400)
        except ImproperlyConfigured as exc:
            logger.error("Stripe webhook received but not configured: %s", exc)
            return HttpResponse(status=500)

        event_type = event["type"]
        data_obj = event["data"]["object"]
        logger.info("Stripe webhook %s (%s)", event_type, event.get("id"))

        if event_type == "payment_intent.succeeded":
            process_payment_success.delay(dict(data_obj))
        elif event_type == "payment_intent.payment_failed":
            handle_payment_failed(data_obj)
        elif event_type == "account.updated":
            handle_account_updated(data_obj)
        return HttpResponse(status=200)
