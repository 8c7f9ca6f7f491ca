"""
Views for the clinics app.

Clinic staff read and update their own clinic under ``/api/clinics/me/``
and drive Stripe Connect onboarding from there.  Platform admins list
every clinic, adjust the platform fee and read platform-wide totals.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from rest_framework import generics, mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from common.permissions import IsClinicMember, IsPlatformAdmin, get_user_clinic
from payments.models import Payment
from payments.stripe_client import get_gateway
from plans.models import Plan

from .models import Clinic, PlatformSetting, get_platform_fee_percent
from .serializers import AdminClinicSerializer, ClinicSerializer, PlatformFeeSerializer

logger = logging.getLogger(__name__)


class ClinicMeView(generics.RetrieveUpdateAPIView):
    """GET/PATCH the caller's clinic profile (logo upload via multipart)."""

    serializer_class = ClinicSerializer
    permission_classes = [IsClinicMember]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_object(self):
        return get_user_clinic(self.request.user)


class ClinicViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """Platform admin access to every clinic."""

    serializer_class = AdminClinicSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        qs = Clinic.objects.annotate(
            payments_count=Count("payments", distinct=True),
            total_received=Coalesce(Sum("payments__amount_paid"), 0),
        )
        q = (self.request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(Q(clinic_name__icontains=q) | Q(email__icontains=q) | Q(contact_name__icontains=q))
        stripe_status = self.request.query_params.get("stripe_status")
        if stripe_status:
            qs = qs.filter(stripe_status=stripe_status)
        return qs.order_by("-created_at")

    @action(detail=True, methods=["post"], url_path="disconnect-stripe")
    def disconnect_stripe(self, request, pk=None):
        clinic = self.get_object()
        clinic.disconnect_stripe()
        logger.info("Admin %s disconnected Stripe for clinic %s", request.user.pk, clinic.pk)
        return Response(self.get_serializer(clinic).data)


class PlatformFeeView(APIView):
    """Read (any signed-in user) or change (admins) the platform fee."""

    def get_permissions(self):
        if self.request.method in permissions.SAFE_METHODS:
            return [permissions.IsAuthenticated()]
        return [IsPlatformAdmin()]

    def get(self, request):
        return Response({"platform_fee_percent": get_platform_fee_percent()})

    def put(self, request):
        serializer = PlatformFeeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        value = serializer.validated_data["platform_fee_percent"].normalize()
        PlatformSetting.set_value(PlatformSetting.PLATFORM_FEE_PERCENT, format(value, "f"))
        logger.info("Platform fee set to %s%% by %s", value, request.user.pk)
        return Response({"platform_fee_percent": get_platform_fee_percent()})


class StripeConnectView(APIView):
    """Start (or continue) Stripe Connect onboarding for the caller's clinic.

    Creates a standard connected account on first use, moves the clinic to
    ``pending`` and returns a one-time onboarding URL.
    """

    permission_classes = [IsClinicMember]

    def post(self, request):
        clinic = get_user_clinic(request.user)
        gateway = get_gateway()

        if not clinic.stripe_account_id:
            account = gateway.create_connect_account(
                email=clinic.email or request.user.email,
                business_name=clinic.clinic_name,
            )
            clinic.stripe_account_id = account["id"]
            clinic.save(update_fields=["stripe_account_id", "updated_at"])
            logger.info("Created Stripe account %s for clinic %s", account["id"], clinic.pk)
        clinic.advance_stripe_status(Clinic.STRIPE_PENDING)

        return_url = request.data.get("return_url") or settings.STRIPE_CONNECT_RETURN_URL
        link = gateway.create_account_link(account_id=clinic.stripe_account_id, return_url=return_url)
        return Response(
            {"url": link["url"], "account_id": clinic.stripe_account_id, "stripe_status": clinic.stripe_status},
            status=status.HTTP_200_OK,
        )


class StripeConnectStatusView(APIView):
    """Check the connected account and mark the clinic connected once charges are enabled."""

    permission_classes = [IsClinicMember]

    def get(self, request):
        clinic = get_user_clinic(request.user)
        if not clinic.stripe_account_id:
            return Response({"stripe_status": clinic.stripe_status, "charges_enabled": False})

        account = get_gateway().retrieve_account(clinic.stripe_account_id)
        charges_enabled = bool(account.get("charges_enabled"))
        if charges_enabled:
            if clinic.advance_stripe_status(Clinic.STRIPE_CONNECTED):
                logger.info("Clinic %s is now connected to Stripe", clinic.pk)
        return Response({
            "stripe_status": clinic.stripe_status,
            "charges_enabled": charges_enabled,
            "details_submitted": bool(account.get("details_submitted")),
            "payouts_enabled": bool(account.get("payouts_enabled")),
        })


class AdminStatsView(APIView):
    """Platform totals for the admin dashboard."""

    permission_classes = [IsPlatformAdmin]

    def get(self, request):
        payment_qs = Payment.objects.all()
        clinic_param = request.query_params.get("clinic")
        if clinic_param:
            try:
                payment_qs = payment_qs.filter(clinic_id=int(clinic_param))
            except ValueError:
                raise ValidationError({"clinic": "Must be an integer."})

        payments = payment_qs.aggregate(
            count=Count("id"),
            gross=Coalesce(Sum("amount_paid"), 0),
            refunded=Coalesce(Sum("refund_amount"), 0),
            platform_fees=Coalesce(Sum("platform_fee"), 0),
        )
        clinics = Clinic.objects.aggregate(
            total=Count("id"),
            connected=Count("id", filter=Q(stripe_status=Clinic.STRIPE_CONNECTED)),
        )
        return Response({
            "clinics": clinics,
            "payments": payments,
            "active_plans": Plan.objects.filter(status__in=[Plan.STATUS_ACTIVE, Plan.STATUS_PENDING]).count(),
            "platform_fee_percent": get_platform_fee_percent(),
        })
