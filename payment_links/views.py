"""
Views for the payment_links app.

Links are never deleted: ``DELETE`` archives them, as does the ``archive``
action.  ``send`` turns a link (or a custom amount) into a payment request
for a patient, or starts a payment plan when the link is a plan link.
"""
from __future__ import annotations

import logging

from django.db import transaction
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from common.permissions import ClinicScopedMixin, IsClinicMember
from patients.services import find_or_create_patient
from payments.payment_requests import create_payment_request
from payments.serializers import PaymentRequestSerializer
from plans.serializers import PlanDetailSerializer
from plans.services import create_plan_from_link

from .models import PaymentLink
from .serializers import PaymentLinkSerializer, SendPaymentSerializer

logger = logging.getLogger(__name__)

TRUTHY = ("1", "true", "t", "yes", "y")


class PaymentLinkViewSet(ClinicScopedMixin, viewsets.ModelViewSet):
    queryset = PaymentLink.objects.all()
    serializer_class = PaymentLinkSerializer
    permission_classes = [IsClinicMember]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        active = params.get("active")
        if active is not None and self.action == "list":
            qs = qs.filter(is_active=active.lower() in TRUTHY)
        link_type = params.get("type")
        if link_type:
            qs = qs.filter(type=link_type)
        q = (params.get("q") or "").strip()
        if q:
            qs = qs.filter(title__icontains=q)
        return qs.order_by("-created_at")

    def perform_create(self, serializer):
        link = serializer.save(clinic=self.clinic)
        logger.info("Payment link %s created for clinic %s", link.pk, link.clinic_id)

    def perform_destroy(self, instance):
        # archived, not deleted: payments and plans still reference the link
        instance.set_active(False)
        logger.info("Payment link %s archived", instance.pk)

    @action(detail=True, methods=["post"])
    def archive(self, request, pk=None):
        link = self.get_object()
        link.set_active(False)
        return Response(self.get_serializer(link).data)

    @action(detail=True, methods=["post"])
    def unarchive(self, request, pk=None):
        link = self.get_object()
        link.set_active(True)
        return Response(self.get_serializer(link).data)

    @action(detail=False, methods=["post"])
    def send(self, request):
        """Send a payment request, or start a plan for plan links."""
        clinic = self.clinic
        s = SendPaymentSerializer(data=request.data, context={"clinic": clinic})
        s.is_valid(raise_exception=True)
        data = s.validated_data
        link = data.get("payment_link")

        with transaction.atomic():
            patient = data.get("patient") or find_or_create_patient(
                clinic,
                name=data["patient_name"],
                email=data["patient_email"],
                phone=data["patient_phone"],
            )
            if link is not None and link.is_plan:
                plan = create_plan_from_link(
                    clinic,
                    patient,
                    link,
                    start_date=data.get("start_date"),
                    message=data["message"],
                    user=request.user,
                )
                return Response(
                    {"kind": "plan", "plan": PlanDetailSerializer(plan).data},
                    status=status.HTTP_201_CREATED,
                )
            pr = create_payment_request(
                clinic,
                patient,
                payment_link=link,
                custom_amount=data.get("custom_amount"),
                message=data["message"],
            )
        return Response(
            {"kind": "payment_request", "payment_request": PaymentRequestSerializer(pr).data},
            status=status.HTTP_201_CREATED,
        )
