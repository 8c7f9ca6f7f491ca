"""
Views for the patients app.

Patients are always scoped to the caller's clinic.  The list is annotated
with payment totals so the dashboard table needs a single request.
"""
from __future__ import annotations

import logging

from django.db.models import Count, Max, Q, Sum
from django.db.models.functions import Coalesce
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from common.permissions import ClinicScopedMixin, IsClinicMember
from plans.serializers import PaymentActivitySerializer, PlanSerializer

from .models import Patient
from .serializers import PatientSerializer
from .services import delete_patient

logger = logging.getLogger(__name__)


class PatientViewSet(ClinicScopedMixin, viewsets.ModelViewSet):
    queryset = Patient.objects.all()
    serializer_class = PatientSerializer
    permission_classes = [IsClinicMember]

    def get_queryset(self):
        qs = super().get_queryset().annotate(
            payment_count=Count("payments", distinct=True),
            total_spent=Coalesce(Sum("payments__amount_paid"), 0),
            last_payment_date=Max("payments__paid_at"),
        )
        q = (self.request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(Q(name__icontains=q) | Q(email__icontains=q) | Q(phone__icontains=q))
        return qs.order_by("name", "id")

    def get_serializer_context(self):
        ctx = super().get_serializer_context()
        if self.request and self.request.user.is_authenticated:
            ctx["clinic"] = self.clinic
        return ctx

    def perform_create(self, serializer):
        patient = serializer.save(clinic=self.clinic)
        logger.info("Patient %s created for clinic %s", patient.pk, patient.clinic_id)

    def perform_destroy(self, instance):
        delete_patient(instance)

    @action(detail=True, methods=["get"])
    def activity(self, request, pk=None):
        patient = self.get_object()
        rows = patient.activities.select_related("performed_by").order_by("-created_at")
        page = self.paginate_queryset(rows)
        if page is not None:
            return self.get_paginated_response(PaymentActivitySerializer(page, many=True).data)
        return Response(PaymentActivitySerializer(rows, many=True).data)

    @action(detail=True, methods=["get"])
    def plans(self, request, pk=None):
        patient = self.get_object()
        rows = patient.plans.select_related("patient", "payment_link").order_by("-created_at")
        return Response(PlanSerializer(rows, many=True).data)
