"""
Views for the plans app.

Plans are created from a plan payment link (see ``payment_links``), so the
viewset is read-only apart from the workflow actions.  Each action hands
off to :mod:`plans.services`, which raises ``ServiceError`` subclasses the
project exception handler turns into 400 responses.
"""
from __future__ import annotations

import logging

from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from common.permissions import ClinicScopedMixin, IsClinicMember
from notifications.models import Notification

from . import services
from .models import PaymentSchedule, Plan
from .serializers import (
    CancelPlanSerializer,
    PaymentActivitySerializer,
    PaymentScheduleSerializer,
    PlanDetailSerializer,
    PlanSerializer,
    ReschedulePlanSerializer,
    ResumePlanSerializer,
)

logger = logging.getLogger(__name__)


class PlanViewSet(ClinicScopedMixin, viewsets.ReadOnlyModelViewSet):
    """
    /api/plans/            list (``?status=``, ``?patient=``)
    /api/plans/{id}/       detail with instalments
    /api/plans/{id}/pause/ | resume/ | cancel/ | reschedule/ | refresh-status/
    /api/plans/{id}/activity/
    """

    queryset = Plan.objects.select_related("patient", "payment_link")
    permission_classes = [IsClinicMember]

    def get_serializer_class(self):
        if self.action == "list":
            return PlanSerializer
        return PlanDetailSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        status_param = params.get("status")
        if status_param:
            qs = qs.filter(status__in=[s for s in status_param.split(",") if s])
        patient = params.get("patient")
        if patient and patient.isdigit():
            qs = qs.filter(patient_id=int(patient))
        if self.action != "list":
            qs = qs.prefetch_related("installments__payment_request")
        return qs.order_by("-created_at")

    def _detail(self, plan):
        plan = self.get_queryset().get(pk=plan.pk)
        return Response(PlanDetailSerializer(plan, context=self.get_serializer_context()).data)

    @action(detail=True, methods=["post"])
    def pause(self, request, pk=None):
        plan = services.pause_plan(self.get_object(), user=request.user)
        return self._detail(plan)

    @action(detail=True, methods=["post"])
    def resume(self, request, pk=None):
        s = ResumePlanSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        plan = services.resume_plan(
            self.get_object(), resume_date=s.validated_data.get("resume_date"), user=request.user
        )
        return self._detail(plan)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        s = CancelPlanSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        plan = services.cancel_plan(self.get_object(), user=request.user, reason=s.validated_data["reason"])
        return self._detail(plan)

    @action(detail=True, methods=["post"])
    def reschedule(self, request, pk=None):
        s = ReschedulePlanSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        plan = services.reschedule_plan(self.get_object(), s.validated_data["start_date"], user=request.user)
        return self._detail(plan)

    @action(detail=True, methods=["post"], url_path="refresh-status")
    def refresh_status(self, request, pk=None):
        plan = self.get_object()
        services.refresh_plan_status(plan, user=request.user)
        return self._detail(plan)

    @action(detail=True, methods=["get"])
    def activity(self, request, pk=None):
        plan = self.get_object()
        rows = plan.activities.select_related("performed_by")
        page = self.paginate_queryset(rows)
        if page is not None:
            return self.get_paginated_response(PaymentActivitySerializer(page, many=True).data)
        return Response(PaymentActivitySerializer(rows, many=True).data)


class InstallmentViewSet(ClinicScopedMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Single-instalment actions: mark as paid and send a reminder."""

    queryset = PaymentSchedule.objects.select_related("plan", "payment_request", "patient", "clinic")
    serializer_class = PaymentScheduleSerializer
    permission_classes = [IsClinicMember]

    @action(detail=True, methods=["post"], url_path="mark-paid")
    def mark_paid(self, request, pk=None):
        installment = self.get_object()
        payment = services.record_manual_payment(installment, user=request.user)
        installment.refresh_from_db()
        return Response({
            "installment": PaymentScheduleSerializer(installment).data,
            "payment_id": payment.pk,
            "payment_ref": payment.payment_ref,
        })

    @action(detail=True, methods=["post"])
    def remind(self, request, pk=None):
        notification: Notification = services.send_payment_reminder(self.get_object(), user=request.user)
        return Response({"queued": True, "notification_id": notification.pk})
