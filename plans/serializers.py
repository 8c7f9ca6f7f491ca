"""
Serializers for the plans app.
"""
from __future__ import annotations

from rest_framework import serializers

from common.fields import PoundsField

from .models import PaymentActivity, PaymentSchedule, Plan


class PaymentScheduleSerializer(serializers.ModelSerializer):
    amount = PoundsField(read_only=True)
    payment_request_token = serializers.UUIDField(source="payment_request.token", read_only=True, default=None)

    class Meta:
        model = PaymentSchedule
        fields = [
            "id",
            "plan",
            "payment_number",
            "total_payments",
            "amount",
            "due_date",
            "payment_frequency",
            "status",
            "payment_request",
            "payment_request_token",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PlanSerializer(serializers.ModelSerializer):
    total_amount = PoundsField(read_only=True)
    installment_amount = PoundsField(read_only=True)
    patient_name = serializers.CharField(source="patient.name", read_only=True)
    patient_email = serializers.CharField(source="patient.email", read_only=True)

    class Meta:
        model = Plan
        fields = [
            "id",
            "title",
            "description",
            "patient",
            "patient_name",
            "patient_email",
            "payment_link",
            "total_amount",
            "installment_amount",
            "total_installments",
            "paid_installments",
            "progress",
            "payment_frequency",
            "start_date",
            "next_due_date",
            "has_overdue_payments",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PlanDetailSerializer(PlanSerializer):
    installments = PaymentScheduleSerializer(many=True, read_only=True)

    class Meta(PlanSerializer.Meta):
        fields = PlanSerializer.Meta.fields + ["installments"]
        read_only_fields = fields


class PaymentActivitySerializer(serializers.ModelSerializer):
    performed_by_email = serializers.EmailField(source="performed_by.email", read_only=True, default=None)

    class Meta:
        model = PaymentActivity
        fields = [
            "id",
            "action_type",
            "details",
            "plan",
            "patient",
            "payment_link",
            "performed_by",
            "performed_by_email",
            "created_at",
        ]
        read_only_fields = fields


class ResumePlanSerializer(serializers.Serializer):
    resume_date = serializers.DateField(required=False, allow_null=True)


class CancelPlanSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)


class ReschedulePlanSerializer(serializers.Serializer):
    start_date = serializers.DateField()
