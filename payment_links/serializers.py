"""
Serializers for the payment_links app.

Amounts are exchanged in pounds (``"45.00"``) and stored in pence.
"""
from __future__ import annotations

from rest_framework import serializers

from common.fields import PoundsField
from patients.models import Patient

from .models import PaymentLink


class PaymentLinkSerializer(serializers.ModelSerializer):
    amount = PoundsField()
    plan_total_amount = PoundsField(read_only=True)
    total_amount = PoundsField(read_only=True)
    payment_count = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=120)

    class Meta:
        model = PaymentLink
        fields = [
            "id",
            "token",
            "title",
            "description",
            "amount",
            "type",
            "payment_plan",
            "payment_count",
            "payment_cycle",
            "plan_total_amount",
            "total_amount",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "token", "is_active", "created_at", "updated_at"]

    def validate(self, attrs):
        def current(name):
            if name in attrs:
                return attrs[name]
            return getattr(self.instance, name, None) if self.instance is not None else None

        is_plan = bool(current("payment_plan")) or current("type") == PaymentLink.TYPE_PAYMENT_PLAN
        if is_plan:
            errors = {}
            count = current("payment_count")
            cycle = current("payment_cycle")
            if not count:
                errors["payment_count"] = "Payment plans need a number of payments."
            if not cycle:
                errors["payment_cycle"] = "Payment plans need a payment cycle."
            if errors:
                raise serializers.ValidationError(errors)
            attrs["payment_plan"] = True
            attrs["type"] = PaymentLink.TYPE_PAYMENT_PLAN
            attrs["plan_total_amount"] = current("amount") * count
        else:
            attrs["payment_plan"] = False
            attrs["payment_count"] = None
            attrs["payment_cycle"] = ""
            attrs["plan_total_amount"] = None
        return attrs


class SendPaymentSerializer(serializers.Serializer):
    """Input for sending a payment request (or starting a plan) to a patient.

    Either ``payment_link`` or ``custom_amount`` must be given.  The patient
    is an existing ``patient`` id or name/email/phone details.
    """

    payment_link = serializers.PrimaryKeyRelatedField(queryset=PaymentLink.objects.none(), required=False, allow_null=True)
    custom_amount = PoundsField(required=False, allow_null=True)
    patient = serializers.PrimaryKeyRelatedField(queryset=Patient.objects.none(), required=False, allow_null=True)
    patient_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    patient_email = serializers.EmailField(required=False, allow_blank=True, default="")
    patient_phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    message = serializers.CharField(required=False, allow_blank=True, default="")
    start_date = serializers.DateField(required=False, allow_null=True)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        clinic = self.context.get("clinic")
        if clinic is not None:
            self.fields["payment_link"].queryset = PaymentLink.objects.filter(clinic=clinic, is_active=True)
            self.fields["patient"].queryset = Patient.objects.filter(clinic=clinic)

    def validate(self, attrs):
        link = attrs.get("payment_link")
        if link is None and not attrs.get("custom_amount"):
            raise serializers.ValidationError("Choose a payment link or enter a custom amount.")
        if link is not None and link.is_plan and attrs.get("custom_amount"):
            raise serializers.ValidationError({"custom_amount": "Payment plans cannot use a custom amount."})

        patient = attrs.get("patient")
        if patient is None:
            if not attrs.get("patient_name"):
                raise serializers.ValidationError({"patient_name": "Patient name is required."})
            if not (attrs.get("patient_email") or attrs.get("patient_phone")):
                raise serializers.ValidationError("An email address or phone number is required.")
        return attrs
