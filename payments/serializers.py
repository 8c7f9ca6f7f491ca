"""
Serializers for the payments app.

Pence amounts are rendered in pounds.  Refund and payment-intent inputs
accept pounds and are converted to pence before they reach the services.
"""
from __future__ import annotations

from rest_framework import serializers

from common.fields import PoundsField

from .models import Payment, PaymentRequest


class PaymentSerializer(serializers.ModelSerializer):
    """Read-only view of a recorded payment."""

    amount_paid = PoundsField(read_only=True)
    refund_amount = PoundsField(read_only=True)
    platform_fee = PoundsField(read_only=True)
    stripe_fee = PoundsField(read_only=True)
    net_amount = PoundsField(read_only=True)
    refundable_amount = PoundsField(read_only=True)
    payment_link_title = serializers.CharField(source="payment_link.title", read_only=True, default=None)
    plan_id = serializers.IntegerField(source="payment_schedule.plan_id", read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            "id",
            "payment_ref",
            "patient",
            "patient_name",
            "patient_email",
            "patient_phone",
            "payment_link",
            "payment_link_title",
            "payment_schedule",
            "plan_id",
            "amount_paid",
            "refund_amount",
            "refundable_amount",
            "platform_fee",
            "stripe_fee",
            "net_amount",
            "method",
            "status",
            "stripe_payment_id",
            "paid_at",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields


class PaymentRequestSerializer(serializers.ModelSerializer):
    amount = PoundsField(read_only=True)
    custom_amount = PoundsField(read_only=True)
    payment_link_title = serializers.CharField(source="payment_link.title", read_only=True, default=None)
    installment_id = serializers.SerializerMethodField()

    class Meta:
        model = PaymentRequest
        fields = [
            "id",
            "token",
            "patient",
            "patient_name",
            "patient_email",
            "patient_phone",
            "payment_link",
            "payment_link_title",
            "custom_amount",
            "amount",
            "message",
            "status",
            "payment",
            "installment_id",
            "sent_at",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_installment_id(self, obj):
        installment = obj.installment
        return installment.pk if installment else None


class PaymentPageSerializer(serializers.Serializer):
    """What the public payment page needs to render, for a request or a link."""

    def to_representation(self, target):
        clinic = target["clinic"]
        link = target["payment_link"]
        pr = target["payment_request"]
        installment = target["installment"]
        data = {
            "type": "request" if pr is not None else "link",
            "amount": PoundsField().to_representation(target["amount"]),
            "title": link.title if link else "Payment",
            "description": link.description if link else "",
            "message": pr.message if pr else "",
            "status": pr.status if pr else ("active" if link.is_active else "archived"),
            "is_payable": pr.is_payable if pr else link.is_active and not link.is_plan,
            "patient_name": pr.patient_name if pr else "",
            "patient_email": pr.patient_email if pr else "",
            "clinic": {
                "name": clinic.clinic_name,
                "email": clinic.email,
                "phone": clinic.phone,
                "address": clinic.formatted_address,
                "logo": clinic.logo.url if clinic.logo else None,
                "payments_enabled": clinic.is_stripe_connected,
            },
            "installment": None,
        }
        if installment is not None:
            data["installment"] = {
                "payment_number": installment.payment_number,
                "total_payments": installment.total_payments,
                "due_date": installment.due_date.isoformat(),
                "plan_title": installment.plan.title,
            }
        return data


class PaymentIntentSerializer(serializers.Serializer):
    request_token = serializers.UUIDField(required=False, allow_null=True)
    link_token = serializers.UUIDField(required=False, allow_null=True)
    amount = PoundsField(required=False, allow_null=True)
    patient_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    patient_email = serializers.EmailField(required=False, allow_blank=True, default="")
    patient_phone = serializers.CharField(required=False, allow_blank=True, default="", max_length=50)

    def validate(self, attrs):
        if bool(attrs.get("request_token")) == bool(attrs.get("link_token")):
            raise serializers.ValidationError("Provide exactly one of request_token or link_token.")
        return attrs


class RefundSerializer(serializers.Serializer):
    amount = PoundsField(required=False, allow_null=True)
    full_refund = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get("full_refund") and not attrs.get("amount"):
            raise serializers.ValidationError("Enter a refund amount or request a full refund.")
        return attrs
