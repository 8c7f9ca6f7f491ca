"""
Serializers for the clinics app.
"""
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from common.fields import PoundsField

from .models import Clinic


class ClinicSerializer(serializers.ModelSerializer):
    """Clinic profile as seen by its own staff."""

    is_stripe_connected = serializers.BooleanField(read_only=True)
    formatted_address = serializers.CharField(read_only=True)

    class Meta:
        model = Clinic
        fields = [
            "id",
            "clinic_name",
            "contact_name",
            "email",
            "phone",
            "address_line_1",
            "address_line_2",
            "city",
            "postcode",
            "country",
            "logo",
            "email_notifications",
            "sms_notifications",
            "stripe_status",
            "is_stripe_connected",
            "formatted_address",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "stripe_status", "created_at", "updated_at"]

    def validate_clinic_name(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Clinic name is required.")
        return value


class AdminClinicSerializer(ClinicSerializer):
    """Platform admin view: also exposes the connected account id and totals."""

    payments_count = serializers.IntegerField(read_only=True, default=0)
    total_received = PoundsField(read_only=True, default=0)

    class Meta(ClinicSerializer.Meta):
        fields = ClinicSerializer.Meta.fields + ["stripe_account_id", "payments_count", "total_received"]
        read_only_fields = ClinicSerializer.Meta.read_only_fields + ["stripe_account_id"]


class PublicClinicSerializer(serializers.ModelSerializer):
    """Subset shown to patients on the payment page."""

    class Meta:
        model = Clinic
        fields = ["id", "clinic_name", "email", "phone", "logo", "formatted_address"]


class PlatformFeeSerializer(serializers.Serializer):
    platform_fee_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100")
    )
