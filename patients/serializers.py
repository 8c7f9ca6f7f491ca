"""
Serializers for the patients app.
"""
from rest_framework import serializers

from common.fields import PoundsField

from .models import Patient


class PatientSerializer(serializers.ModelSerializer):
    payment_count = serializers.IntegerField(read_only=True, default=0)
    total_spent = PoundsField(read_only=True, default=0)
    last_payment_date = serializers.DateTimeField(read_only=True, default=None)

    class Meta:
        model = Patient
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "notes",
            "payment_count",
            "total_spent",
            "last_payment_date",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_email(self, value: str) -> str:
        return (value or "").strip().lower()

    def validate(self, attrs):
        clinic = self.context.get("clinic")
        email = attrs.get("email")
        if clinic is not None and email:
            qs = Patient.objects.filter(clinic=clinic, email__iexact=email)
            if self.instance is not None:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError({"email": "A patient with this email already exists."})
        return attrs
