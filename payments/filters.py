"""
django-filter FilterSet definitions for the payments app.

``date_from``/``date_to`` bound the day a payment was received and ``q``
searches the reference and the patient snapshot fields.  Malformed dates
are rejected by the filter backend with a 400 response.
"""
from django.db.models import Q
from django_filters import rest_framework as filters

from .models import Payment


class PaymentFilter(filters.FilterSet):
    date_from = filters.DateFilter(field_name="paid_at", lookup_expr="date__gte")
    date_to = filters.DateFilter(field_name="paid_at", lookup_expr="date__lte")
    q = filters.CharFilter(method="filter_q")

    class Meta:
        model = Payment
        fields = ["status", "method", "patient", "payment_link"]

    def filter_q(self, queryset, name, value):
        value = (value or "").strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(payment_ref__icontains=value) | Q(patient_name__icontains=value) | Q(patient_email__icontains=value)
        )
