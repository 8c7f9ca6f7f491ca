"""
Serializer fields shared across apps.
"""
from rest_framework import serializers

from .currency import parse_pounds_to_pence, pence_to_pounds


class PoundsField(serializers.Field):
    """Pence in the database, pounds on the wire.

    Accepts ``"12.50"`` or ``12.5`` and stores ``1250``; renders ``1250``
    as ``"12.50"``.
    """

    default_error_messages = {"invalid": "{message}"}

    def to_internal_value(self, data):
        try:
            return parse_pounds_to_pence(data)
        except ValueError as exc:
            self.fail("invalid", message=str(exc))

    def to_representation(self, value):
        if value is None:
            return None
        return str(pence_to_pounds(value))
