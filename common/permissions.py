"""
Permission classes and clinic scoping helpers.

Every clinic-side endpoint works on the caller's own clinic, resolved from
``request.user.profile.clinic`` on each request.  Platform admins (profile
role ``admin`` or Django staff) may see every clinic.
"""
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission


def is_platform_admin(user) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False
    if user.is_staff or user.is_superuser:
        return True
    profile = getattr(user, "profile", None)
    return bool(profile and profile.role == "admin")


def get_user_clinic(user):
    """Return the clinic attached to ``user``'s profile, or None."""
    profile = getattr(user, "profile", None)
    return getattr(profile, "clinic", None) if profile else None


class IsPlatformAdmin(BasePermission):
    """Allow access only to platform administrators."""

    def has_permission(self, request, view):
        return is_platform_admin(request.user)


class IsClinicMember(BasePermission):
    """Require an authenticated user who belongs to a clinic."""

    message = "No clinic is associated with this account."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return get_user_clinic(user) is not None

    def has_object_permission(self, request, view, obj):
        clinic = get_user_clinic(request.user)
        return clinic is not None and getattr(obj, "clinic_id", None) == clinic.id


class ClinicScopedMixin:
    """Restrict a viewset's queryset to the caller's clinic.

    Views using this mixin set ``permission_classes = [IsClinicMember]``
    and get ``self.clinic`` plus automatic filtering on ``clinic``.
    """

    clinic_field = "clinic"

    @property
    def clinic(self):
        clinic = get_user_clinic(self.request.user)
        if clinic is None:
            raise PermissionDenied("No clinic is associated with this account.")
        return clinic

    def get_queryset(self):
        qs = super().get_queryset()
        return qs.filter(**{self.clinic_field: self.clinic})
