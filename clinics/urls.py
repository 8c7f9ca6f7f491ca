"""
URL configuration for the clinics app.

Include under ``/api/clinics/``.  The ``me/`` routes are declared before
the router so ``me`` is never treated as a clinic id.
"""
from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import ClinicMeView, ClinicViewSet, PlatformFeeView, StripeConnectStatusView, StripeConnectView

router = SimpleRouter()
router.register(r"", ClinicViewSet, basename="clinic")

urlpatterns = [
    path("me/", ClinicMeView.as_view(), name="clinic-me"),
    path("me/stripe/connect/", StripeConnectView.as_view(), name="clinic-stripe-connect"),
    path("me/stripe/status/", StripeConnectStatusView.as_view(), name="clinic-stripe-status"),
    path("platform-fee/", PlatformFeeView.as_view(), name="platform-fee"),
    *router.urls,
]
