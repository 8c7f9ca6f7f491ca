"""
URL configuration for the payments app.

Included under ``/api/`` in the project URL config.
"""
from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import (
    PaymentIntentView,
    PaymentPageView,
    PaymentRequestViewSet,
    PaymentViewSet,
    StripePublicKeyView,
    StripeWebhookView,
)

router = SimpleRouter()
router.register(r"payments", PaymentViewSet, basename="payment")
router.register(r"payment-requests", PaymentRequestViewSet, basename="payment-request")

urlpatterns = [
    path("payments/intent/", PaymentIntentView.as_view(), name="payment-intent"),
    path("payments/stripe-public-key/", StripePublicKeyView.as_view(), name="stripe-public-key"),
    path("payments/webhook/stripe/", StripeWebhookView.as_view(), name="stripe-webhook"),
    path("pay/<str:token>/", PaymentPageView.as_view(), name="payment-page"),
    *router.urls,
]
