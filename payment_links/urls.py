from rest_framework.routers import SimpleRouter

from .views import PaymentLinkViewSet

router = SimpleRouter()
router.register(r"payment-links", PaymentLinkViewSet, basename="payment-link")

urlpatterns = router.urls
