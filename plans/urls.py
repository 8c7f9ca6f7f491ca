from rest_framework.routers import SimpleRouter

from .views import InstallmentViewSet, PlanViewSet

router = SimpleRouter()
router.register(r"plans", PlanViewSet, basename="plan")
router.register(r"installments", InstallmentViewSet, basename="installment")

urlpatterns = router.urls
