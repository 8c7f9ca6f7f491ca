"""
URL configuration for the clinic payments backend.

All API endpoints live under ``/api/``; authentication endpoints are
nested under ``/api/auth/``.  The OpenAPI schema and Swagger/Redoc pages
are served by drf-spectacular.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView

from clinics.views import AdminStatsView

urlpatterns = [
    path("admin/", admin.site.urls),

    path("api/", RedirectView.as_view(pattern_name="swagger-ui", permanent=False)),

    # Swagger/Redoc
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),

    # Auth endpoints
    path("api/auth/", include("users.urls")),

    path("api/clinics/", include("clinics.urls")),
    path("api/admin/stats/", AdminStatsView.as_view(), name="admin-stats"),
    path("api/", include("patients.urls")),
    path("api/", include("payment_links.urls")),
    path("api/", include("plans.urls")),
    path("api/", include("payments.urls")),
]

if settings.DEBUG and getattr(settings, "MEDIA_URL", "").startswith("/"):
    # Only serve MEDIA_URL via Django if it's a local path (never S3)
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
