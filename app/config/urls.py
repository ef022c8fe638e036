"""
URL configuration for the marketplace payments service.

URL Structure:
    /                              - ReDoc API documentation
    /schema/                       - OpenAPI schema (YAML)
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /api/v1/auth/token/            - Obtain JWT pair
    /api/v1/auth/token/refresh/    - Refresh JWT access token
    /api/v1/payments/              - Payment endpoints
        payments/                  - Submit a payment (POST)
        payments/quote/            - Commission quote (POST)
        payments/{id}/status/      - Poll provider status (GET)
        vendors/                   - Register vendor account (POST)
        vendors/{id}/status/       - Refresh vendor readiness (GET)
        client-config/             - Publishable keys (GET)
        webhooks/{provider}/       - Provider webhook intake (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Marketplace Payments Admin"
admin.site.site_title = "Payments Admin"
admin.site.index_title = "Payments, vendors and webhook events"
