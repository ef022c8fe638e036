"""
URL configuration for the payments app.

Routes:
    - POST payments/ - Submit a payment
    - POST payments/quote/ - Commission quote
    - GET payments/<provider_transaction_id>/status/ - Poll status
    - POST vendors/ - Register vendor account
    - GET vendors/<provider_account_id>/status/ - Vendor readiness
    - GET client-config/ - Publishable keys
    - POST webhooks/<provider_kind>/ - Provider webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import provider_webhook

app_name = "payments"

urlpatterns = [
    path("payments/", views.CreatePaymentView.as_view(), name="create_payment"),
    path("payments/quote/", views.PaymentQuoteView.as_view(), name="quote_payment"),
    path(
        "payments/<str:provider_transaction_id>/status/",
        views.PaymentStatusView.as_view(),
        name="payment_status",
    ),
    path("vendors/", views.RegisterVendorView.as_view(), name="register_vendor"),
    path(
        "vendors/<str:provider_account_id>/status/",
        views.VendorStatusView.as_view(),
        name="vendor_status",
    ),
    path("client-config/", views.ClientConfigView.as_view(), name="client_config"),
    # Webhook endpoints
    path("webhooks/<str:provider_kind>/", provider_webhook, name="provider_webhook"),
]
