"""
Payments app configuration.

This app provides the payment orchestration engine:
- Commission splitting between platform and vendors
- Stripe Connect and regional gateway adapters
- Vendor account readiness tracking
- Exactly-once webhook processing
"""

from django.apps import AppConfig


class PaymentsAppConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self) -> None:
        # Register webhook event handlers
        from payments.webhooks import handlers  # noqa: F401
