"""
Payment provider adapters.

All provider API calls go through these adapters to ensure consistent
error handling, timeouts, idempotency and observability. Services depend
only on the ProviderAdapter interface and look adapters up by kind.

Usage:
    from payments.adapters import build_adapters

    adapters = build_adapters(config)
    payment = adapters["connect"].create_platform_payment(
        Money(5000, "usd"), idempotency_key="order-7"
    )
"""

from payments.adapters.base import (
    EVENT_ACCOUNT_UPDATED,
    EVENT_PAYMENT_CANCELED,
    EVENT_PAYMENT_FAILED,
    EVENT_PAYMENT_PROCESSING,
    EVENT_PAYMENT_REQUIRES_ACTION,
    EVENT_PAYMENT_SUCCEEDED,
    EVENT_UNKNOWN,
    ProviderAdapter,
    ProviderEvent,
    ProviderPayment,
    VendorAccountSnapshot,
)
from payments.adapters.gateway_adapter import GatewayAdapter
from payments.adapters.registry import build_adapters, get_adapter
from payments.adapters.stripe_adapter import StripeConnectAdapter

__all__ = [
    "EVENT_ACCOUNT_UPDATED",
    "EVENT_PAYMENT_CANCELED",
    "EVENT_PAYMENT_FAILED",
    "EVENT_PAYMENT_PROCESSING",
    "EVENT_PAYMENT_REQUIRES_ACTION",
    "EVENT_PAYMENT_SUCCEEDED",
    "EVENT_UNKNOWN",
    "GatewayAdapter",
    "ProviderAdapter",
    "ProviderEvent",
    "ProviderPayment",
    "StripeConnectAdapter",
    "VendorAccountSnapshot",
    "build_adapters",
    "get_adapter",
]
