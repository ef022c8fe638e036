"""
Payment services.

- PaymentOrchestrator: submit payments, quote splits, apply transitions
- VendorAccountRegistry: vendor registration and payout readiness
- build_payment_services: shared wiring for views and tasks
"""

from payments.services.container import (
    PaymentServices,
    build_payment_services,
    get_payment_services,
)
from payments.services.payment_orchestrator import (
    PaymentOrchestrator,
    PaymentPlan,
    PaymentRequest,
)
from payments.services.vendor_registry import VendorAccountRegistry, derive_status

__all__ = [
    "PaymentOrchestrator",
    "PaymentPlan",
    "PaymentRequest",
    "PaymentServices",
    "VendorAccountRegistry",
    "build_payment_services",
    "get_payment_services",
    "derive_status",
]
