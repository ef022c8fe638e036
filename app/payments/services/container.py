"""
Wiring for the payment services.

Views and tasks call get_payment_services() instead of constructing
services by hand, so every entry point shares one configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

from payments.adapters.registry import build_adapters
from payments.config import get_payments_config
from payments.services.payment_orchestrator import PaymentOrchestrator
from payments.services.vendor_registry import VendorAccountRegistry
from payments.webhooks.processor import WebhookProcessor

if TYPE_CHECKING:
    from payments.adapters.base import ProviderAdapter
    from payments.config import PaymentsConfig


@dataclass(frozen=True)
class PaymentServices:
    config: PaymentsConfig
    adapters: dict[str, ProviderAdapter]
    vendor_registry: VendorAccountRegistry
    orchestrator: PaymentOrchestrator
    webhook_processor: WebhookProcessor


def build_payment_services(
    config: PaymentsConfig | None = None,
    adapters: dict[str, ProviderAdapter] | None = None,
) -> PaymentServices:
    config = config or get_payments_config()
    adapters = adapters if adapters is not None else build_adapters(config)
    vendor_registry = VendorAccountRegistry(config, adapters)
    orchestrator = PaymentOrchestrator(config, adapters, vendor_registry)
    return PaymentServices(
        config=config,
        adapters=adapters,
        vendor_registry=vendor_registry,
        orchestrator=orchestrator,
        webhook_processor=WebhookProcessor(
            config, adapters, orchestrator, vendor_registry
        ),
    )


@lru_cache(maxsize=1)
def get_payment_services() -> PaymentServices:
    """Process-wide services built from Django settings on first use."""
    return build_payment_services()
