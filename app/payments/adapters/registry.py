"""
Adapter registry keyed by ProviderKind.

Usage:
    from payments.adapters import get_adapter

    adapter = get_adapter(vendor.provider_kind)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from payments.adapters.gateway_adapter import GatewayAdapter
from payments.adapters.stripe_adapter import StripeConnectAdapter
from payments.exceptions import PaymentValidationError
from payments.state_machines import ProviderKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from payments.adapters.base import ProviderAdapter
    from payments.config import PaymentsConfig


ADAPTER_CLASSES: dict[str, type[ProviderAdapter]] = {
    ProviderKind.CONNECT: StripeConnectAdapter,
    ProviderKind.GATEWAY: GatewayAdapter,
}


def build_adapters(config: PaymentsConfig) -> dict[str, ProviderAdapter]:
    """One adapter per known provider kind, configured from config."""
    return {
        kind: adapter_class(
            config.provider(kind), default_timeout=config.provider_timeout
        )
        for kind, adapter_class in ADAPTER_CLASSES.items()
    }


def get_adapter(
    kind: str, adapters: Mapping[str, ProviderAdapter] | None = None
) -> ProviderAdapter:
    """
    Look up the adapter for a provider kind.

    Args:
        kind: ProviderKind value
        adapters: Registry to search (defaults to one built from settings)

    Raises:
        PaymentValidationError: Unknown provider kind
    """
    if adapters is None:
        from payments.config import get_payments_config

        adapters = build_adapters(get_payments_config())
    try:
        return adapters[kind]
    except KeyError:
        raise PaymentValidationError(
            f"Unknown payment provider: {kind!r}",
            error_code="UNKNOWN_PROVIDER",
            details={"provider": kind, "known": sorted(adapters)},
        ) from None
