"""
Tests for the adapter registry.
"""

import pytest

from payments.adapters.gateway_adapter import GatewayAdapter
from payments.adapters.registry import build_adapters, get_adapter
from payments.adapters.stripe_adapter import StripeConnectAdapter
from payments.exceptions import PaymentValidationError
from payments.state_machines import ProviderKind


def test_build_adapters_creates_one_per_provider(payments_config):
    adapters = build_adapters(payments_config)

    assert isinstance(adapters[ProviderKind.CONNECT], StripeConnectAdapter)
    assert isinstance(adapters[ProviderKind.GATEWAY], GatewayAdapter)
    assert adapters[ProviderKind.GATEWAY].settlement_currency == "pyg"
    assert adapters[ProviderKind.GATEWAY].minimum_fee_floor == 2500


def test_get_adapter_unknown_kind(adapters):
    with pytest.raises(PaymentValidationError) as exc_info:
        get_adapter("paypal", adapters)

    assert exc_info.value.error_code == "UNKNOWN_PROVIDER"
    assert exc_info.value.details["known"] == ["connect", "gateway"]


def test_get_adapter_from_settings():
    assert isinstance(get_adapter(ProviderKind.CONNECT), StripeConnectAdapter)
