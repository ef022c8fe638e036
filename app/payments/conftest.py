"""
Shared pytest fixtures for the payments app.

Every payments test gets a mocked Redis connection (so DistributedLock
works without a server) and fresh process-wide singletons.

Usage:
    def test_submit(orchestrator, eligible_vendor):
        record = orchestrator.submit(
            PaymentRequest(amount=10000, currency="usd", vendor_account_id="acct_vendor")
        )
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.core.cache import cache

from payments.config import PaymentsConfig, ProviderSettings, get_payments_config
from payments.money import ExchangeRateTable
from payments.services.container import build_payment_services, get_payment_services
from payments.state_machines import (
    OnboardingStatus,
    PaymentIntentStatus,
    ProviderKind,
)
from payments.tests.factories import (
    PaymentIntentRecordFactory,
    VendorAccountFactory,
)
from payments.tests.fakes import FakeAdapter, InMemoryRedisLocks

# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture(autouse=True)
def mock_redis(mocker):
    """
    Mock Redis client for distributed locks.

    set() always succeeds, so a lock is free unless a test says otherwise.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.eval.return_value = 1

    mocker.patch("payments.locks.get_redis_connection", return_value=mock_client)
    return mock_client


@pytest.fixture
def redis_locks(mock_redis):
    """Give the mocked Redis real SET NX semantics for threaded tests."""
    locks = InMemoryRedisLocks()
    mock_redis.set.side_effect = locks.set
    mock_redis.eval.side_effect = locks.eval
    return locks


@pytest.fixture(autouse=True)
def reset_payment_singletons():
    """Drop cached config/services and the idempotency cache between tests."""
    get_payments_config.cache_clear()
    get_payment_services.cache_clear()
    cache.clear()
    yield
    get_payments_config.cache_clear()
    get_payment_services.cache_clear()
    cache.clear()


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def connect_settings():
    return ProviderSettings(
        kind=ProviderKind.CONNECT,
        secret_key="sk_test_123",
        publishable_key="pk_test_123",
        webhook_secret="whsec_test_secret",
        settlement_currency="usd",
        minimum_fee=0,
    )


@pytest.fixture
def gateway_settings():
    return ProviderSettings(
        kind=ProviderKind.GATEWAY,
        secret_key="gw_private_123",
        publishable_key="gw_public_123",
        webhook_secret="gw_webhook_secret",
        settlement_currency="pyg",
        minimum_fee=2500,
        api_base_url="https://api.gateway.test",
    )


@pytest.fixture
def payments_config(connect_settings, gateway_settings):
    """5% commission, 50 minor-unit floor, explicit PYG/USD rates."""
    return PaymentsConfig(
        commission_rate=Decimal("0.05"),
        minimum_fee=50,
        lock_timeout=0.5,
        exchange_rates=ExchangeRateTable(
            {
                ("pyg", "usd"): Decimal("0.000137"),
                ("usd", "pyg"): Decimal("7300"),
            }
        ),
        providers={
            ProviderKind.CONNECT: connect_settings,
            ProviderKind.GATEWAY: gateway_settings,
        },
    )


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def connect_adapter(connect_settings):
    return FakeAdapter(connect_settings, kind=ProviderKind.CONNECT)


@pytest.fixture
def gateway_adapter(gateway_settings):
    return FakeAdapter(gateway_settings, kind=ProviderKind.GATEWAY)


@pytest.fixture
def adapters(connect_adapter, gateway_adapter):
    return {
        ProviderKind.CONNECT: connect_adapter,
        ProviderKind.GATEWAY: gateway_adapter,
    }


@pytest.fixture
def payment_services(payments_config, adapters):
    return build_payment_services(payments_config, adapters)


@pytest.fixture
def vendor_registry(payment_services):
    return payment_services.vendor_registry


@pytest.fixture
def orchestrator(payment_services):
    return payment_services.orchestrator


@pytest.fixture
def webhook_processor(payment_services):
    return payment_services.webhook_processor


@pytest.fixture
def use_payment_services(mocker, payment_services):
    """Make views and tasks see the test services instead of settings-built ones."""
    mocker.patch(
        "payments.services.container.get_payment_services",
        return_value=payment_services,
    )
    for module in ("payments.views", "payments.webhooks.views", "payments.tasks"):
        mocker.patch(f"{module}.get_payment_services", return_value=payment_services)
    return payment_services


# =============================================================================
# Vendor Accounts
# =============================================================================


@pytest.fixture
def eligible_vendor(db):
    """Connect vendor with transfers enabled."""
    return VendorAccountFactory(provider_account_id="acct_vendor")


@pytest.fixture
def gateway_vendor(db):
    """Gateway merchant with transfers enabled."""
    return VendorAccountFactory(
        provider_account_id="gw_merchant_1",
        provider_kind=ProviderKind.GATEWAY,
    )


@pytest.fixture
def onboarding_vendor(db):
    """Vendor that submitted details but cannot receive payouts yet."""
    return VendorAccountFactory(
        provider_account_id="acct_onboarding",
        onboarding_status=OnboardingStatus.DETAILS_SUBMITTED,
        charges_enabled=False,
        transfers_enabled=False,
        requirements=["external_account"],
    )


@pytest.fixture
def restricted_vendor(db):
    return VendorAccountFactory(
        provider_account_id="acct_restricted",
        onboarding_status=OnboardingStatus.RESTRICTED,
        transfers_enabled=False,
        disabled_reason="requirements.past_due",
    )


# =============================================================================
# Payment Records
# =============================================================================


@pytest.fixture
def created_record(eligible_vendor):
    return PaymentIntentRecordFactory(
        provider_transaction_id="connect_pay_100",
        vendor_account=eligible_vendor,
    )


@pytest.fixture
def processing_record(eligible_vendor):
    return PaymentIntentRecordFactory(
        provider_transaction_id="connect_pay_200",
        vendor_account=eligible_vendor,
        status=PaymentIntentStatus.PROCESSING,
    )


@pytest.fixture
def succeeded_record(eligible_vendor):
    return PaymentIntentRecordFactory(
        provider_transaction_id="connect_pay_300",
        vendor_account=eligible_vendor,
        status=PaymentIntentStatus.SUCCEEDED,
    )
