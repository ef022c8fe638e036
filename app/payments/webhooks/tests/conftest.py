"""
Pytest fixtures for webhook tests.

Deliveries are signed for FakeAdapter (plain hex HMAC in the
X-Fake-Signature header), so the processor, handlers and view all run
without a provider SDK.

Usage:
    def test_succeeded(deliver, processing_record):
        result = deliver(build_event("evt_1", "payment_succeeded", "connect_pay_200"))
        assert result.outcome == WebhookOutcome.ACCEPTED
"""

import pytest

from payments.state_machines import ProviderKind, WebhookEventStatus
from payments.tests.factories import WebhookEventFactory
from payments.tests.fakes import build_event, sign

WEBHOOK_SECRETS = {
    ProviderKind.CONNECT: "whsec_test_secret",
    ProviderKind.GATEWAY: "gw_webhook_secret",
}


# =============================================================================
# Delivery Fixtures
# =============================================================================


@pytest.fixture
def signed():
    """Signature header value for a raw body."""

    def _sign(raw_body: bytes, provider_kind: str = ProviderKind.CONNECT) -> str:
        return sign(raw_body, WEBHOOK_SECRETS[provider_kind])

    return _sign


@pytest.fixture
def deliver(webhook_processor, signed):
    """Run a correctly signed delivery through the processor."""

    def _deliver(raw_body: bytes, provider_kind: str = ProviderKind.CONNECT):
        return webhook_processor.handle_webhook(
            provider_kind, raw_body, signed(raw_body, provider_kind)
        )

    return _deliver


@pytest.fixture
def succeeded_event():
    """payment_succeeded for processing_record."""
    return build_event("evt_succeeded_1", "payment_succeeded", "connect_pay_200")


# =============================================================================
# Stored Event Fixtures
# =============================================================================


@pytest.fixture
def failed_webhook_event(db, processing_record):
    """Stored event whose first attempt failed."""
    return WebhookEventFactory(
        provider_event_id="evt_failed_1",
        object_id=processing_record.provider_transaction_id,
        payload={
            "id": "evt_failed_1",
            "type": "payment_succeeded",
            "object_id": processing_record.provider_transaction_id,
        },
        status=WebhookEventStatus.FAILED,
        retry_count=1,
        error_message="Payment not found: connect_pay_200",
    )
