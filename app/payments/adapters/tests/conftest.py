"""
Pytest fixtures for provider adapter tests.

This module provides fixtures for testing the Stripe Connect and gateway
adapters: mock Stripe API objects and errors, signed webhook bodies, and
gateway HTTP responses.

Sections:
    - Adapter Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Gateway Response Fixtures
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any

import pytest
import requests
import stripe

from payments.adapters.gateway_adapter import GatewayAdapter
from payments.adapters.stripe_adapter import StripeConnectAdapter


# =============================================================================
# Adapter Fixtures
# =============================================================================


@pytest.fixture
def stripe_adapter(connect_settings):
    return StripeConnectAdapter(connect_settings, default_timeout=5.0)


@pytest.fixture
def gateway_session(mocker):
    """Real requests.Session whose request() is mocked."""
    session = requests.Session()
    mocker.patch.object(session, "request")
    return session


@pytest.fixture
def gateway(gateway_settings, gateway_session):
    return GatewayAdapter(gateway_settings, session=gateway_session, default_timeout=5.0)


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_payment_intent():
    """Create a mock PaymentIntent response."""

    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 10000,
        currency: str = "usd",
        client_secret: str = "pi_test123456_secret_abc123",
        last_payment_error: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": client_secret,
                "last_payment_error": last_payment_error,
            }
        )

    return _create


@pytest.fixture
def stripe_account_data():
    """Create a Stripe Account dict."""

    def _create(
        id: str = "acct_vendor",
        details_submitted: bool = True,
        charges_enabled: bool = True,
        transfers: str = "active",
        currently_due: list | None = None,
        past_due: list | None = None,
        errors: list | None = None,
        disabled_reason: str | None = None,
    ) -> dict[str, Any]:
        return {
            "id": id,
            "object": "account",
            "details_submitted": details_submitted,
            "charges_enabled": charges_enabled,
            "capabilities": {"card_payments": "active", "transfers": transfers},
            "requirements": {
                "currently_due": currently_due or [],
                "past_due": past_due or [],
                "errors": errors or [],
                "disabled_reason": disabled_reason,
            },
        }

    return _create


@pytest.fixture
def mock_stripe_client(mocker, mock_payment_intent, stripe_account_data):
    """
    Mock stripe.StripeClient.

    Every client the adapter builds is the same mock instance, so tests can
    assert on its services whatever timeout the call used.
    """
    client_class = mocker.patch("stripe.StripeClient")
    client = client_class.return_value
    client.payment_intents.create.return_value = mock_payment_intent()
    client.payment_intents.retrieve.return_value = mock_payment_intent()
    client.accounts.retrieve.return_value = MockStripeObject(stripe_account_data())
    return client


@pytest.fixture
def mock_stripe_payment_intent(mock_stripe_client):
    """Mocked PaymentIntent service."""
    return mock_stripe_client.payment_intents


@pytest.fixture
def mock_stripe_account(mock_stripe_client):
    """Mocked Account service."""
    return mock_stripe_client.accounts


@pytest.fixture
def stripe_signature():
    """Build a Stripe-Signature header (t=<ts>,v1=<hmac>) for a body."""

    def _sign(payload: bytes, secret: str = "whsec_test_secret", timestamp=None) -> str:
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
        digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={digest}"

    return _sign


@pytest.fixture
def stripe_event_body():
    """Raw Stripe event body."""

    def _create(
        event_type: str = "payment_intent.succeeded",
        obj: dict | None = None,
        event_id: str = "evt_test123",
    ) -> bytes:
        return json.dumps(
            {
                "id": event_id,
                "object": "event",
                "type": event_type,
                "data": {"object": obj or {"id": "pi_test123", "object": "payment_intent"}},
            }
        ).encode("utf-8")

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError."""

    def _create(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = "generic_decline",
    ) -> stripe.CardError:
        error = stripe.CardError(message=message, param=None, code=code)
        error.decline_code = decline_code
        return error

    return _create


@pytest.fixture
def invalid_request_error():
    return stripe.InvalidRequestError(
        message="No such destination: 'acct_missing'",
        param="transfer_data[destination]",
        code="resource_missing",
    )


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError(message="Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    return stripe.APIConnectionError(message="Could not connect to Stripe.")


@pytest.fixture
def api_timeout_error():
    return stripe.APIConnectionError(
        message="Request to Stripe timed out after 5 seconds."
    )


@pytest.fixture
def api_error():
    return stripe.APIError(message="Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    return stripe.AuthenticationError(message="Invalid API Key provided.")


# =============================================================================
# Gateway Response Fixtures
# =============================================================================


@pytest.fixture
def gateway_response():
    """Build a requests.Response with a JSON body."""

    def _create(body: Any, status_code: int = 200) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
        response.url = "https://api.gateway.test/v1/payments"
        return response

    return _create


@pytest.fixture
def gateway_payment():
    """Gateway payment JSON."""

    def _create(
        id: str = "gwp_1001",
        status: str = "pending",
        amount: int = 730000,
        currency: str = "PYG",
        **extra: Any,
    ) -> dict[str, Any]:
        return {
            "id": id,
            "status": status,
            "amount": amount,
            "currency": currency,
            "checkout_token": f"chk_{id}",
            **extra,
        }

    return _create
