"""
Tests for the payments REST API.

Views are exercised through DRF's APIClient against services built from
FakeAdapter, so every request runs the real orchestrator and registry.
"""

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from payments.adapters.base import VendorAccountSnapshot
from payments.exceptions import ProviderError, ProviderTimeoutError
from payments.models import PaymentIntentRecord, VendorAccount
from payments.state_machines import OnboardingStatus, PaymentIntentStatus
from payments.views import status_message

pytestmark = [pytest.mark.django_db, pytest.mark.usefixtures("use_payment_services")]


# =============================================================================
# Create Payment
# =============================================================================


class TestCreatePaymentView:
    url = reverse("payments:create_payment")

    def test_split_payment(self, api_client, eligible_vendor, connect_adapter):
        response = api_client.post(
            self.url,
            {"amount": 10000, "currency": "usd", "vendor_account_id": "acct_vendor"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["gross_amount"] == 10000
        assert data["commission_amount"] == 500
        assert data["payout_amount"] == 9500
        assert data["currency"] == "usd"
        assert data["status"] == PaymentIntentStatus.CREATED
        assert data["vendor_account_id"] == "acct_vendor"
        assert data["client_secret"] == f"{data['provider_transaction_id']}_secret"
        assert len(connect_adapter.calls_to("create_split_payment")) == 1

    def test_platform_only_payment(self, api_client, connect_adapter):
        response = api_client.post(
            self.url,
            {"amount": 5000, "currency": "usd", "platform_only": True},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["commission_amount"] == 0
        assert data["payout_amount"] == 0
        assert data["vendor_account_id"] is None
        assert len(connect_adapter.calls_to("create_platform_payment")) == 1

    def test_idempotency_header_replays_original(
        self, api_client, eligible_vendor, connect_adapter
    ):
        body = {"amount": 10000, "currency": "usd", "vendor_account_id": "acct_vendor"}

        first = api_client.post(
            self.url, body, format="json", HTTP_IDEMPOTENCY_KEY="order-42"
        )
        second = api_client.post(
            self.url, body, format="json", HTTP_IDEMPOTENCY_KEY="order-42"
        )

        assert first.status_code == second.status_code == status.HTTP_201_CREATED
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["idempotency_key"] == "order-42"
        assert len(connect_adapter.calls_to("create_split_payment")) == 1
        assert PaymentIntentRecord.objects.count() == 1

    def test_idempotency_key_reused_with_different_body(self, api_client, eligible_vendor):
        api_client.post(
            self.url,
            {"amount": 10000, "currency": "usd", "vendor_account_id": "acct_vendor"},
            format="json",
            HTTP_IDEMPOTENCY_KEY="order-42",
        )

        response = api_client.post(
            self.url,
            {"amount": 20000, "currency": "usd", "vendor_account_id": "acct_vendor"},
            format="json",
            HTTP_IDEMPOTENCY_KEY="order-42",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error_code"] == "IDEMPOTENCY_CONFLICT"

    def test_vendor_not_eligible(self, api_client, onboarding_vendor, connect_adapter):
        response = api_client.post(
            self.url,
            {"amount": 10000, "currency": "usd", "vendor_account_id": "acct_onboarding"},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        data = response.json()
        assert data["error_code"] == "VENDOR_NOT_PAYOUT_ELIGIBLE"
        assert data["details"]["requirements"] == ["external_account"]
        assert connect_adapter.calls == []

    def test_amount_below_minimum_fee(self, api_client, eligible_vendor):
        response = api_client.post(
            self.url,
            {"amount": 40, "currency": "usd", "vendor_account_id": "acct_vendor"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "INVALID_AMOUNT"

    @pytest.mark.parametrize(
        "body",
        [
            {"amount": 10000, "currency": "xyz", "platform_only": True},
            {"amount": 0, "currency": "usd", "platform_only": True},
            {"amount": 10000, "currency": "usd"},
        ],
    )
    def test_invalid_body(self, api_client, body):
        response = api_client.post(self.url, body, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert PaymentIntentRecord.objects.count() == 0

    def test_provider_timeout_persists_nothing(
        self, api_client, eligible_vendor, connect_adapter
    ):
        connect_adapter.next_error = ProviderTimeoutError(
            "Provider timed out", provider="connect", timeout=10.0
        )

        response = api_client.post(
            self.url,
            {"amount": 10000, "currency": "usd", "vendor_account_id": "acct_vendor"},
            format="json",
        )

        assert response.status_code == status.HTTP_504_GATEWAY_TIMEOUT
        assert response.json()["error_code"] == "PROVIDER_TIMEOUT"
        assert PaymentIntentRecord.objects.count() == 0

    def test_provider_error_code_is_surfaced(
        self, api_client, eligible_vendor, connect_adapter
    ):
        connect_adapter.next_error = ProviderError(
            "Your card was declined.", provider="connect", provider_code="card_declined"
        )

        response = api_client.post(
            self.url,
            {"amount": 10000, "currency": "usd", "vendor_account_id": "acct_vendor"},
            format="json",
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["details"]["provider_code"] == "card_declined"

    def test_requires_authentication(self, db):
        response = APIClient().post(
            self.url,
            {"amount": 5000, "currency": "usd", "platform_only": True},
            format="json",
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# Quote
# =============================================================================


class TestPaymentQuoteView:
    url = reverse("payments:quote_payment")

    def test_quote_converts_to_settlement_currency(
        self, api_client, eligible_vendor, connect_adapter
    ):
        # 730000 PYG * 0.000137 = 100.01 USD
        response = api_client.post(
            self.url,
            {"amount": 730000, "currency": "pyg", "vendor_account_id": "acct_vendor"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["provider"] == "connect"
        assert data["gross_amount"] == 10001
        assert data["commission_amount"] == 500
        assert data["payout_amount"] == 9501
        assert data["currency"] == "usd"
        assert data["original_amount"] == 730000
        assert data["original_currency"] == "pyg"
        assert data["platform_only"] is False
        assert connect_adapter.calls == []
        assert PaymentIntentRecord.objects.count() == 0


# =============================================================================
# Payment Status
# =============================================================================


class TestPaymentStatusView:
    def test_polls_provider_and_applies_status(
        self, api_client, processing_record, connect_adapter
    ):
        connect_adapter.statuses[processing_record.provider_transaction_id] = (
            PaymentIntentStatus.SUCCEEDED
        )
        url = reverse(
            "payments:payment_status",
            args=[processing_record.provider_transaction_id],
        )

        response = api_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "provider_transaction_id": processing_record.provider_transaction_id,
            "status": "succeeded",
            "message": "Payment completed successfully",
            "failure_reason": "",
        }

    def test_failed_payment_includes_reason(
        self, api_client, processing_record, connect_adapter
    ):
        connect_adapter.statuses[processing_record.provider_transaction_id] = (
            PaymentIntentStatus.FAILED
        )
        url = reverse(
            "payments:payment_status",
            args=[processing_record.provider_transaction_id],
        )

        data = api_client.get(url).json()

        assert data["status"] == "failed"
        assert data["message"] == "Payment failed"
        assert data["failure_reason"] == "card_declined"

    def test_unknown_payment(self, api_client):
        url = reverse("payments:payment_status", args=["pi_missing"])

        response = api_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "PAYMENTINTENTRECORD_NOT_FOUND"


def test_status_message_falls_back_for_unknown_status():
    assert status_message("on_hold") == "Unknown status"


# =============================================================================
# Vendors
# =============================================================================


class TestRegisterVendorView:
    url = reverse("payments:register_vendor")

    def test_register(self, api_client):
        response = api_client.post(
            self.url,
            {"provider_account_id": "acct_new", "provider": "connect"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["provider_account_id"] == "acct_new"
        assert data["onboarding_status"] == OnboardingStatus.CREATED
        assert data["payout_eligible"] is False

    def test_provider_mismatch(self, api_client, eligible_vendor):
        response = api_client.post(
            self.url,
            {"provider_account_id": "acct_vendor", "provider": "gateway"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "VENDOR_PROVIDER_MISMATCH"


class TestVendorStatusView:
    def test_refresh_applies_snapshot(self, api_client, connect_adapter):
        VendorAccount.objects.create(provider_account_id="acct_new", provider_kind="connect")
        connect_adapter.snapshots["acct_new"] = VendorAccountSnapshot(
            provider_account_id="acct_new",
            details_submitted=True,
            charges_enabled=True,
            transfers_enabled=True,
        )

        response = api_client.get(reverse("payments:vendor_status", args=["acct_new"]))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["onboarding_status"] == OnboardingStatus.TRANSFERS_ENABLED
        assert data["payout_eligible"] is True
        assert data["last_refreshed_at"] is not None

    def test_unregistered_vendor(self, api_client):
        response = api_client.get(reverse("payments:vendor_status", args=["acct_nobody"]))

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Client Config
# =============================================================================


class TestClientConfigView:
    def test_returns_publishable_keys_only(self, db):
        response = APIClient().get(reverse("payments:client_config"))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["default_provider"] == "connect"
        assert data["providers"]["connect"] == {
            "publishable_key": "pk_test_123",
            "settlement_currency": "usd",
        }
        assert data["providers"]["gateway"]["publishable_key"] == "gw_public_123"
        assert "sk_test_123" not in response.content.decode()
        assert "whsec_test_secret" not in response.content.decode()
