"""
Tests for VendorAccountRegistry.
"""

import pytest

from payments.adapters.base import VendorAccountSnapshot
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentValidationError,
    ProviderTimeoutError,
    VendorNotPayoutEligibleError,
)
from payments.models import VendorAccount
from payments.services import derive_status
from payments.signals import vendor_account_updated
from payments.state_machines import OnboardingStatus, ProviderKind


@pytest.fixture
def account_updates():
    received = []

    def receiver(sender, account, previous_status, status, **kwargs):
        received.append((account.provider_account_id, previous_status, status))

    vendor_account_updated.connect(receiver)
    yield received
    vendor_account_updated.disconnect(receiver)


# =============================================================================
# Status Derivation
# =============================================================================


@pytest.mark.parametrize(
    "facts, expected",
    [
        ({}, OnboardingStatus.CREATED),
        ({"details_submitted": True}, OnboardingStatus.DETAILS_SUBMITTED),
        (
            {"details_submitted": True, "charges_enabled": True},
            OnboardingStatus.CHARGES_ENABLED,
        ),
        (
            {"details_submitted": True, "charges_enabled": True, "transfers_enabled": True},
            OnboardingStatus.TRANSFERS_ENABLED,
        ),
        ({"transfers_enabled": True, "restricted": True}, OnboardingStatus.RESTRICTED),
        ({"transfers_enabled": True, "disabled_reason": "fraud"}, OnboardingStatus.RESTRICTED),
    ],
)
def test_derive_status(facts, expected):
    snapshot = VendorAccountSnapshot(provider_account_id="acct_1", **facts)

    assert derive_status(snapshot) == expected


# =============================================================================
# Registration
# =============================================================================


@pytest.mark.django_db
class TestRegister:
    def test_new_account_starts_created(self, vendor_registry):
        account = vendor_registry.register(
            "acct_new", ProviderKind.CONNECT, metadata={"shop": "demo"}
        )

        assert account.onboarding_status == OnboardingStatus.CREATED
        assert account.transfers_enabled is False
        assert account.metadata == {"shop": "demo"}
        assert account.is_active is True

    def test_registering_twice_returns_same_account(self, vendor_registry):
        first = vendor_registry.register("acct_new", ProviderKind.CONNECT)
        second = vendor_registry.register("acct_new", ProviderKind.CONNECT)

        assert first.pk == second.pk
        assert VendorAccount.objects.count() == 1

    def test_same_id_under_other_provider(self, vendor_registry, eligible_vendor):
        with pytest.raises(PaymentValidationError) as exc_info:
            vendor_registry.register("acct_vendor", ProviderKind.GATEWAY)

        assert exc_info.value.error_code == "VENDOR_PROVIDER_MISMATCH"
        assert exc_info.value.details["registered_provider"] == ProviderKind.CONNECT

    def test_unknown_provider(self, vendor_registry):
        with pytest.raises(PaymentValidationError) as exc_info:
            vendor_registry.register("acct_new", "paypal")

        assert exc_info.value.error_code == "UNKNOWN_PROVIDER"
        assert VendorAccount.objects.count() == 0

    def test_empty_id(self, vendor_registry):
        with pytest.raises(PaymentValidationError) as exc_info:
            vendor_registry.register("", ProviderKind.CONNECT)

        assert exc_info.value.error_code == "INVALID_VENDOR_ACCOUNT"

    def test_get_unknown(self, vendor_registry):
        with pytest.raises(PaymentNotFoundError):
            vendor_registry.get("acct_nobody")


# =============================================================================
# Snapshots
# =============================================================================


@pytest.mark.django_db
class TestApplySnapshot:
    def test_upgrade_to_transfers_enabled(self, vendor_registry, account_updates):
        vendor_registry.register("acct_new", ProviderKind.CONNECT)

        account = vendor_registry.apply_snapshot(
            VendorAccountSnapshot(
                provider_account_id="acct_new",
                details_submitted=True,
                charges_enabled=True,
                transfers_enabled=True,
            )
        )

        assert account.onboarding_status == OnboardingStatus.TRANSFERS_ENABLED
        assert account.last_refreshed_at is not None
        assert vendor_registry.is_payout_eligible("acct_new") is True
        assert account_updates == [
            ("acct_new", OnboardingStatus.CREATED, OnboardingStatus.TRANSFERS_ENABLED)
        ]

    def test_downgrade_to_restricted(self, vendor_registry, eligible_vendor):
        account = vendor_registry.apply_snapshot(
            VendorAccountSnapshot(
                provider_account_id="acct_vendor",
                details_submitted=True,
                charges_enabled=True,
                restricted=True,
                requirements=["individual.verification.document"],
                disabled_reason="requirements.past_due",
            )
        )

        assert account.onboarding_status == OnboardingStatus.RESTRICTED
        stored = VendorAccount.objects.get(pk=eligible_vendor.pk)
        assert stored.transfers_enabled is False
        assert stored.requirements == ["individual.verification.document"]
        assert stored.version == eligible_vendor.version + 1
        assert vendor_registry.is_payout_eligible("acct_vendor") is False

    def test_deactivated_account_ignores_snapshots(self, vendor_registry, onboarding_vendor):
        vendor_registry.deactivate("acct_onboarding")

        account = vendor_registry.apply_snapshot(
            VendorAccountSnapshot(provider_account_id="acct_onboarding", transfers_enabled=True)
        )

        assert account.onboarding_status == OnboardingStatus.DETAILS_SUBMITTED

    def test_unregistered_account(self, vendor_registry):
        with pytest.raises(PaymentNotFoundError):
            vendor_registry.apply_snapshot(
                VendorAccountSnapshot(provider_account_id="acct_nobody")
            )

    def test_takes_vendor_lock(self, vendor_registry, eligible_vendor, mock_redis):
        vendor_registry.apply_snapshot(VendorAccountSnapshot(provider_account_id="acct_vendor"))

        assert mock_redis.set.call_args[0][0] == "lock:vendor:acct_vendor"


@pytest.mark.django_db
class TestRefreshStatus:
    def test_applies_provider_snapshot(
        self, vendor_registry, onboarding_vendor, connect_adapter
    ):
        connect_adapter.snapshots["acct_onboarding"] = VendorAccountSnapshot(
            provider_account_id="acct_onboarding",
            details_submitted=True,
            charges_enabled=True,
            transfers_enabled=True,
        )

        account = vendor_registry.refresh_status("acct_onboarding")

        assert account.onboarding_status == OnboardingStatus.TRANSFERS_ENABLED
        assert account.requirements == []
        (call,) = connect_adapter.calls_to("get_vendor_account_status")
        assert call["id"] == "acct_onboarding"

    def test_routes_to_account_provider(self, vendor_registry, gateway_vendor, gateway_adapter):
        vendor_registry.refresh_status("gw_merchant_1")

        assert len(gateway_adapter.calls_to("get_vendor_account_status")) == 1

    def test_provider_failure_leaves_account_unchanged(
        self, vendor_registry, eligible_vendor, connect_adapter
    ):
        connect_adapter.next_error = ProviderTimeoutError("timed out", provider="connect")

        with pytest.raises(ProviderTimeoutError):
            vendor_registry.refresh_status("acct_vendor")

        stored = VendorAccount.objects.get(pk=eligible_vendor.pk)
        assert stored.onboarding_status == OnboardingStatus.TRANSFERS_ENABLED

    def test_unregistered_account_makes_no_provider_call(
        self, vendor_registry, connect_adapter
    ):
        with pytest.raises(PaymentNotFoundError):
            vendor_registry.refresh_status("acct_nobody")

        assert connect_adapter.calls == []


# =============================================================================
# Eligibility
# =============================================================================


@pytest.mark.django_db
class TestRequirePayoutEligible:
    def test_eligible(self, vendor_registry, eligible_vendor):
        assert vendor_registry.require_payout_eligible("acct_vendor") == eligible_vendor

    def test_not_registered(self, vendor_registry):
        with pytest.raises(VendorNotPayoutEligibleError) as exc_info:
            vendor_registry.require_payout_eligible("acct_nobody")

        assert exc_info.value.details["reason"] == "not_registered"
        assert vendor_registry.is_payout_eligible("acct_nobody") is False

    def test_onboarding_incomplete_lists_requirements(
        self, vendor_registry, onboarding_vendor
    ):
        with pytest.raises(VendorNotPayoutEligibleError) as exc_info:
            vendor_registry.require_payout_eligible("acct_onboarding")

        details = exc_info.value.details
        assert details["reason"] == "onboarding_incomplete"
        assert details["onboarding_status"] == OnboardingStatus.DETAILS_SUBMITTED
        assert details["required_status"] == OnboardingStatus.TRANSFERS_ENABLED
        assert details["requirements"] == ["external_account"]

    def test_restricted(self, vendor_registry, restricted_vendor):
        with pytest.raises(VendorNotPayoutEligibleError) as exc_info:
            vendor_registry.require_payout_eligible("acct_restricted")

        assert exc_info.value.details["reason"] == "restricted"
        assert exc_info.value.details["disabled_reason"] == "requirements.past_due"

    def test_deactivated(self, vendor_registry, eligible_vendor, account_updates):
        vendor_registry.deactivate("acct_vendor")

        with pytest.raises(VendorNotPayoutEligibleError) as exc_info:
            vendor_registry.require_payout_eligible("acct_vendor")

        assert exc_info.value.details["reason"] == "deactivated"
        assert VendorAccount.objects.filter(provider_account_id="acct_vendor").exists()
        assert len(account_updates) == 1

    def test_deactivate_twice_is_noop(self, vendor_registry, eligible_vendor, account_updates):
        vendor_registry.deactivate("acct_vendor")
        vendor_registry.deactivate("acct_vendor")

        assert len(account_updates) == 1
