"""
Vendor account registry.

Tracks whether each vendor's provider account can receive split payouts.
The onboarding status is derived from the provider's capability facts on
every update, because providers can downgrade an account at any time.

Status derivation:
    restricted          disabled reason, past-due requirements or errors
    transfers_enabled   provider allows payouts to the account
    charges_enabled     provider allows charges but not payouts yet
    details_submitted   vendor finished the provider's forms
    created             nothing yet

Usage:
    registry = VendorAccountRegistry(config, adapters)
    registry.register("acct_123", ProviderKind.CONNECT)
    registry.refresh_status("acct_123")
    registry.require_payout_eligible("acct_123")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService
from payments.adapters.registry import get_adapter
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentValidationError,
    VendorNotPayoutEligibleError,
)
from payments.locks import DistributedLock, vendor_lock_key
from payments.models import VendorAccount
from payments.signals import send_robust, vendor_account_updated
from payments.state_machines import OnboardingStatus, ProviderKind
from payments.stores import RecordStore

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from payments.adapters.base import ProviderAdapter, VendorAccountSnapshot
    from payments.config import PaymentsConfig


SNAPSHOT_FIELDS = [
    "onboarding_status",
    "details_submitted",
    "charges_enabled",
    "transfers_enabled",
    "requirements",
    "disabled_reason",
    "last_refreshed_at",
]


def derive_status(snapshot: VendorAccountSnapshot) -> str:
    """Onboarding status implied by a provider snapshot."""
    if snapshot.restricted or snapshot.disabled_reason:
        return OnboardingStatus.RESTRICTED
    if snapshot.transfers_enabled:
        return OnboardingStatus.TRANSFERS_ENABLED
    if snapshot.charges_enabled:
        return OnboardingStatus.CHARGES_ENABLED
    if snapshot.details_submitted:
        return OnboardingStatus.DETAILS_SUBMITTED
    return OnboardingStatus.CREATED


class VendorAccountRegistry(BaseService):
    """
    Registration and readiness tracking for vendor accounts.

    Every update runs under the per-vendor lock and is written with a
    compare-and-swap on the account's version.
    """

    def __init__(
        self,
        config: PaymentsConfig,
        adapters: Mapping[str, ProviderAdapter],
        store: RecordStore[VendorAccount] | None = None,
    ) -> None:
        self.config = config
        self.adapters = adapters
        self.store = store or RecordStore(VendorAccount)

    def _lock(self, provider_account_id: str) -> DistributedLock:
        return DistributedLock(
            vendor_lock_key(provider_account_id),
            ttl=self.config.lock_ttl,
            timeout=self.config.lock_timeout,
        )

    # =========================================================================
    # Registration
    # =========================================================================

    def register(
        self,
        provider_account_id: str,
        provider_kind: str,
        metadata: dict[str, Any] | None = None,
    ) -> VendorAccount:
        """
        Record a provider-assigned account id locally.

        Idempotent: registering the same id again returns the existing
        account. Registering it under a different provider is rejected.

        Raises:
            PaymentValidationError: Empty id, unknown provider, or the id is
                already registered under another provider
        """
        if not provider_account_id:
            raise PaymentValidationError(
                "provider_account_id is required",
                error_code="INVALID_VENDOR_ACCOUNT",
            )
        if provider_kind not in ProviderKind.values:
            raise PaymentValidationError(
                f"Unknown payment provider: {provider_kind!r}",
                error_code="UNKNOWN_PROVIDER",
                details={"provider": provider_kind},
            )

        account, created = VendorAccount.objects.get_or_create(
            provider_account_id=provider_account_id,
            defaults={"provider_kind": provider_kind, "metadata": metadata or {}},
        )
        if account.provider_kind != provider_kind:
            raise PaymentValidationError(
                f"Vendor account {provider_account_id} is registered "
                f"with provider {account.provider_kind}",
                error_code="VENDOR_PROVIDER_MISMATCH",
                details={
                    "provider_account_id": provider_account_id,
                    "registered_provider": account.provider_kind,
                    "requested_provider": provider_kind,
                },
            )

        if created:
            self.get_logger().info(
                "Vendor account registered",
                extra={
                    "provider_account_id": provider_account_id,
                    "provider_kind": provider_kind,
                },
            )
        return account

    def get(self, provider_account_id: str) -> VendorAccount:
        """Raises PaymentNotFoundError for unregistered ids."""
        return self.store.get_by(provider_account_id=provider_account_id)

    # =========================================================================
    # Status Updates
    # =========================================================================

    def refresh_status(
        self, provider_account_id: str, timeout: float | None = None
    ) -> VendorAccount:
        """
        Ask the provider for fresh capability facts and apply them.

        Raises:
            PaymentNotFoundError: Account is not registered
            ProviderError / ProviderTimeoutError: Provider call failed
        """
        account = self.get(provider_account_id)
        adapter = get_adapter(account.provider_kind, self.adapters)
        snapshot = adapter.get_vendor_account_status(
            provider_account_id, timeout=timeout or self.config.provider_timeout
        )
        return self.apply_snapshot(snapshot, source="refresh")

    def apply_snapshot(
        self, snapshot: VendorAccountSnapshot, source: str = "webhook"
    ) -> VendorAccount:
        """
        Overwrite the stored facts with a provider snapshot.

        The status may move down as well as up; a provider can restrict a
        fully enabled account at any time.

        Raises:
            PaymentNotFoundError: Account is not registered
            StaleRecordError: Concurrent writer outside the lock
        """
        provider_account_id = snapshot.provider_account_id

        with self._lock(provider_account_id):
            account = self.get(provider_account_id)
            if not account.is_active:
                self.get_logger().info(
                    "Ignoring snapshot for deactivated vendor account",
                    extra={"provider_account_id": provider_account_id},
                )
                return account

            previous_status = account.onboarding_status
            expected_version = account.version

            account.onboarding_status = derive_status(snapshot)
            account.details_submitted = snapshot.details_submitted
            account.charges_enabled = snapshot.charges_enabled
            account.transfers_enabled = snapshot.transfers_enabled
            account.requirements = list(snapshot.requirements)
            account.disabled_reason = snapshot.disabled_reason
            account.last_refreshed_at = timezone.now()

            self.store.compare_and_swap(account, expected_version, SNAPSHOT_FIELDS)

        self.get_logger().info(
            "Vendor account status applied",
            extra={
                "provider_account_id": provider_account_id,
                "previous_status": previous_status,
                "status": account.onboarding_status,
                "source": source,
                "requirements": len(account.requirements),
            },
        )
        send_robust(
            vendor_account_updated,
            sender=VendorAccount,
            account=account,
            previous_status=previous_status,
            status=account.onboarding_status,
        )
        return account

    def deactivate(self, provider_account_id: str) -> VendorAccount:
        """Stop routing payouts to an account. Accounts are never deleted."""
        with self._lock(provider_account_id):
            account = self.get(provider_account_id)
            if not account.is_active:
                return account
            expected_version = account.version
            account.is_active = False
            self.store.compare_and_swap(account, expected_version, ["is_active"])

        self.get_logger().info(
            "Vendor account deactivated",
            extra={"provider_account_id": provider_account_id},
        )
        send_robust(
            vendor_account_updated,
            sender=VendorAccount,
            account=account,
            previous_status=account.onboarding_status,
            status=account.onboarding_status,
        )
        return account

    # =========================================================================
    # Eligibility
    # =========================================================================

    def is_payout_eligible(self, provider_account_id: str) -> bool:
        """False for unknown, inactive, restricted or under-threshold accounts."""
        try:
            account = self.get(provider_account_id)
        except PaymentNotFoundError:
            return False
        return account.is_payout_eligible(self.config.payout_eligibility_threshold)

    def require_payout_eligible(self, provider_account_id: str) -> VendorAccount:
        """
        Return the account if it can receive payouts.

        Raises:
            VendorNotPayoutEligibleError: Unknown, inactive, restricted or
                below the configured threshold
        """
        threshold = self.config.payout_eligibility_threshold
        try:
            account = self.get(provider_account_id)
        except PaymentNotFoundError:
            raise VendorNotPayoutEligibleError(
                f"Vendor account {provider_account_id} is not registered",
                details={
                    "provider_account_id": provider_account_id,
                    "reason": "not_registered",
                },
            ) from None

        if account.is_payout_eligible(threshold):
            return account

        if not account.is_active:
            reason = "deactivated"
        elif account.is_restricted:
            reason = "restricted"
        else:
            reason = "onboarding_incomplete"

        raise VendorNotPayoutEligibleError(
            f"Vendor account {provider_account_id} cannot receive payouts",
            details={
                "provider_account_id": provider_account_id,
                "reason": reason,
                "onboarding_status": account.onboarding_status,
                "required_status": threshold,
                "requirements": list(account.requirements),
                "disabled_reason": account.disabled_reason,
            },
        )
