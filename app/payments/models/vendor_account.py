"""
VendorAccount model for marketplace vendors.

A VendorAccount mirrors a provider-side account (a Stripe Connect account
or a regional gateway merchant) that can receive split payouts. Rows are
created on registration, updated only from provider snapshots (status
refresh or account_updated webhooks), and deactivated instead of deleted.

Usage:
    from payments.models import VendorAccount

    account = VendorAccount.objects.create(
        provider_account_id="acct_1234567890",
        provider_kind=ProviderKind.CONNECT,
    )
    if account.is_payout_eligible(OnboardingStatus.TRANSFERS_ENABLED):
        ...
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from payments.state_machines import OnboardingStatus, ProviderKind


class VendorAccount(UUIDPrimaryKeyMixin, VersionedMixin, MetadataMixin, BaseModel):
    """
    Provider account that receives the vendor side of split payments.

    Fields:
        provider_account_id: Provider-assigned id (acct_xxx, merchant id)
        provider_kind: Which provider owns the account
        onboarding_status: Readiness level derived from provider facts
        details_submitted / charges_enabled / transfers_enabled: Raw
            capability flags from the last snapshot
        requirements: Outstanding requirement strings from the provider
        disabled_reason: Provider's reason for a compliance hold
        is_active: False once deactivated locally
        last_refreshed_at: When the last snapshot was applied
        version: Optimistic locking version field
    """

    provider_account_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Provider-assigned account id (acct_xxx or merchant id)",
    )
    provider_kind = models.CharField(
        max_length=20,
        choices=ProviderKind.choices,
        db_index=True,
        help_text="Provider that owns this account",
    )
    onboarding_status = models.CharField(
        max_length=20,
        choices=OnboardingStatus.choices,
        default=OnboardingStatus.CREATED,
        db_index=True,
        help_text="Readiness derived from the latest provider snapshot",
    )

    # ==========================================================================
    # Provider Capability Flags
    # ==========================================================================

    details_submitted = models.BooleanField(default=False)
    charges_enabled = models.BooleanField(default=False)
    transfers_enabled = models.BooleanField(default=False)
    requirements = models.JSONField(
        default=list,
        blank=True,
        help_text="Outstanding requirements reported by the provider",
    )
    disabled_reason = models.CharField(max_length=255, blank=True, default="")

    is_active = models.BooleanField(
        default=True,
        help_text="Deactivated accounts are kept for history but never paid",
    )
    last_refreshed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Vendor Account"
        verbose_name_plural = "Vendor Accounts"

    def __str__(self) -> str:
        return f"VendorAccount({self.provider_account_id}, {self.onboarding_status})"

    @property
    def is_restricted(self) -> bool:
        return self.onboarding_status == OnboardingStatus.RESTRICTED

    def is_payout_eligible(self, threshold: str) -> bool:
        """
        Check if the account can receive split payouts.

        Args:
            threshold: Lowest OnboardingStatus level that qualifies

        Returns:
            True when active, not restricted, and at or above threshold
        """
        return self.is_active and OnboardingStatus.meets(
            self.onboarding_status, threshold
        )
