"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.
PaymentIntentRecord.status is managed by django-fsm; vendor onboarding
status is derived from provider snapshots.

State Machines Overview:

PaymentIntentRecord Status:
    created → requires_action → processing → succeeded
    created/requires_action/processing → failed
    created/requires_action/processing → canceled
    Terminal states (succeeded, failed, canceled) never change again.

VendorAccount Onboarding:
    created → details_submitted → charges_enabled → transfers_enabled
    any → restricted (provider compliance hold)

WebhookEvent Status:
    pending → processing → processed
    pending → processing → failed → processing (retry)
"""

from django.db import models


class PaymentIntentStatus(models.TextChoices):
    """
    Lifecycle of a submitted payment.

    Terminal states: SUCCEEDED, FAILED, CANCELED
    """

    CREATED = "created", "Created"
    REQUIRES_ACTION = "requires_action", "Requires Action"
    PROCESSING = "processing", "Processing"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    CANCELED = "canceled", "Canceled"

    @classmethod
    def terminal(cls) -> frozenset[str]:
        return frozenset({cls.SUCCEEDED, cls.FAILED, cls.CANCELED})

    @classmethod
    def open(cls) -> frozenset[str]:
        return frozenset({cls.CREATED, cls.REQUIRES_ACTION, cls.PROCESSING})

    @classmethod
    def rank(cls, status: str) -> int:
        """Position along the forward path; terminal states share the top rank."""
        order = {
            cls.CREATED: 0,
            cls.REQUIRES_ACTION: 1,
            cls.PROCESSING: 2,
        }
        return order.get(status, 3)


class OnboardingStatus(models.TextChoices):
    """
    Vendor account readiness as reported by the provider.

    The first four values are ordered levels of capability; RESTRICTED is a
    compliance hold that overrides any level.
    """

    CREATED = "created", "Created"
    DETAILS_SUBMITTED = "details_submitted", "Details Submitted"
    CHARGES_ENABLED = "charges_enabled", "Charges Enabled"
    TRANSFERS_ENABLED = "transfers_enabled", "Transfers Enabled"
    RESTRICTED = "restricted", "Restricted"

    @classmethod
    def payout_levels(cls) -> list[str]:
        """Ordered capability levels, lowest first."""
        return [
            cls.CREATED,
            cls.DETAILS_SUBMITTED,
            cls.CHARGES_ENABLED,
            cls.TRANSFERS_ENABLED,
        ]

    @classmethod
    def meets(cls, status: str, threshold: str) -> bool:
        """True when status is at or above threshold and not restricted."""
        levels = cls.payout_levels()
        if status not in levels or threshold not in levels:
            return False
        return levels.index(status) >= levels.index(threshold)


class ProviderKind(models.TextChoices):
    """Payment providers the engine can route through."""

    CONNECT = "connect", "Stripe Connect"
    GATEWAY = "gateway", "Regional Gateway"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status of stored webhook events.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (retry picks it up)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
