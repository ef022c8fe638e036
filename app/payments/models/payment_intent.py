"""
PaymentIntentRecord model tracking one submitted payment.

A record is created by the orchestrator right after the provider accepts a
payment, and afterwards changes only through webhook-driven transitions or
explicit status polling. Terminal states never change again.

Usage:
    from payments.models import PaymentIntentRecord

    record = PaymentIntentRecord.objects.get(provider_transaction_id="pi_123")
    record.succeed()  # django-fsm transition, persisted via RecordStore
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from payments.money import Money
from payments.state_machines import PaymentIntentStatus, ProviderKind

OPEN_STATES = [
    PaymentIntentStatus.CREATED,
    PaymentIntentStatus.REQUIRES_ACTION,
    PaymentIntentStatus.PROCESSING,
]


class PaymentIntentRecord(
    UUIDPrimaryKeyMixin, VersionedMixin, MetadataMixin, BaseModel
):
    """
    Local record of a provider payment and its commission split.

    Amounts are stored in minor units of ``currency``, the currency the
    provider actually charges. When the request arrived in another currency
    the original amount, currency and applied rate are kept for audit.

    State Flow:
        CREATED -> REQUIRES_ACTION -> PROCESSING -> SUCCEEDED
        CREATED/REQUIRES_ACTION/PROCESSING -> FAILED | CANCELED

    Invariants:
        commission_amount + payout_amount == gross_amount for split payments
        commission_amount == payout_amount == 0 for platform-only payments
    """

    # ==========================================================================
    # Identity
    # ==========================================================================

    provider_transaction_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Provider payment id (pi_xxx or gateway payment id)",
    )
    provider_kind = models.CharField(
        max_length=20,
        choices=ProviderKind.choices,
        db_index=True,
    )
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Caller-supplied or derived key; one record per key",
    )
    request_fingerprint = models.CharField(
        max_length=64,
        help_text="SHA-256 of the request's material fields",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    gross_amount = models.PositiveBigIntegerField()
    commission_amount = models.PositiveBigIntegerField(default=0)
    payout_amount = models.PositiveBigIntegerField(default=0)
    currency = models.CharField(max_length=3)

    original_amount = models.PositiveBigIntegerField(null=True, blank=True)
    original_currency = models.CharField(max_length=3, blank=True, default="")
    exchange_rate = models.DecimalField(
        max_digits=24,
        decimal_places=12,
        null=True,
        blank=True,
        help_text="Rate applied when the request currency differed",
    )

    # ==========================================================================
    # Routing
    # ==========================================================================

    vendor_account = models.ForeignKey(
        "payments.VendorAccount",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payment_intents",
        help_text="Payout destination; empty for platform-only payments",
    )
    description = models.CharField(max_length=500, blank=True, default="")
    client_secret = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Provider handle the client uses to confirm the payment",
    )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    status = FSMField(
        default=PaymentIntentStatus.CREATED,
        choices=PaymentIntentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status (managed by FSM)",
    )
    failure_reason = models.TextField(blank=True, default="")
    succeeded_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Intent"
        verbose_name_plural = "Payment Intents"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["provider_kind", "status"]),
        ]

    def __str__(self) -> str:
        return (
            f"PaymentIntentRecord({self.provider_transaction_id}, "
            f"{self.status}, {self.gross})"
        )

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def gross(self) -> Money:
        return Money(self.gross_amount, self.currency)

    @property
    def commission(self) -> Money:
        return Money(self.commission_amount, self.currency)

    @property
    def payout(self) -> Money:
        return Money(self.payout_amount, self.currency)

    @property
    def is_platform_only(self) -> bool:
        return self.vendor_account_id is None

    @property
    def is_terminal(self) -> bool:
        return self.status in PaymentIntentStatus.terminal()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentIntentStatus.CREATED,
        target=PaymentIntentStatus.REQUIRES_ACTION,
    )
    def require_action(self):
        """Customer must complete an extra step (3-D Secure, bank redirect)."""

    @transition(
        field=status,
        source=[PaymentIntentStatus.CREATED, PaymentIntentStatus.REQUIRES_ACTION],
        target=PaymentIntentStatus.PROCESSING,
    )
    def start_processing(self):
        """Provider accepted the payment details and is settling the charge."""

    @transition(
        field=status,
        source=OPEN_STATES,
        target=PaymentIntentStatus.SUCCEEDED,
    )
    def succeed(self):
        self.succeeded_at = timezone.now()

    @transition(
        field=status,
        source=OPEN_STATES,
        target=PaymentIntentStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payment as failed.

        Args:
            reason: Provider's failure message or decline code
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=OPEN_STATES,
        target=PaymentIntentStatus.CANCELED,
    )
    def cancel(self, reason: str | None = None):
        self.canceled_at = timezone.now()
        if reason:
            self.failure_reason = reason
