"""
WebhookEvent model for provider webhook de-duplication.

Only events whose signature verified are stored, so the existence of a row
is the verification record. The (provider_kind, provider_event_id) unique
constraint makes redeliveries land on the same row.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        provider_kind=ProviderKind.CONNECT,
        provider_event_id="evt_1234567890",
        defaults={"event_type": "payment_succeeded", "payload": payload},
    )
    if not created and event.is_processed:
        return  # duplicate delivery
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import ProviderKind, WebhookEventStatus

MAX_WEBHOOK_RETRIES = 5


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A verified provider notification and its processing outcome.

    Processing Flow:
        1. Webhook arrives, signature verified by the provider adapter
        2. get_or_create on (provider_kind, provider_event_id)
        3. If PROCESSED -> acknowledge as duplicate
        4. Mark PROCESSING, dispatch to the registered handler
        5. Mark PROCESSED or FAILED (retry task picks FAILED up later)

    Fields:
        provider_kind: Provider that sent the event
        provider_event_id: Provider's event id (evt_xxx)
        event_type: Canonical event type (payment_succeeded, account_updated)
        provider_event_type: Provider's own type string
        object_id: Provider id of the object the event is about
        payload: Full verified JSON payload
        payment_intent: Linked record once resolved
        status: Processing status
        processed_at: When the event was applied
        error_message: Last handler failure
        retry_count: Number of processing attempts

    Note:
        No version field needed; the per-event lock serialises processing.
    """

    provider_kind = models.CharField(
        max_length=20,
        choices=ProviderKind.choices,
    )
    provider_event_id = models.CharField(max_length=255)
    event_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Canonical event type",
    )
    provider_event_type = models.CharField(max_length=100, blank=True, default="")
    object_id = models.CharField(max_length=255, blank=True, default="")

    payload = models.JSONField(help_text="Verified webhook payload (JSON)")

    payment_intent = models.ForeignKey(
        "payments.PaymentIntentRecord",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="webhook_events",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True, default="")
    retry_count = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        constraints = [
            models.UniqueConstraint(
                fields=["provider_kind", "provider_event_id"],
                name="unique_provider_event",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["status", "retry_count"]),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.provider_kind}:{self.provider_event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    @property
    def can_retry(self) -> bool:
        return self.is_failed and self.retry_count < MAX_WEBHOOK_RETRIES

    # ==========================================================================
    # Helper Methods
    # ==========================================================================
    # None of these save; the caller saves after calling.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = ""

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
