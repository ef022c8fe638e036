"""
Celery tasks for payment processing.

This module provides async tasks for:
- Reprocessing stored webhook events that failed
- Periodic purge of webhook events past the de-duplication window
- Reconciling payments whose webhooks never arrived

Usage:
    from payments.tasks import process_webhook_event

    # Queue a stored webhook for reprocessing
    process_webhook_event.delay(str(webhook_event.id))

    # Scheduled via celery-beat (see migration 0002)
    retry_failed_webhook_events.delay()
    purge_expired_webhook_events.delay()
    reconcile_open_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.utils import timezone

from core.exceptions import ConflictError
from payments.exceptions import LockAcquisitionError, PaymentError
from payments.models import PaymentIntentRecord, WebhookEvent
from payments.models.payment_intent import OPEN_STATES
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES
from payments.services.container import get_payment_services
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
RECONCILE_MIN_AGE_MINUTES = 15
BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(LockAcquisitionError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Reprocess a stored webhook event.

    The event's payload was verified when it was received; this task only
    dispatches it again through the WebhookProcessor.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status
    """
    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "provider_event_id": webhook_event.provider_event_id,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    processor = get_payment_services().webhook_processor
    result = processor.reprocess(webhook_event)

    logger.info(
        f"Webhook reprocessed: {result.outcome}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "provider_event_id": webhook_event.provider_event_id,
            "outcome": result.outcome,
            "error": result.error,
        },
    )
    return {
        "status": result.outcome,
        "webhook_event_id": str(webhook_event_id),
        "error": result.error,
    }


@shared_task
def retry_failed_webhook_events() -> dict:
    """
    Periodic task to retry failed webhook events.

    Webhooks stuck in PROCESSING (worker crashed mid-dispatch) are reset
    to FAILED first. Failed webhooks under the retry limit are then
    re-queued.

    Returns:
        Dict with counts of webhooks reset and queued
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save(update_fields=["status", "error_message", "updated_at"])
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "provider_event_id": webhook.provider_event_id,
            },
        )

    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=MAX_WEBHOOK_RETRIES,
    ).order_by("created_at")[:BATCH_SIZE]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "provider_event_id": webhook.provider_event_id,
                "retry_count": webhook.retry_count,
            },
        )

    if reset_count or queued_count:
        logger.info(
            f"Queued {queued_count} failed webhooks for retry",
            extra={"queued_count": queued_count, "reset_count": reset_count},
        )

    return {"reset_count": reset_count, "queued_count": queued_count}


@shared_task
def purge_expired_webhook_events() -> dict:
    """
    Delete processed webhook events older than the retention window.

    Within the window a redelivered event is recognised as a duplicate;
    failed events are kept for inspection.

    Returns:
        Dict with count of webhooks deleted
    """
    config = get_payment_services().config
    cutoff = timezone.now() - config.webhook_retention

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} expired webhook events",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}


# =============================================================================
# Reconciliation
# =============================================================================


@shared_task
def reconcile_open_payments(min_age_minutes: int = RECONCILE_MIN_AGE_MINUTES) -> dict:
    """
    Poll the provider for payments that are still open.

    Covers webhooks that were never delivered and submits that timed out
    after the provider had already accepted the payment.

    Args:
        min_age_minutes: Only poll records last updated before this

    Returns:
        Dict with counts of payments checked, changed and errored
    """
    orchestrator = get_payment_services().orchestrator
    threshold = timezone.now() - timedelta(minutes=min_age_minutes)

    open_records = PaymentIntentRecord.objects.filter(
        status__in=OPEN_STATES,
        updated_at__lt=threshold,
    ).order_by("updated_at")[:BATCH_SIZE]

    stats = {"checked": 0, "changed": 0, "errors": 0}
    for record in open_records:
        stats["checked"] += 1
        try:
            refreshed = orchestrator.refresh_payment_status(
                record.provider_transaction_id, source="reconcile"
            )
        except (PaymentError, ConflictError) as e:
            stats["errors"] += 1
            logger.warning(
                f"Could not reconcile payment: {e.message}",
                extra={
                    "provider_transaction_id": record.provider_transaction_id,
                    "error_code": e.error_code,
                },
            )
            continue

        if refreshed.status != record.status:
            stats["changed"] += 1

    logger.info("Reconciliation completed", extra=stats)
    return stats
