"""
Tests for payment Celery tasks.

Tests cover:
- process_webhook_event task
- retry_failed_webhook_events task
- purge_expired_webhook_events task
- reconcile_open_payments task
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from django.utils import timezone
from freezegun import freeze_time

from payments.exceptions import ProviderTimeoutError
from payments.models import PaymentIntentRecord, WebhookEvent
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES
from payments.state_machines import PaymentIntentStatus, WebhookEventStatus
from payments.tasks import (
    STUCK_PROCESSING_THRESHOLD_MINUTES,
    process_webhook_event,
    purge_expired_webhook_events,
    reconcile_open_payments,
    retry_failed_webhook_events,
)
from payments.tests.factories import PaymentIntentRecordFactory, WebhookEventFactory

pytestmark = pytest.mark.usefixtures("use_payment_services")


def _age(queryset, **delta):
    """Push updated_at into the past; auto_now ignores queryset updates."""
    queryset.update(updated_at=timezone.now() - timedelta(**delta))


# =============================================================================
# process_webhook_event Tests
# =============================================================================


@pytest.mark.django_db
class TestProcessWebhookEvent:
    def test_process_pending_event(self, processing_record):
        event = WebhookEventFactory(object_id=processing_record.provider_transaction_id)

        result = process_webhook_event(str(event.id))

        assert result["status"] == "accepted"
        event = WebhookEvent.objects.get(pk=event.pk)
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processed_at is not None
        assert event.retry_count == 1
        assert event.payment_intent_id == processing_record.pk
        record = PaymentIntentRecord.objects.get(pk=processing_record.pk)
        assert record.status == PaymentIntentStatus.SUCCEEDED

    def test_skip_already_processed_event(self, mocker):
        event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)
        dispatch = mocker.patch("payments.webhooks.processor.dispatch_webhook")

        result = process_webhook_event(str(event.id))

        assert result["status"] == "already_processed"
        dispatch.assert_not_called()

    def test_event_not_found(self):
        result = process_webhook_event(str(uuid4()))

        assert result["status"] == "not_found"

    def test_missing_payment_marks_event_failed(self):
        event = WebhookEventFactory(object_id="connect_pay_missing")

        result = process_webhook_event(str(event.id))

        assert result["status"] == "failed"
        assert "connect_pay_missing" in result["error"]
        event = WebhookEvent.objects.get(pk=event.pk)
        assert event.status == WebhookEventStatus.FAILED
        assert event.retry_count == 1

    def test_failed_event_succeeds_on_retry(self, processing_record):
        event = WebhookEventFactory(
            object_id=processing_record.provider_transaction_id,
            status=WebhookEventStatus.FAILED,
            error_message="Payment not found",
            retry_count=2,
        )

        result = process_webhook_event(str(event.id))

        assert result["status"] == "accepted"
        event = WebhookEvent.objects.get(pk=event.pk)
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.error_message == ""
        assert event.retry_count == 3


# =============================================================================
# retry_failed_webhook_events Tests
# =============================================================================


@pytest.mark.django_db
class TestRetryFailedWebhookEvents:
    def test_queues_failed_events_under_limit(self, mocker):
        delay = mocker.patch("payments.tasks.process_webhook_event.delay")
        retryable = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=1)
        WebhookEventFactory(
            status=WebhookEventStatus.FAILED, retry_count=MAX_WEBHOOK_RETRIES
        )
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        result = retry_failed_webhook_events()

        assert result == {"reset_count": 0, "queued_count": 1}
        delay.assert_called_once_with(str(retryable.id))

    def test_resets_stuck_processing_events(self, mocker):
        delay = mocker.patch("payments.tasks.process_webhook_event.delay")
        stuck = WebhookEventFactory(status=WebhookEventStatus.PROCESSING, retry_count=1)
        fresh = WebhookEventFactory(status=WebhookEventStatus.PROCESSING, retry_count=1)
        _age(
            WebhookEvent.objects.filter(pk=stuck.pk),
            minutes=STUCK_PROCESSING_THRESHOLD_MINUTES + 5,
        )

        result = retry_failed_webhook_events()

        assert result == {"reset_count": 1, "queued_count": 1}
        delay.assert_called_once_with(str(stuck.id))
        stuck = WebhookEvent.objects.get(pk=stuck.pk)
        assert stuck.status == WebhookEventStatus.FAILED
        assert "timed out" in stuck.error_message
        assert WebhookEvent.objects.get(pk=fresh.pk).status == WebhookEventStatus.PROCESSING

    def test_nothing_to_do(self):
        assert retry_failed_webhook_events() == {"reset_count": 0, "queued_count": 0}


# =============================================================================
# purge_expired_webhook_events Tests
# =============================================================================


@pytest.mark.django_db
class TestPurgeExpiredWebhookEvents:
    def test_deletes_processed_events_past_retention(self, payments_config):
        with freeze_time("2026-01-01 12:00:00"):
            old = WebhookEventFactory(
                status=WebhookEventStatus.PROCESSED, processed_at=timezone.now()
            )
            old_failed = WebhookEventFactory(status=WebhookEventStatus.FAILED)

        retention_hours = payments_config.webhook_retention.total_seconds() / 3600
        with freeze_time("2026-01-01 12:00:00") as frozen:
            frozen.tick(timedelta(hours=retention_hours + 1))
            recent = WebhookEventFactory(
                status=WebhookEventStatus.PROCESSED, processed_at=timezone.now()
            )

            result = purge_expired_webhook_events()

        assert result == {"deleted_count": 1}
        assert not WebhookEvent.objects.filter(pk=old.pk).exists()
        assert WebhookEvent.objects.filter(pk=old_failed.pk).exists()
        assert WebhookEvent.objects.filter(pk=recent.pk).exists()

    def test_keeps_events_inside_retention_window(self):
        WebhookEventFactory(
            provider_event_id="evt_recent",
            status=WebhookEventStatus.PROCESSED,
            processed_at=timezone.now() - timedelta(hours=1),
        )

        assert purge_expired_webhook_events() == {"deleted_count": 0}
        assert WebhookEvent.objects.filter(provider_event_id="evt_recent").exists()


# =============================================================================
# reconcile_open_payments Tests
# =============================================================================


@pytest.mark.django_db
class TestReconcileOpenPayments:
    def test_applies_provider_status_to_stale_open_records(
        self, connect_adapter, processing_record, created_record
    ):
        connect_adapter.statuses[processing_record.provider_transaction_id] = (
            PaymentIntentStatus.SUCCEEDED
        )
        connect_adapter.statuses[created_record.provider_transaction_id] = (
            PaymentIntentStatus.CREATED
        )
        _age(PaymentIntentRecord.objects.all(), minutes=30)

        result = reconcile_open_payments()

        assert result == {"checked": 2, "changed": 1, "errors": 0}
        record = PaymentIntentRecord.objects.get(pk=processing_record.pk)
        assert record.status == PaymentIntentStatus.SUCCEEDED

    def test_skips_recent_and_terminal_records(self, connect_adapter, succeeded_record):
        PaymentIntentRecordFactory(status=PaymentIntentStatus.PROCESSING)
        _age(PaymentIntentRecord.objects.filter(pk=succeeded_record.pk), hours=2)

        result = reconcile_open_payments()

        assert result == {"checked": 0, "changed": 0, "errors": 0}
        assert connect_adapter.calls_to("get_payment_status") == []

    def test_provider_errors_are_counted_not_raised(
        self, connect_adapter, processing_record
    ):
        connect_adapter.next_error = ProviderTimeoutError(
            "Provider timed out", provider="connect"
        )
        _age(PaymentIntentRecord.objects.all(), minutes=30)

        result = reconcile_open_payments()

        assert result == {"checked": 1, "changed": 0, "errors": 1}
        record = PaymentIntentRecord.objects.get(pk=processing_record.pk)
        assert record.status == PaymentIntentStatus.PROCESSING
