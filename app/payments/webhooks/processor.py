"""
Webhook verification and exactly-once processing.

Processing Flow:
    1. Verify the signature with the provider's secret and scheme
       (failure -> rejected, nothing stored)
    2. Take the per-event lock webhook:<kind>:<event id>
    3. get_or_create the WebhookEvent; an already processed event is a
       duplicate and is acknowledged without reprocessing
    4. Dispatch to the registered handler
    5. Mark processed (acknowledge) or failed (provider redelivers, and the
       retry task picks it up)

Usage:
    result = processor.handle_webhook("connect", request.body, signature)
    return HttpResponse(result.outcome, status=result.http_status)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult
from payments.adapters.registry import get_adapter
from payments.exceptions import (
    DuplicateEventError,
    LockAcquisitionError,
    PaymentValidationError,
    SignatureError,
)
from payments.locks import DistributedLock, webhook_lock_key
from payments.models import PaymentIntentRecord, WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import dispatch_webhook, has_handler

if TYPE_CHECKING:
    from collections.abc import Mapping

    from payments.adapters.base import ProviderAdapter, ProviderEvent
    from payments.config import PaymentsConfig
    from payments.services.payment_orchestrator import PaymentOrchestrator
    from payments.services.vendor_registry import VendorAccountRegistry


# =============================================================================
# Result Type
# =============================================================================


class WebhookOutcome:
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    REJECTED = "rejected"
    FAILED = "failed"


OUTCOME_HTTP_STATUS: dict[str, int] = {
    WebhookOutcome.ACCEPTED: 200,
    WebhookOutcome.DUPLICATE: 200,
    WebhookOutcome.IGNORED: 200,
    WebhookOutcome.REJECTED: 400,
    WebhookOutcome.FAILED: 500,
}


@dataclass
class WebhookResult:
    """
    Outcome of one webhook delivery.

    accepted/duplicate/ignored are acknowledged (HTTP 200); rejected is a
    bad request (400); failed asks the provider to redeliver (500).
    """

    outcome: str
    event_id: str = ""
    error: str = ""

    @property
    def acknowledged(self) -> bool:
        return self.http_status == 200

    @property
    def http_status(self) -> int:
        return OUTCOME_HTTP_STATUS[self.outcome]


# =============================================================================
# Processor
# =============================================================================


class WebhookProcessor(BaseService):
    """Verifies, de-duplicates and dispatches provider webhooks."""

    def __init__(
        self,
        config: PaymentsConfig,
        adapters: Mapping[str, ProviderAdapter],
        orchestrator: PaymentOrchestrator,
        vendor_registry: VendorAccountRegistry,
    ) -> None:
        self.config = config
        self.adapters = adapters
        self.orchestrator = orchestrator
        self.vendor_registry = vendor_registry

    def signature_header(self, provider_kind: str) -> str:
        """Name of the HTTP header carrying the signature ('' if unknown)."""
        adapter = self.adapters.get(provider_kind)
        return adapter.signature_header if adapter else ""

    def _lock(self, provider_kind: str, event_id: str) -> DistributedLock:
        return DistributedLock(
            webhook_lock_key(provider_kind, event_id),
            ttl=self.config.lock_ttl,
            timeout=self.config.lock_timeout,
        )

    def handle_webhook(
        self,
        provider_kind: str,
        raw_body: bytes,
        signature_header: str,
    ) -> WebhookResult:
        """
        Verify and process one delivery.

        Args:
            provider_kind: ProviderKind from the webhook URL
            raw_body: Exact request body bytes
            signature_header: Value of the provider's signature header
        """
        logger = self.get_logger()

        try:
            adapter = get_adapter(provider_kind, self.adapters)
        except PaymentValidationError as e:
            logger.warning(
                "Webhook for unknown provider", extra={"provider": provider_kind}
            )
            return WebhookResult(WebhookOutcome.REJECTED, error=e.message)

        try:
            event = adapter.verify_webhook_signature(raw_body, signature_header)
        except SignatureError as e:
            logger.warning(
                "Webhook signature verification failed",
                extra={"provider": provider_kind, "error": e.message},
            )
            return WebhookResult(WebhookOutcome.REJECTED, error=e.message)

        if not event.event_id:
            logger.warning("Webhook missing event id", extra={"provider": provider_kind})
            return WebhookResult(WebhookOutcome.REJECTED, error="Missing event id")

        log_context = {
            "provider": provider_kind,
            "event_id": event.event_id,
            "event_type": event.event_type,
            "provider_event_type": event.provider_event_type,
        }
        logger.info("Received webhook", extra=log_context)

        try:
            with self._lock(provider_kind, event.event_id):
                webhook_event = self._claim(provider_kind, event)
                return self._process(webhook_event, event)
        except DuplicateEventError:
            logger.info("Webhook already processed, returning success", extra=log_context)
            return WebhookResult(WebhookOutcome.DUPLICATE, event.event_id)
        except LockAcquisitionError:
            logger.warning("Webhook event is being processed elsewhere", extra=log_context)
            return WebhookResult(
                WebhookOutcome.FAILED,
                event.event_id,
                error="Event is being processed",
            )

    def _claim(self, provider_kind: str, event: ProviderEvent) -> WebhookEvent:
        """
        Stored record for the event, created on first delivery.

        Raises:
            DuplicateEventError: The event was already processed
        """
        webhook_event, created = WebhookEvent.objects.get_or_create(
            provider_kind=provider_kind,
            provider_event_id=event.event_id,
            defaults={
                "event_type": event.event_type,
                "provider_event_type": event.provider_event_type,
                "object_id": event.object_id,
                "payload": event.payload,
                "status": WebhookEventStatus.PENDING,
            },
        )
        if not created and webhook_event.is_processed:
            raise DuplicateEventError(
                "Webhook event already processed",
                details={"provider": provider_kind, "event_id": event.event_id},
            )
        return webhook_event

    def reprocess(self, webhook_event: WebhookEvent) -> WebhookResult:
        """
        Dispatch a stored event again (used by the retry task).

        The payload was verified when it was stored, so it is parsed
        without a signature check.
        """
        with self._lock(webhook_event.provider_kind, webhook_event.provider_event_id):
            webhook_event = WebhookEvent.objects.get(pk=webhook_event.pk)
            if webhook_event.is_processed:
                return WebhookResult(
                    WebhookOutcome.DUPLICATE, webhook_event.provider_event_id
                )
            adapter = get_adapter(webhook_event.provider_kind, self.adapters)
            event = adapter.parse_event(webhook_event.payload)
            return self._process(webhook_event, event)

    def _process(
        self, webhook_event: WebhookEvent, event: ProviderEvent
    ) -> WebhookResult:
        logger = self.get_logger()
        log_context = {
            "provider": webhook_event.provider_kind,
            "event_id": event.event_id,
            "event_type": event.event_type,
            "attempt": webhook_event.retry_count + 1,
        }

        webhook_event.mark_processing()
        webhook_event.save(update_fields=["status", "retry_count", "updated_at"])

        try:
            result = dispatch_webhook(event, self)
        except Exception as e:
            logger.error(
                f"Webhook handler raised: {type(e).__name__}",
                extra=log_context,
                exc_info=True,
            )
            result = ServiceResult.from_exception(e)

        if not result.success:
            webhook_event.mark_failed(result.error or "Handler failed")
            webhook_event.save(update_fields=["status", "error_message", "updated_at"])
            logger.warning(
                "Webhook processing failed",
                extra={**log_context, "error": result.error, "error_code": result.error_code},
            )
            return WebhookResult(
                WebhookOutcome.FAILED, event.event_id, error=result.error or ""
            )

        update_fields = ["status", "processed_at", "error_message", "updated_at"]
        if isinstance(result.data, PaymentIntentRecord):
            webhook_event.payment_intent = result.data
            update_fields.append("payment_intent")
        webhook_event.mark_processed()
        webhook_event.save(update_fields=update_fields)

        outcome = (
            WebhookOutcome.ACCEPTED
            if has_handler(event.event_type)
            else WebhookOutcome.IGNORED
        )
        logger.info("Webhook processed", extra={**log_context, "outcome": outcome})
        return WebhookResult(outcome, event.event_id)
