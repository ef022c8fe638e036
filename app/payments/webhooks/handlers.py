"""
Webhook event handlers.

Handlers are registered per canonical event type, so one handler serves
every provider: the adapters have already translated provider event types
(``payment_intent.succeeded``, ``payment.approved``) into the canonical
``payment_succeeded``.

The handler registry allows:
- Clean separation between event routing and handling
- Easy extension for new event types
- Centralized error handling

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("payment_succeeded")
    def handle_payment_succeeded(event, processor) -> ServiceResult:
        ...

    result = dispatch_webhook(event, processor)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from core.services import ServiceResult
from payments.adapters.base import (
    EVENT_ACCOUNT_UPDATED,
    EVENT_PAYMENT_CANCELED,
    EVENT_PAYMENT_FAILED,
    EVENT_PAYMENT_PROCESSING,
    EVENT_PAYMENT_REQUIRES_ACTION,
    EVENT_PAYMENT_SUCCEEDED,
)
from payments.exceptions import PaymentNotFoundError
from payments.state_machines import PaymentIntentStatus

if TYPE_CHECKING:
    from payments.adapters.base import ProviderEvent
    from payments.webhooks.processor import WebhookProcessor

    Handler = Callable[[ProviderEvent, WebhookProcessor], ServiceResult]


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps canonical event types to handler functions
WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: Canonical event type (e.g., "payment_succeeded")
    """

    def decorator(func: Handler) -> Handler:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def has_handler(event_type: str) -> bool:
    return event_type in WEBHOOK_HANDLERS


def dispatch_webhook(event: ProviderEvent, processor: WebhookProcessor) -> ServiceResult:
    """
    Dispatch a verified event to its handler.

    Unknown event types are logged and acknowledged with success so the
    provider stops redelivering them.

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {event.provider_event_type}",
            extra={"event_id": event.event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {event.event_type} to handler",
        extra={"event_id": event.event_id, "object_id": event.object_id},
    )
    return handler(event, processor)


# =============================================================================
# Payment Handlers
# =============================================================================


PAYMENT_EVENT_STATUSES: dict[str, str] = {
    EVENT_PAYMENT_SUCCEEDED: PaymentIntentStatus.SUCCEEDED,
    EVENT_PAYMENT_FAILED: PaymentIntentStatus.FAILED,
    EVENT_PAYMENT_CANCELED: PaymentIntentStatus.CANCELED,
    EVENT_PAYMENT_PROCESSING: PaymentIntentStatus.PROCESSING,
    EVENT_PAYMENT_REQUIRES_ACTION: PaymentIntentStatus.REQUIRES_ACTION,
}


def _apply_payment_event(
    event: ProviderEvent, processor: WebhookProcessor
) -> ServiceResult:
    """
    Move the referenced PaymentIntentRecord to the event's status.

    A record that is not persisted yet (the webhook beat the submit call)
    is a failure, so the provider redelivers later.
    """
    if not event.object_id:
        logger.error(
            f"{event.event_type}: Could not extract payment id",
            extra={"event_id": event.event_id},
        )
        return ServiceResult.failure(
            "Could not extract payment id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    try:
        record = processor.orchestrator.apply_transition(
            event.object_id,
            PAYMENT_EVENT_STATUSES[event.event_type],
            reason=event.failure_reason,
            source="webhook",
        )
    except PaymentNotFoundError:
        logger.warning(
            "PaymentIntentRecord not found for webhook",
            extra={"event_id": event.event_id, "object_id": event.object_id},
        )
        return ServiceResult.failure(
            f"Payment not found: {event.object_id}",
            error_code="PAYMENT_NOT_FOUND",
        )

    return ServiceResult.success(record)


for _event_type in PAYMENT_EVENT_STATUSES:
    register_handler(_event_type)(_apply_payment_event)


# =============================================================================
# Account Handlers
# =============================================================================


@register_handler(EVENT_ACCOUNT_UPDATED)
def handle_account_updated(
    event: ProviderEvent, processor: WebhookProcessor
) -> ServiceResult:
    """
    Apply a vendor account snapshot carried by the event.

    Accounts we never registered are acknowledged and ignored; the
    provider also notifies us about accounts created outside this system.
    """
    if event.account is None or not event.account.provider_account_id:
        logger.error(
            "account_updated: Could not extract account id",
            extra={"event_id": event.event_id},
        )
        return ServiceResult.failure(
            "Could not extract account id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    try:
        account = processor.vendor_registry.apply_snapshot(
            event.account, source="webhook"
        )
    except PaymentNotFoundError:
        logger.info(
            "Vendor account not registered, ignoring update",
            extra={
                "event_id": event.event_id,
                "provider_account_id": event.account.provider_account_id,
            },
        )
        return ServiceResult.success(None)

    return ServiceResult.success(account)
