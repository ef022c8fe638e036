"""
Transition feed for payments.

Other apps subscribe to these signals instead of polling the tables. The
engine itself never sends email or notifications.

Signals:
    payment_intent_transitioned
        sender: PaymentIntentRecord
        record: The record after the change
        previous_status: Status before the change (None on creation)
        status: New status
        source: "submit", "webhook", "poll" or "reconcile"

    vendor_account_updated
        sender: VendorAccount
        account: The account after the change
        previous_status: Onboarding status before the change
        status: New onboarding status

Usage:
    from django.dispatch import receiver
    from payments.signals import payment_intent_transitioned

    @receiver(payment_intent_transitioned)
    def on_payment(sender, record, previous_status, status, source, **kwargs):
        if status == "succeeded":
            fulfil_order(record.metadata["order_id"])

Note:
    Receivers run synchronously inside the emitting call. Use
    send_robust so a broken receiver never undoes a payment transition.
"""

from __future__ import annotations

import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

payment_intent_transitioned = Signal()
vendor_account_updated = Signal()


def send_robust(signal: Signal, sender, **kwargs) -> None:
    """Send a signal and log, but never raise, receiver failures."""
    for receiver, response in signal.send_robust(sender=sender, **kwargs):
        if isinstance(response, Exception):
            logger.error(
                "Signal receiver failed",
                extra={
                    "receiver": getattr(receiver, "__qualname__", repr(receiver)),
                    "error": str(response),
                },
                exc_info=response,
            )
