"""
Payment domain models.

- VendorAccount: Provider account receiving vendor payouts
- PaymentIntentRecord: A submitted payment, its split and its status
- WebhookEvent: Verified provider notifications for exactly-once processing
"""

from payments.models.payment_intent import PaymentIntentRecord
from payments.models.vendor_account import VendorAccount
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "PaymentIntentRecord",
    "VendorAccount",
    "WebhookEvent",
]
