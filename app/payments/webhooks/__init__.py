"""
Provider webhook intake.

- processor: signature verification, de-duplication, dispatch
- handlers: handler registry keyed by canonical event type
- views: the HTTP endpoint
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.processor import (
    WebhookOutcome,
    WebhookProcessor,
    WebhookResult,
)

__all__ = [
    "WebhookOutcome",
    "WebhookProcessor",
    "WebhookResult",
    "dispatch_webhook",
    "register_handler",
]
