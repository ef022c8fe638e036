"""
Webhook endpoint view for payment providers.

One endpoint serves every provider; the provider kind comes from the URL
and selects the adapter that knows the signature header and scheme.

Usage:
    # In urls.py
    from payments.webhooks.views import provider_webhook

    urlpatterns = [
        path("webhooks/<str:provider_kind>/", provider_webhook, name="provider-webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.services.container import get_payment_services

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def provider_webhook(request: HttpRequest, provider_kind: str) -> HttpResponse:
    """
    Receive, verify and process a provider webhook.

    Processing is synchronous so the response tells the provider the
    truth: a 500 makes it redeliver an event we failed to apply.

    Security:
    - Signature verification prevents spoofed webhooks
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Returns:
        HttpResponse with status:
        - 200: Event accepted, duplicate or ignored
        - 400: Unknown provider, invalid signature or payload
        - 500: Event stored but not applied; provider should redeliver
    """
    processor = get_payment_services().webhook_processor
    header_name = processor.signature_header(provider_kind)
    signature = request.headers.get(header_name, "") if header_name else ""

    result = processor.handle_webhook(provider_kind, request.body, signature)

    if result.http_status >= 500:
        logger.error(
            "Webhook not applied, provider will redeliver",
            extra={
                "provider": provider_kind,
                "event_id": result.event_id,
                "error": result.error,
            },
        )
    return HttpResponse(result.outcome, status=result.http_status)
