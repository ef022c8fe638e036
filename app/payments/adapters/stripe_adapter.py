"""
Stripe Connect adapter.

Split payments are destination charges: the PaymentIntent is created on
the platform account with ``application_fee_amount`` set to the commission
and ``transfer_data.destination`` set to the vendor's connected account,
so Stripe routes gross - commission to the vendor.

Features:
- Per-call timeouts through one StripeClient per timeout value
- Stripe exceptions translated to provider-neutral domain exceptions
- Structured logging with timing metrics
- Native idempotency keys on every mutating call

Usage:
    adapter = StripeConnectAdapter(config.provider(ProviderKind.CONNECT))
    payment = adapter.create_split_payment(
        gross=Money(10000, "usd"),
        commission=Money(500, "usd"),
        vendor_account_id="acct_123",
        idempotency_key="order-42",
    )
    payment.client_secret  # hand to the client for confirmation
"""

from __future__ import annotations

import json
import threading
from typing import TYPE_CHECKING

import stripe

from payments.adapters.base import (
    EVENT_ACCOUNT_UPDATED,
    EVENT_PAYMENT_CANCELED,
    EVENT_PAYMENT_FAILED,
    EVENT_PAYMENT_PROCESSING,
    EVENT_PAYMENT_REQUIRES_ACTION,
    EVENT_PAYMENT_SUCCEEDED,
    EVENT_UNKNOWN,
    ProviderAdapter,
    ProviderEvent,
    ProviderPayment,
    VendorAccountSnapshot,
)
from payments.exceptions import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    SignatureError,
)
from payments.state_machines import PaymentIntentStatus, ProviderKind

if TYPE_CHECKING:
    from typing import Any

    from payments.config import ProviderSettings
    from payments.money import Money


# Stripe PaymentIntent status -> canonical status
STATUS_MAP: dict[str, str] = {
    "requires_payment_method": PaymentIntentStatus.CREATED,
    "requires_confirmation": PaymentIntentStatus.CREATED,
    "requires_action": PaymentIntentStatus.REQUIRES_ACTION,
    "processing": PaymentIntentStatus.PROCESSING,
    "requires_capture": PaymentIntentStatus.PROCESSING,
    "succeeded": PaymentIntentStatus.SUCCEEDED,
    "canceled": PaymentIntentStatus.CANCELED,
}

# Stripe event type -> canonical event type
EVENT_MAP: dict[str, str] = {
    "payment_intent.succeeded": EVENT_PAYMENT_SUCCEEDED,
    "payment_intent.payment_failed": EVENT_PAYMENT_FAILED,
    "payment_intent.canceled": EVENT_PAYMENT_CANCELED,
    "payment_intent.processing": EVENT_PAYMENT_PROCESSING,
    "payment_intent.requires_action": EVENT_PAYMENT_REQUIRES_ACTION,
    "account.updated": EVENT_ACCOUNT_UPDATED,
}

SIGNATURE_TOLERANCE_SECONDS = 300


class StripeConnectAdapter(ProviderAdapter):
    """
    ProviderAdapter for Stripe Connect destination charges.

    Configuration comes from ProviderSettings built out of STRIPE_SECRET_KEY,
    STRIPE_PUBLISHABLE_KEY, STRIPE_WEBHOOK_SECRET, STRIPE_SETTLEMENT_CURRENCY
    and STRIPE_MINIMUM_FEE.
    """

    kind = ProviderKind.CONNECT
    signature_header = "Stripe-Signature"

    def __init__(
        self, settings: ProviderSettings, default_timeout: float = 10.0
    ) -> None:
        super().__init__(settings)
        self.default_timeout = default_timeout
        self._clients: dict[float, stripe.StripeClient] = {}
        self._clients_lock = threading.Lock()

    # =========================================================================
    # Configuration
    # =========================================================================

    def _client(self, timeout: float | None) -> tuple[stripe.StripeClient, float]:
        """
        Return the StripeClient bound to a timeout, and the effective timeout.

        Clients are cached per timeout value and never touch the SDK's
        module-level globals, so concurrent calls with different timeouts
        each get their own HTTP client.
        """
        timeout = timeout or self.default_timeout
        with self._clients_lock:
            client = self._clients.get(timeout)
            if client is None:
                # Retrying is the caller's decision, never the SDK's
                client = stripe.StripeClient(
                    self.settings.secret_key,
                    http_client=stripe.RequestsClient(timeout=timeout),
                    max_network_retries=0,
                )
                self._clients[timeout] = client
        return client, timeout

    # =========================================================================
    # Payments
    # =========================================================================

    def create_split_payment(
        self,
        gross: Money,
        commission: Money,
        vendor_account_id: str,
        idempotency_key: str,
        description: str = "",
        timeout: float | None = None,
    ) -> ProviderPayment:
        client, timeout = self._client(timeout)
        log_context = {
            "timeout": timeout,
            "amount": gross.amount,
            "currency": gross.currency,
            "commission": commission.amount,
            "vendor_account_id": vendor_account_id,
            "idempotency_key": idempotency_key,
        }

        with self._timed("create_split_payment", log_context) as result:
            intent = client.payment_intents.create(
                params={
                    "amount": gross.amount,
                    "currency": gross.currency,
                    "application_fee_amount": commission.amount,
                    "transfer_data": {"destination": vendor_account_id},
                    "payment_method_types": ["card"],
                    "description": description or None,
                    "metadata": {
                        "vendor_account_id": vendor_account_id,
                        "commission": str(commission.amount),
                        "payout": str(gross.amount - commission.amount),
                    },
                },
                options={"idempotency_key": idempotency_key},
            )
            result["provider_transaction_id"] = intent.id
            result["status"] = intent.status

        return self._to_payment(intent)

    def create_platform_payment(
        self,
        gross: Money,
        idempotency_key: str,
        description: str = "",
        timeout: float | None = None,
    ) -> ProviderPayment:
        client, timeout = self._client(timeout)
        log_context = {
            "timeout": timeout,
            "amount": gross.amount,
            "currency": gross.currency,
            "idempotency_key": idempotency_key,
        }

        with self._timed("create_platform_payment", log_context) as result:
            intent = client.payment_intents.create(
                params={
                    "amount": gross.amount,
                    "currency": gross.currency,
                    "payment_method_types": ["card"],
                    "description": description or None,
                    "metadata": {"platform_only": "true"},
                },
                options={"idempotency_key": idempotency_key},
            )
            result["provider_transaction_id"] = intent.id
            result["status"] = intent.status

        return self._to_payment(intent)

    def get_payment_status(
        self, provider_transaction_id: str, timeout: float | None = None
    ) -> ProviderPayment:
        client, timeout = self._client(timeout)
        log_context = {
            "provider_transaction_id": provider_transaction_id,
            "timeout": timeout,
        }

        with self._timed("get_payment_status", log_context) as result:
            intent = client.payment_intents.retrieve(provider_transaction_id)
            result["status"] = intent.status

        return self._to_payment(intent)

    def _to_payment(self, intent: Any) -> ProviderPayment:
        data = intent.to_dict()
        last_error = data.get("last_payment_error") or {}
        return ProviderPayment(
            id=data["id"],
            status=STATUS_MAP.get(data.get("status"), PaymentIntentStatus.CREATED),
            amount=data.get("amount") or 0,
            currency=data.get("currency") or "",
            client_secret=data.get("client_secret") or "",
            failure_reason=last_error.get("message") or "",
            raw_response=data,
        )

    # =========================================================================
    # Vendor Accounts
    # =========================================================================

    def get_vendor_account_status(
        self, vendor_account_id: str, timeout: float | None = None
    ) -> VendorAccountSnapshot:
        client, timeout = self._client(timeout)
        log_context = {"vendor_account_id": vendor_account_id, "timeout": timeout}

        with self._timed("get_vendor_account_status", log_context) as result:
            account = client.accounts.retrieve(vendor_account_id)
            snapshot = snapshot_from_account(account.to_dict())
            result["transfers_enabled"] = snapshot.transfers_enabled
            result["restricted"] = snapshot.restricted

        return snapshot

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_webhook_signature(
        self,
        raw_payload: bytes,
        signature_header: str,
        secret: str | None = None,
    ) -> ProviderEvent:
        """
        Verify a Stripe ``t=<ts>,v1=<hmac>`` signature and parse the event.

        Raises:
            SignatureError: Missing secret, missing header, bad signature,
                timestamp outside tolerance, or a body that is not JSON
        """
        secret = secret or self.webhook_secret
        if not secret:
            raise SignatureError(
                "Webhook secret not configured",
                details={"provider": self.kind},
            )
        if not signature_header:
            raise SignatureError(
                "Missing Stripe-Signature header",
                details={"provider": self.kind},
            )

        payload = (
            raw_payload.decode("utf-8")
            if isinstance(raw_payload, bytes)
            else raw_payload
        )
        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature_header,
                secret,
                SIGNATURE_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureError(
                "Invalid webhook signature",
                details={"provider": self.kind, "error": str(e)},
            ) from None

        try:
            data = json.loads(payload)
        except ValueError:
            raise SignatureError(
                "Webhook payload is not valid JSON",
                details={"provider": self.kind},
            ) from None
        if not isinstance(data, dict):
            raise SignatureError(
                "Webhook payload is not a JSON object",
                details={"provider": self.kind},
            )

        return self.parse_event(data)

    def parse_event(self, payload: dict[str, Any]) -> ProviderEvent:
        provider_type = payload.get("type", "")
        event_type = EVENT_MAP.get(provider_type, EVENT_UNKNOWN)
        obj = (payload.get("data") or {}).get("object") or {}

        event = ProviderEvent(
            event_id=payload.get("id", ""),
            event_type=event_type,
            provider_event_type=provider_type,
            object_id=obj.get("id", ""),
            payload=payload,
        )
        if event_type == EVENT_PAYMENT_FAILED:
            last_error = obj.get("last_payment_error") or {}
            event.failure_reason = (
                last_error.get("message") or last_error.get("code") or "payment_failed"
            )
        elif event_type == EVENT_ACCOUNT_UPDATED:
            event.account = snapshot_from_account(obj)
        return event

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _handle_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            ProviderTimeoutError: Request timed out (outcome unknown)
            ProviderUnavailableError: Connection failure, 5xx or rate limit
            ProviderError: Declines, invalid requests, authentication
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise ProviderError(
                str(error.user_message or error),
                provider=self.kind,
                provider_code=decline_code or error.code,
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise ProviderError(
                error.user_message or str(error),
                provider=self.kind,
                provider_code=error.code or "invalid_request",
            ) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise ProviderUnavailableError(
                "Stripe rate limit exceeded. Please retry.",
                provider=self.kind,
                provider_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            message = str(error).lower()
            if "timeout" in message or "timed out" in message:
                logger.error("Stripe request timed out", extra=log_context)
                raise ProviderTimeoutError(
                    "Stripe request timed out; the outcome is unknown",
                    provider=self.kind,
                    timeout=log_context.get("timeout"),
                ) from error

            logger.error(
                "Connection error to Stripe", extra=log_context, exc_info=True
            )
            raise ProviderUnavailableError(
                "Could not connect to Stripe. Please retry.",
                provider=self.kind,
                provider_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed", extra=log_context)
            raise ProviderError(
                "Stripe authentication failed",
                provider=self.kind,
                provider_code="authentication_error",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise ProviderUnavailableError(
                "Stripe API error. Please retry.",
                provider=self.kind,
                provider_code="api_error",
            ) from error

        if isinstance(error, stripe.StripeError):
            logger.error("Unexpected Stripe error", extra=log_context, exc_info=True)
            raise ProviderError(
                str(error),
                provider=self.kind,
                provider_code=getattr(error, "code", None) or "stripe_error",
            ) from error

        raise error


def snapshot_from_account(account: dict[str, Any]) -> VendorAccountSnapshot:
    """
    Build a snapshot from a Stripe Account dict.

    Transfers count as enabled when the ``transfers`` capability is active.
    The account is restricted when Stripe reports a disabled reason,
    past-due requirements or requirement errors.
    """
    requirements = account.get("requirements") or {}
    capabilities = account.get("capabilities") or {}
    currently_due = list(requirements.get("currently_due") or [])
    past_due = list(requirements.get("past_due") or [])
    errors = [
        item.get("requirement") or item.get("code") or "error"
        for item in requirements.get("errors") or []
    ]
    disabled_reason = requirements.get("disabled_reason") or ""

    outstanding: list[str] = []
    for item in currently_due + past_due + errors:
        if item not in outstanding:
            outstanding.append(item)

    return VendorAccountSnapshot(
        provider_account_id=account.get("id", ""),
        details_submitted=bool(account.get("details_submitted")),
        charges_enabled=bool(account.get("charges_enabled")),
        transfers_enabled=capabilities.get("transfers") == "active",
        requirements=outstanding,
        disabled_reason=disabled_reason,
        restricted=bool(disabled_reason or past_due or errors),
    )
