"""
Regional payment gateway adapter.

The gateway is a JSON/HTTPS API that settles in the local currency (PYG by
default) and supports marketplace splits natively: a payment carries a
``split`` block naming the vendor merchant and the platform commission.

The gateway has no idempotency header. The idempotency key is sent as the
merchant ``reference`` instead, and every create first looks up an existing
payment with that reference, so a repeated call returns the original
payment rather than charging twice.

Endpoints used:
    GET  /v1/payments?reference=<key>
    POST /v1/payments
    GET  /v1/payments/<id>
    GET  /v1/accounts/<id>

Webhooks are signed as ``X-Gateway-Signature: sha256=<hex>`` where the hex
digest is HMAC-SHA256(webhook secret, raw body).
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import TYPE_CHECKING

import requests

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


STATUS_MAP: dict[str, str] = {
    "pending": PaymentIntentStatus.CREATED,
    "authentication_required": PaymentIntentStatus.REQUIRES_ACTION,
    "authorizing": PaymentIntentStatus.PROCESSING,
    "processing": PaymentIntentStatus.PROCESSING,
    "approved": PaymentIntentStatus.SUCCEEDED,
    "rejected": PaymentIntentStatus.FAILED,
    "canceled": PaymentIntentStatus.CANCELED,
    "expired": PaymentIntentStatus.CANCELED,
}

EVENT_MAP: dict[str, str] = {
    "payment.approved": EVENT_PAYMENT_SUCCEEDED,
    "payment.rejected": EVENT_PAYMENT_FAILED,
    "payment.canceled": EVENT_PAYMENT_CANCELED,
    "payment.expired": EVENT_PAYMENT_CANCELED,
    "payment.processing": EVENT_PAYMENT_PROCESSING,
    "payment.authentication_required": EVENT_PAYMENT_REQUIRES_ACTION,
    "account.updated": EVENT_ACCOUNT_UPDATED,
}

SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_payload: bytes, secret: str) -> str:
    """Header value the gateway sends for a body."""
    digest = hmac.new(secret.encode("utf-8"), raw_payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


class GatewayAdapter(ProviderAdapter):
    """
    ProviderAdapter for the regional gateway's REST API.

    Args:
        settings: ProviderSettings built from GATEWAY_* settings
        session: requests.Session to use (tests pass a mock)
        default_timeout: Timeout in seconds when a call gives none
    """

    kind = ProviderKind.GATEWAY
    signature_header = "X-Gateway-Signature"

    def __init__(
        self,
        settings: ProviderSettings,
        session: requests.Session | None = None,
        default_timeout: float = 10.0,
    ) -> None:
        super().__init__(settings)
        self.default_timeout = default_timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {settings.secret_key}",
                "X-Public-Key": settings.publishable_key,
                "Accept": "application/json",
            }
        )

    def _url(self, path: str) -> str:
        return f"{self.settings.api_base_url.rstrip('/')}{path}"

    def _request(
        self,
        method: str,
        path: str,
        timeout: float,
        **kwargs: Any,
    ) -> dict[str, Any]:
        response = self.session.request(
            method, self._url(path), timeout=timeout, **kwargs
        )
        response.raise_for_status()
        return response.json()

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
        body = {
            "amount": gross.amount,
            "currency": gross.currency,
            "reference": idempotency_key,
            "description": description,
            "split": {
                "account_id": vendor_account_id,
                "commission_amount": commission.amount,
                "payout_amount": gross.amount - commission.amount,
            },
        }
        log_context = {
            "amount": gross.amount,
            "currency": gross.currency,
            "commission": commission.amount,
            "vendor_account_id": vendor_account_id,
            "idempotency_key": idempotency_key,
        }
        return self._create_payment(body, log_context, timeout, "create_split_payment")

    def create_platform_payment(
        self,
        gross: Money,
        idempotency_key: str,
        description: str = "",
        timeout: float | None = None,
    ) -> ProviderPayment:
        body = {
            "amount": gross.amount,
            "currency": gross.currency,
            "reference": idempotency_key,
            "description": description,
        }
        log_context = {
            "amount": gross.amount,
            "currency": gross.currency,
            "idempotency_key": idempotency_key,
        }
        return self._create_payment(
            body, log_context, timeout, "create_platform_payment"
        )

    def _create_payment(
        self,
        body: dict[str, Any],
        log_context: dict[str, Any],
        timeout: float | None,
        operation: str,
    ) -> ProviderPayment:
        timeout = timeout or self.default_timeout
        log_context = {**log_context, "timeout": timeout}

        with self._timed(operation, log_context) as result:
            existing = self._request(
                "GET",
                "/v1/payments",
                timeout,
                params={"reference": body["reference"]},
            )
            matches = existing.get("data") or []
            if matches:
                data = matches[0]
                result["replayed"] = True
            else:
                data = self._request("POST", "/v1/payments", timeout, json=body)
                result["replayed"] = False
            result["provider_transaction_id"] = data.get("id")
            result["status"] = data.get("status")

        return self._to_payment(data)

    def get_payment_status(
        self, provider_transaction_id: str, timeout: float | None = None
    ) -> ProviderPayment:
        timeout = timeout or self.default_timeout
        log_context = {
            "provider_transaction_id": provider_transaction_id,
            "timeout": timeout,
        }

        with self._timed("get_payment_status", log_context) as result:
            data = self._request(
                "GET", f"/v1/payments/{provider_transaction_id}", timeout
            )
            result["status"] = data.get("status")

        return self._to_payment(data)

    def _to_payment(self, data: dict[str, Any]) -> ProviderPayment:
        return ProviderPayment(
            id=str(data["id"]),
            status=STATUS_MAP.get(data.get("status"), PaymentIntentStatus.CREATED),
            amount=int(data.get("amount") or 0),
            currency=(data.get("currency") or "").lower(),
            client_secret=data.get("checkout_token") or "",
            failure_reason=data.get("failure_reason") or "",
            raw_response=data,
        )

    # =========================================================================
    # Vendor Accounts
    # =========================================================================

    def get_vendor_account_status(
        self, vendor_account_id: str, timeout: float | None = None
    ) -> VendorAccountSnapshot:
        timeout = timeout or self.default_timeout
        log_context = {"vendor_account_id": vendor_account_id, "timeout": timeout}

        with self._timed("get_vendor_account_status", log_context) as result:
            data = self._request("GET", f"/v1/accounts/{vendor_account_id}", timeout)
            snapshot = snapshot_from_account(data)
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
        Check ``sha256=<hex>`` against HMAC-SHA256 of the raw body.

        Raises:
            SignatureError: Missing secret or header, wrong scheme, digest
                mismatch, or a body that is not JSON
        """
        secret = secret or self.webhook_secret
        if not secret:
            raise SignatureError(
                "Webhook secret not configured",
                details={"provider": self.kind},
            )
        if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
            raise SignatureError(
                "Missing or malformed X-Gateway-Signature header",
                details={"provider": self.kind},
            )

        if isinstance(raw_payload, str):
            raw_payload = raw_payload.encode("utf-8")
        expected = compute_signature(raw_payload, secret)
        if not hmac.compare_digest(expected, signature_header.strip()):
            raise SignatureError(
                "Invalid webhook signature",
                details={"provider": self.kind},
            )

        try:
            data = json.loads(raw_payload)
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
        data = payload.get("data") or {}

        if event_type == EVENT_ACCOUNT_UPDATED:
            account = data.get("account") or {}
            return ProviderEvent(
                event_id=str(payload.get("id", "")),
                event_type=event_type,
                provider_event_type=provider_type,
                object_id=str(account.get("id", "")),
                payload=payload,
                account=snapshot_from_account(account),
            )

        payment = data.get("payment") or {}
        return ProviderEvent(
            event_id=str(payload.get("id", "")),
            event_type=event_type,
            provider_event_type=provider_type,
            object_id=str(payment.get("id", "")),
            payload=payload,
            failure_reason=payment.get("failure_reason") or "",
        )

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
        Translate requests exceptions to domain exceptions.

        A connect timeout means the request never reached the gateway, so it
        is reported as unavailable; a read timeout leaves the outcome unknown.
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, requests.ConnectTimeout):
            logger.error("Could not reach gateway", extra=log_context)
            raise ProviderUnavailableError(
                "Could not connect to the gateway. Please retry.",
                provider=self.kind,
                provider_code="connect_timeout",
            ) from error

        if isinstance(error, requests.Timeout):
            logger.error("Gateway request timed out", extra=log_context)
            raise ProviderTimeoutError(
                "Gateway request timed out; the outcome is unknown",
                provider=self.kind,
                timeout=log_context.get("timeout"),
            ) from error

        if isinstance(error, requests.ConnectionError):
            logger.error(
                "Connection error to gateway", extra=log_context, exc_info=True
            )
            raise ProviderUnavailableError(
                "Could not connect to the gateway. Please retry.",
                provider=self.kind,
                provider_code="connection_error",
            ) from error

        if isinstance(error, requests.HTTPError) and error.response is not None:
            status_code = error.response.status_code
            code, message = _error_body(error.response)
            log_context = {**log_context, "status_code": status_code, "code": code}

            if status_code == 429 or status_code >= 500:
                logger.warning("Gateway unavailable", extra=log_context)
                raise ProviderUnavailableError(
                    message or f"Gateway returned HTTP {status_code}",
                    provider=self.kind,
                    provider_code=code or f"http_{status_code}",
                ) from error

            logger.error("Gateway rejected request", extra=log_context)
            raise ProviderError(
                message or f"Gateway returned HTTP {status_code}",
                provider=self.kind,
                provider_code=code or f"http_{status_code}",
            ) from error

        if isinstance(error, (requests.RequestException, ValueError, KeyError)):
            logger.error("Unexpected gateway error", extra=log_context, exc_info=True)
            raise ProviderError(
                f"Unexpected gateway response: {error}",
                provider=self.kind,
                provider_code="bad_response",
            ) from error

        raise error


def _error_body(response: requests.Response) -> tuple[str, str]:
    """Extract (code, message) from a gateway error response."""
    try:
        body = response.json()
    except ValueError:
        return "", ""
    err = body.get("error") if isinstance(body, dict) else None
    if not isinstance(err, dict):
        return "", ""
    return str(err.get("code") or ""), str(err.get("message") or "")


def snapshot_from_account(account: dict[str, Any]) -> VendorAccountSnapshot:
    """
    Build a snapshot from a gateway merchant account.

    Gateway fields: kyc_submitted, can_charge, can_payout,
    pending_requirements, overdue_requirements, blocked_reason.
    """
    pending = list(account.get("pending_requirements") or [])
    overdue = list(account.get("overdue_requirements") or [])
    blocked_reason = account.get("blocked_reason") or ""

    return VendorAccountSnapshot(
        provider_account_id=str(account.get("id", "")),
        details_submitted=bool(account.get("kyc_submitted")),
        charges_enabled=bool(account.get("can_charge")),
        transfers_enabled=bool(account.get("can_payout")),
        requirements=pending + [item for item in overdue if item not in pending],
        disabled_reason=blocked_reason,
        restricted=bool(blocked_reason or overdue),
    )
