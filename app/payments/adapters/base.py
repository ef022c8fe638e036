"""
Provider adapter interface.

Everything provider-specific (settlement currency, minimum fee floor,
signature scheme, status and event vocabulary, error codes) stays behind
ProviderAdapter. Services look adapters up by ProviderKind and never branch
on which provider they are talking to.

Canonical vocabulary:
    Payment statuses are PaymentIntentStatus values.
    Event types are the EVENT_* constants below.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from payments.exceptions import PaymentError
from payments.money import Money

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from payments.config import ProviderSettings


# =============================================================================
# Canonical Event Types
# =============================================================================

EVENT_PAYMENT_SUCCEEDED = "payment_succeeded"
EVENT_PAYMENT_FAILED = "payment_failed"
EVENT_PAYMENT_CANCELED = "payment_canceled"
EVENT_PAYMENT_PROCESSING = "payment_processing"
EVENT_PAYMENT_REQUIRES_ACTION = "payment_requires_action"
EVENT_ACCOUNT_UPDATED = "account_updated"
EVENT_UNKNOWN = "unknown"

PAYMENT_EVENT_TYPES = frozenset(
    {
        EVENT_PAYMENT_SUCCEEDED,
        EVENT_PAYMENT_FAILED,
        EVENT_PAYMENT_CANCELED,
        EVENT_PAYMENT_PROCESSING,
        EVENT_PAYMENT_REQUIRES_ACTION,
    }
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class ProviderPayment:
    """
    Provider's view of a payment.

    Attributes:
        id: Provider transaction id (pi_xxx, gateway payment id)
        status: Canonical PaymentIntentStatus value
        amount: Amount in minor units of currency
        currency: Lowercase currency code
        client_secret: Handle the client uses to confirm the payment
        failure_reason: Provider's failure message, if any
        raw_response: Full provider response (for debugging)
    """

    id: str
    status: str
    amount: int
    currency: str
    client_secret: str = ""
    failure_reason: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class VendorAccountSnapshot:
    """
    Capability facts reported by the provider for a vendor account.

    restricted is True when the provider placed a compliance hold
    (disabled reason, past-due requirements or requirement errors).
    """

    provider_account_id: str
    details_submitted: bool = False
    charges_enabled: bool = False
    transfers_enabled: bool = False
    requirements: list[str] = field(default_factory=list)
    disabled_reason: str = ""
    restricted: bool = False


@dataclass
class ProviderEvent:
    """
    A verified webhook event in canonical form.

    Attributes:
        event_id: Provider's event id, the de-duplication key
        event_type: Canonical EVENT_* value (EVENT_UNKNOWN if unmapped)
        provider_event_type: Provider's own type string
        object_id: Id of the payment or account the event is about
        payload: Full verified payload
        failure_reason: Failure message for payment_failed events
        account: Snapshot for account_updated events
    """

    event_id: str
    event_type: str
    provider_event_type: str
    object_id: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    failure_reason: str = ""
    account: VendorAccountSnapshot | None = None

    @property
    def is_payment_event(self) -> bool:
        return self.event_type in PAYMENT_EVENT_TYPES


# =============================================================================
# Adapter Interface
# =============================================================================


class ProviderAdapter(ABC):
    """
    Interface every payment provider implements.

    Every mutating call takes an idempotency key; repeating a call with the
    same key returns the original payment instead of creating a new one.

    Error translation:
        timeouts -> ProviderTimeoutError
        connection failures, 5xx, rate limits -> ProviderUnavailableError
        declines, 4xx, invalid requests -> ProviderError
    """

    kind: str = ""
    signature_header: str = ""

    def __init__(self, settings: ProviderSettings) -> None:
        self.settings = settings

    @property
    def settlement_currency(self) -> str | None:
        """Currency this provider charges in, or None if any is accepted."""
        return self.settings.settlement_currency

    @property
    def minimum_fee_floor(self) -> int:
        """Provider's commission floor in settlement-currency minor units."""
        return self.settings.minimum_fee

    @property
    def publishable_key(self) -> str:
        return self.settings.publishable_key

    @property
    def webhook_secret(self) -> str:
        return self.settings.webhook_secret

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @contextmanager
    def _timed(
        self, operation: str, log_context: dict[str, Any]
    ) -> Generator[dict[str, Any], None, None]:
        """
        Wrap a provider call with timing logs and error translation.

        The yielded dict is merged into the completion log line. Any
        exception other than our own PaymentError goes through
        _handle_error, which raises the domain exception.
        """
        logger = self.get_logger()
        log_context = {"operation": operation, "provider": self.kind, **log_context}
        result_context: dict[str, Any] = {}

        start_time = time.time()
        logger.info("Starting provider operation", extra=log_context)
        try:
            yield result_context
        except PaymentError:
            raise
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_error(e, log_context, duration_ms)
            raise
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Provider operation completed",
            extra={**log_context, **result_context, "duration_ms": duration_ms},
        )

    def _handle_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """Translate a client library exception; must raise."""
        raise error

    # =========================================================================
    # Payments
    # =========================================================================

    @abstractmethod
    def create_split_payment(
        self,
        gross: Money,
        commission: Money,
        vendor_account_id: str,
        idempotency_key: str,
        description: str = "",
        timeout: float | None = None,
    ) -> ProviderPayment:
        """Charge gross, keep commission, route the rest to the vendor."""

    @abstractmethod
    def create_platform_payment(
        self,
        gross: Money,
        idempotency_key: str,
        description: str = "",
        timeout: float | None = None,
    ) -> ProviderPayment:
        """Charge gross entirely to the platform."""

    @abstractmethod
    def get_payment_status(
        self, provider_transaction_id: str, timeout: float | None = None
    ) -> ProviderPayment:
        """Fetch the provider's current view of a payment."""

    # =========================================================================
    # Vendor Accounts
    # =========================================================================

    @abstractmethod
    def get_vendor_account_status(
        self, vendor_account_id: str, timeout: float | None = None
    ) -> VendorAccountSnapshot:
        """Fetch capability facts for a vendor account."""

    # =========================================================================
    # Webhooks
    # =========================================================================

    @abstractmethod
    def verify_webhook_signature(
        self,
        raw_payload: bytes,
        signature_header: str,
        secret: str | None = None,
    ) -> ProviderEvent:
        """
        Authenticate a raw webhook body and parse it.

        Args:
            raw_payload: Exact bytes received
            signature_header: Value of this provider's signature header
            secret: Signing secret (defaults to the configured one)

        Raises:
            SignatureError: Missing, malformed or invalid signature
        """

    @abstractmethod
    def parse_event(self, payload: dict[str, Any]) -> ProviderEvent:
        """Canonicalise an already-verified payload."""


__all__ = [
    "EVENT_ACCOUNT_UPDATED",
    "EVENT_PAYMENT_CANCELED",
    "EVENT_PAYMENT_FAILED",
    "EVENT_PAYMENT_PROCESSING",
    "EVENT_PAYMENT_REQUIRES_ACTION",
    "EVENT_PAYMENT_SUCCEEDED",
    "EVENT_UNKNOWN",
    "PAYMENT_EVENT_TYPES",
    "ProviderAdapter",
    "ProviderEvent",
    "ProviderPayment",
    "VendorAccountSnapshot",
]
