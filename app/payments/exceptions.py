"""
Payment-specific exceptions for payment operations.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Record lookup failures
    ├── PaymentValidationError - Rejected before any provider call
    │   ├── InvalidAmountError - Non-positive or below-minimum amounts
    │   ├── InvalidRateError - Commission or exchange rate out of range
    │   └── UnsupportedCurrencyError - Unknown code or missing exchange rate
    ├── VendorNotPayoutEligibleError - Vendor cannot receive a split payout
    ├── IdempotencyConflictError - Key reused with a different request
    ├── PaymentProcessingError - Provider call did not complete
    │   ├── ProviderError - Provider rejected or failed the call
    │   │   └── ProviderUnavailableError - 5xx, connection or rate limit (retryable)
    │   └── ProviderTimeoutError - Outcome unknown, reconcile before retrying
    ├── SignatureError - Webhook authenticity check failed
    └── DuplicateEventError - Webhook event already processed (informational)
    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import ProviderError, ProviderTimeoutError

    try:
        record = orchestrator.submit(request)
    except ProviderTimeoutError:
        # Neither success nor failure: poll or retry with the same key
        ...
    except ProviderError as e:
        logger.warning("Provider rejected payment", extra={"code": e.provider_code})
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Inherits from BaseApplicationError for consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when a payment entity cannot be found.

    Use for:
    - PaymentIntentRecord lookup by provider transaction id
    - VendorAccount lookup by provider account id
    - WebhookEvent lookup by id
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError):
    """
    Raised when a payment request is rejected before any provider call.

    Validation failures never leave side effects behind: nothing is
    persisted and no provider is contacted.
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class InvalidAmountError(PaymentValidationError):
    """Amount is non-positive, or too small to cover the minimum fee."""

    default_error_code: str = "INVALID_AMOUNT"


class InvalidRateError(PaymentValidationError):
    """Commission rate outside [0, 1] or a non-positive exchange rate."""

    default_error_code: str = "INVALID_RATE"


class UnsupportedCurrencyError(PaymentValidationError):
    """
    Currency code is not in the supported table, or no exchange rate is
    configured for a conversion the provider requires.
    """

    default_error_code: str = "UNSUPPORTED_CURRENCY"


class VendorNotPayoutEligibleError(PaymentError):
    """
    Raised when a split payment names a vendor that cannot receive payouts.

    The vendor is unknown, deactivated, restricted, or has not reached the
    configured onboarding threshold. Details carry the current status and
    outstanding requirements so the caller can prompt the vendor.
    """

    default_error_code: str = "VENDOR_NOT_PAYOUT_ELIGIBLE"


class IdempotencyConflictError(PaymentError):
    """
    Raised when an idempotency key is reused for a different request.

    The original record is left untouched; the caller must pick a new key
    for a new payment.
    """

    default_error_code: str = "IDEMPOTENCY_CONFLICT"


class PaymentProcessingError(PaymentError):
    """Raised when a provider call does not complete normally."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Provider Exceptions
# =============================================================================


class ProviderError(PaymentProcessingError):
    """
    The provider rejected or failed the call.

    Attributes:
        provider: Provider kind that raised ("connect", "gateway")
        provider_code: Provider's own error code, surfaced verbatim
        is_retryable: Whether repeating the call (same idempotency key)
            can succeed

    Example:
        try:
            adapter.create_split_payment(...)
        except ProviderError as e:
            if e.is_retryable:
                schedule_retry()
    """

    default_error_code: str = "PROVIDER_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        provider_code: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if provider:
            details["provider"] = provider
        if provider_code:
            details["provider_code"] = provider_code
        super().__init__(message, error_code=error_code, details=details)
        self.provider = provider
        self.provider_code = provider_code


class ProviderUnavailableError(ProviderError):
    """
    Provider is temporarily unavailable.

    This covers server errors (5xx), connection failures and rate limiting.
    Safe to retry with the same idempotency key.
    """

    default_error_code: str = "PROVIDER_UNAVAILABLE"
    is_retryable: bool = True


class ProviderTimeoutError(PaymentProcessingError):
    """
    Provider call timed out.

    IMPORTANT: The operation may have succeeded on the provider's side.
    This is neither success nor failure: reconcile by polling the payment
    status, or retry with the same idempotency key.
    """

    default_error_code: str = "PROVIDER_TIMEOUT"
    is_retryable: bool = True

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        timeout: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if provider:
            details["provider"] = provider
        if timeout is not None:
            details["timeout"] = timeout
        super().__init__(message, details=details)
        self.provider = provider
        self.timeout = timeout


# =============================================================================
# Webhook Exceptions
# =============================================================================


class SignatureError(PaymentError):
    """
    Raised when a webhook signature is missing, malformed or invalid.

    The event is rejected without any state change.
    """

    default_error_code: str = "INVALID_SIGNATURE"


class DuplicateEventError(PaymentError):
    """
    Raised when a webhook event id has already been processed.

    Informational, not a failure: the event is acknowledged without being
    applied a second time.
    """

    default_error_code: str = "DUPLICATE_EVENT"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    The record was modified by another process between read and write.
    Details carry pk, expected_version and current_version.
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired within its timeout.

    Details carry the lock key and timeout.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed in our standard error format.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "InvalidAmountError",
    "InvalidRateError",
    "UnsupportedCurrencyError",
    "VendorNotPayoutEligibleError",
    "IdempotencyConflictError",
    "PaymentProcessingError",
    # Provider
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderTimeoutError",
    # Webhooks
    "SignatureError",
    "DuplicateEventError",
    # Concurrency control
    "StaleRecordError",
    "LockAcquisitionError",
    "InvalidStateTransitionError",
]
