"""
Payment orchestrator: the entry point for submitting payments.

The orchestrator shapes a PaymentRequest into a provider call: who gets
paid what, in which currency, through which provider. It owns idempotency
and persistence of PaymentIntentRecord, and is the only place that moves a
record between statuses.

Submission flow:
    1. Take the per-key lock idempotency:<key>
    2. Replay: cache, then record table (same fingerprint -> original record,
       different fingerprint -> IdempotencyConflictError)
    3. Plan: vendor eligibility, provider choice, currency conversion,
       commission split (no side effects)
    4. Provider call with the idempotency key
    5. Persist the record, remember the key, emit the created transition

Usage:
    from payments.services import PaymentRequest, build_payment_services

    services = build_payment_services()
    record = services.orchestrator.submit(
        PaymentRequest(
            amount=10000,
            currency="usd",
            vendor_account_id="acct_123",
            idempotency_key="order-42",
        )
    )
    record.client_secret  # hand to the client
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.core.cache import cache as default_cache
from django_fsm import TransitionNotAllowed

from core.services import BaseService
from payments.adapters.registry import get_adapter
from payments.commission import CommissionSplit, split
from payments.exceptions import (
    IdempotencyConflictError,
    InvalidStateTransitionError,
    PaymentProcessingError,
    PaymentValidationError,
)
from payments.locks import DistributedLock, idempotency_lock_key, payment_lock_key
from payments.models import PaymentIntentRecord
from payments.money import Money, convert
from payments.signals import payment_intent_transitioned, send_robust
from payments.state_machines import PaymentIntentStatus
from payments.stores import RecordStore

if TYPE_CHECKING:
    from collections.abc import Mapping
    from decimal import Decimal
    from typing import Any

    from django.core.cache.backends.base import BaseCache

    from payments.adapters.base import ProviderAdapter, ProviderPayment
    from payments.config import PaymentsConfig
    from payments.models import VendorAccount
    from payments.services.vendor_registry import VendorAccountRegistry


IDEMPOTENCY_CACHE_PREFIX = "payments:idempotency:"

# Target status -> django-fsm transition method on PaymentIntentRecord
TRANSITION_METHODS: dict[str, str] = {
    PaymentIntentStatus.REQUIRES_ACTION: "require_action",
    PaymentIntentStatus.PROCESSING: "start_processing",
    PaymentIntentStatus.SUCCEEDED: "succeed",
    PaymentIntentStatus.FAILED: "fail",
    PaymentIntentStatus.CANCELED: "cancel",
}

TRANSITION_FIELDS = [
    "status",
    "failure_reason",
    "succeeded_at",
    "failed_at",
    "canceled_at",
]


# =============================================================================
# Request / Plan Types
# =============================================================================


@dataclass
class PaymentRequest:
    """
    A payment as requested by the caller.

    Attributes:
        amount: Gross amount in minor units of currency
        currency: Currency the amount is expressed in
        vendor_account_id: Provider account id of the vendor to pay out
        platform_only: Send 100% to the platform even if a vendor is named
        description: Shown on the provider dashboard / statement
        idempotency_key: Caller's key; derived from the request when empty
        provider: Provider kind for platform-only payments
        metadata: Carried onto the record, never interpreted

    Example:
        PaymentRequest(amount=5000, currency="usd", platform_only=True)
    """

    amount: int
    currency: str
    vendor_account_id: str | None = None
    platform_only: bool = False
    description: str = ""
    idempotency_key: str | None = None
    provider: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_split(self) -> bool:
        return bool(self.vendor_account_id) and not self.platform_only

    def fingerprint(self) -> str:
        """SHA-256 over the fields that make two requests the same payment."""
        material = {
            "amount": self.amount,
            "currency": (self.currency or "").strip().lower(),
            "vendor_account_id": self.vendor_account_id or None,
            "platform_only": bool(self.platform_only),
            "description": self.description or "",
            "provider": self.provider or None,
        }
        encoded = json.dumps(material, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()

    def derived_key(self) -> str:
        return f"req_{self.fingerprint()}"

    @property
    def key(self) -> str:
        return self.idempotency_key or self.derived_key()


@dataclass(frozen=True)
class PaymentPlan:
    """
    Everything decided about a payment before the provider is called.

    Amounts in ``split`` are in the provider's settlement currency;
    ``requested`` keeps the caller's original amount.
    """

    provider_kind: str
    requested: Money
    split: CommissionSplit
    minimum_fee: Money
    vendor_account: VendorAccount | None = None
    exchange_rate: Decimal | int | None = None

    @property
    def gross(self) -> Money:
        return self.split.gross

    @property
    def commission(self) -> Money:
        return self.split.commission

    @property
    def payout(self) -> Money:
        return self.split.payout

    @property
    def is_platform_only(self) -> bool:
        return self.vendor_account is None

    @property
    def is_converted(self) -> bool:
        return self.requested.currency != self.gross.currency


# =============================================================================
# Orchestrator
# =============================================================================


class PaymentOrchestrator(BaseService):
    """
    Submits payments and applies status transitions.

    Collaborators are injected so tests can substitute adapters, the
    vendor registry, the record store and the cache.
    """

    def __init__(
        self,
        config: PaymentsConfig,
        adapters: Mapping[str, ProviderAdapter],
        vendor_registry: VendorAccountRegistry,
        store: RecordStore[PaymentIntentRecord] | None = None,
        cache: BaseCache | None = None,
    ) -> None:
        self.config = config
        self.adapters = adapters
        self.vendor_registry = vendor_registry
        self.store = store or RecordStore(PaymentIntentRecord)
        self.cache = cache if cache is not None else default_cache

    def _lock(self, key: str) -> DistributedLock:
        return DistributedLock(
            key, ttl=self.config.lock_ttl, timeout=self.config.lock_timeout
        )

    # =========================================================================
    # Planning
    # =========================================================================

    def plan(self, request: PaymentRequest) -> PaymentPlan:
        """
        Decide provider, currency and split without side effects.

        Raises:
            InvalidAmountError: Non-positive amount or below the minimum fee
            UnsupportedCurrencyError: Unknown currency or no exchange rate
            VendorNotPayoutEligibleError: Vendor cannot receive payouts
            PaymentValidationError: Unknown provider or provider mismatch
        """
        requested = Money(request.amount, request.currency).require_positive()

        vendor_account = None
        if request.is_split:
            vendor_account = self.vendor_registry.require_payout_eligible(
                request.vendor_account_id
            )
            provider_kind = vendor_account.provider_kind
            if request.provider and request.provider != provider_kind:
                raise PaymentValidationError(
                    f"Vendor account uses provider {provider_kind}, "
                    f"not {request.provider}",
                    error_code="PROVIDER_MISMATCH",
                    details={
                        "vendor_account_id": request.vendor_account_id,
                        "vendor_provider": provider_kind,
                        "requested_provider": request.provider,
                    },
                )
        else:
            provider_kind = request.provider or self.config.default_provider

        adapter = get_adapter(provider_kind, self.adapters)

        gross = requested
        exchange_rate = None
        settlement = adapter.settlement_currency
        if settlement and settlement != requested.currency:
            exchange_rate = self.config.exchange_rates.rate(
                requested.currency, settlement
            )
            gross = convert(requested, settlement, exchange_rate)

        minimum_fee = Money(
            max(self.config.minimum_fee, adapter.minimum_fee_floor), gross.currency
        )
        if vendor_account is None:
            commission_split = CommissionSplit.platform_only(gross)
        else:
            commission_split = split(gross, self.config.commission_rate, minimum_fee)

        return PaymentPlan(
            provider_kind=provider_kind,
            requested=requested,
            split=commission_split,
            minimum_fee=minimum_fee,
            vendor_account=vendor_account,
            exchange_rate=exchange_rate,
        )

    def quote(self, request: PaymentRequest) -> PaymentPlan:
        """Dry-run of submit(): the plan, with no provider call and no writes."""
        return self.plan(request)

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(
        self, request: PaymentRequest, timeout: float | None = None
    ) -> PaymentIntentRecord:
        """
        Submit a payment exactly once per idempotency key.

        Args:
            request: The payment to make
            timeout: Provider call timeout in seconds (config default if None)

        Returns:
            The new PaymentIntentRecord, or the original one on replay

        Raises:
            IdempotencyConflictError: Key reused with a different request
            PaymentValidationError (and subclasses): Rejected before any
                provider call
            VendorNotPayoutEligibleError: Vendor cannot receive payouts
            ProviderError: Provider rejected or failed the call
            ProviderTimeoutError: Outcome unknown; retry with the same key
                or reconcile with refresh_payment_status()
        """
        key = request.key
        fingerprint = request.fingerprint()
        logger = self.get_logger()
        log_context = {
            "idempotency_key": key,
            "amount": request.amount,
            "currency": request.currency,
            "vendor_account_id": request.vendor_account_id,
            "platform_only": request.platform_only,
        }
        logger.info("Submitting payment", extra=log_context)

        with self._lock(idempotency_lock_key(key)):
            existing = self._find_existing(key, fingerprint)
            if existing is not None:
                logger.info(
                    "Idempotent replay, returning original payment",
                    extra={
                        **log_context,
                        "provider_transaction_id": existing.provider_transaction_id,
                    },
                )
                return existing

            plan = self.plan(request)
            adapter = get_adapter(plan.provider_kind, self.adapters)
            call_timeout = timeout or self.config.provider_timeout

            try:
                if plan.is_platform_only:
                    payment = adapter.create_platform_payment(
                        plan.gross,
                        idempotency_key=key,
                        description=request.description,
                        timeout=call_timeout,
                    )
                else:
                    payment = adapter.create_split_payment(
                        plan.gross,
                        plan.commission,
                        vendor_account_id=plan.vendor_account.provider_account_id,
                        idempotency_key=key,
                        description=request.description,
                        timeout=call_timeout,
                    )
            except PaymentProcessingError as e:
                logger.warning(
                    "Provider did not accept payment",
                    extra={
                        **log_context,
                        "provider": plan.provider_kind,
                        "error_code": e.error_code,
                    },
                )
                raise

            record = self._persist(request, plan, payment, key, fingerprint)
            self._remember(key, record)

        logger.info(
            "Payment submitted",
            extra={
                **log_context,
                "provider": record.provider_kind,
                "provider_transaction_id": record.provider_transaction_id,
                "gross": record.gross_amount,
                "commission": record.commission_amount,
                "payout": record.payout_amount,
                "settlement_currency": record.currency,
                "status": record.status,
            },
        )
        send_robust(
            payment_intent_transitioned,
            sender=PaymentIntentRecord,
            record=record,
            previous_status=None,
            status=record.status,
            source="submit",
        )
        return record

    def _cache_key(self, key: str) -> str:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return f"{IDEMPOTENCY_CACHE_PREFIX}{digest}"

    def _find_existing(
        self, key: str, fingerprint: str
    ) -> PaymentIntentRecord | None:
        """Original record for this key, or None. Raises on fingerprint mismatch."""
        cached = self.cache.get(self._cache_key(key))
        if cached:
            self._check_fingerprint(key, cached["fingerprint"], fingerprint)
            record = self.store.find(pk=cached["record_id"])
            if record is not None:
                return record

        record = self.store.find(idempotency_key=key)
        if record is None:
            return None
        self._check_fingerprint(key, record.request_fingerprint, fingerprint)
        self._remember(key, record)
        return record

    def _check_fingerprint(self, key: str, stored: str, incoming: str) -> None:
        if stored != incoming:
            self.get_logger().warning(
                "Idempotency key reused with a different request",
                extra={"idempotency_key": key},
            )
            raise IdempotencyConflictError(
                "Idempotency key was already used for a different payment",
                details={"idempotency_key": key},
            )

    def _remember(self, key: str, record: PaymentIntentRecord) -> None:
        self.cache.set(
            self._cache_key(key),
            {"record_id": str(record.pk), "fingerprint": record.request_fingerprint},
            timeout=int(self.config.idempotency_retention.total_seconds()),
        )

    def _persist(
        self,
        request: PaymentRequest,
        plan: PaymentPlan,
        payment: ProviderPayment,
        key: str,
        fingerprint: str,
    ) -> PaymentIntentRecord:
        # The provider may hand back a payment we already recorded
        existing = self.store.find(provider_transaction_id=payment.id)
        if existing is not None:
            return existing

        record = PaymentIntentRecord(
            provider_transaction_id=payment.id,
            provider_kind=plan.provider_kind,
            idempotency_key=key,
            request_fingerprint=fingerprint,
            gross_amount=plan.gross.amount,
            commission_amount=plan.commission.amount,
            payout_amount=plan.payout.amount,
            currency=plan.gross.currency,
            original_amount=plan.requested.amount if plan.is_converted else None,
            original_currency=plan.requested.currency if plan.is_converted else "",
            exchange_rate=plan.exchange_rate if plan.is_converted else None,
            vendor_account=plan.vendor_account,
            description=request.description,
            client_secret=payment.client_secret,
            status=payment.status,
            failure_reason=payment.failure_reason,
            metadata=dict(request.metadata),
        )
        return self.store.put(record)

    # =========================================================================
    # Status
    # =========================================================================

    def get_record(self, provider_transaction_id: str) -> PaymentIntentRecord:
        """Raises PaymentNotFoundError for unknown transaction ids."""
        return self.store.get_by(provider_transaction_id=provider_transaction_id)

    def refresh_payment_status(
        self,
        provider_transaction_id: str,
        timeout: float | None = None,
        source: str = "poll",
    ) -> PaymentIntentRecord:
        """
        Poll the provider and apply whatever status it reports.

        This is how a caller reconciles after ProviderTimeoutError.
        """
        record = self.get_record(provider_transaction_id)
        adapter = get_adapter(record.provider_kind, self.adapters)
        payment = adapter.get_payment_status(
            provider_transaction_id, timeout=timeout or self.config.provider_timeout
        )
        return self.apply_transition(
            provider_transaction_id,
            payment.status,
            reason=payment.failure_reason,
            source=source,
        )

    def apply_transition(
        self,
        provider_transaction_id: str,
        status: str,
        reason: str = "",
        source: str = "webhook",
    ) -> PaymentIntentRecord:
        """
        Move a record to ``status`` if that is a forward move.

        Terminal records, same-status updates and backward moves (a late
        ``processing`` after ``succeeded``) are logged and left unchanged.

        Raises:
            PaymentNotFoundError: No record for the transaction id
            PaymentValidationError: Unknown status value
            StaleRecordError: Concurrent writer outside the lock
        """
        if status not in PaymentIntentStatus.values:
            raise PaymentValidationError(
                f"Unknown payment status: {status!r}",
                error_code="INVALID_STATUS",
                details={"status": status},
            )
        logger = self.get_logger()
        log_context = {
            "provider_transaction_id": provider_transaction_id,
            "target_status": status,
            "source": source,
        }

        with self._lock(payment_lock_key(provider_transaction_id)):
            record = self.get_record(provider_transaction_id)
            previous_status = record.status

            if previous_status == status:
                logger.debug("Payment already in target status", extra=log_context)
                return record
            if record.is_terminal:
                logger.info(
                    "Ignoring transition on terminal payment",
                    extra={**log_context, "status": previous_status},
                )
                return record
            if PaymentIntentStatus.rank(status) < PaymentIntentStatus.rank(
                previous_status
            ):
                logger.info(
                    "Ignoring backward transition",
                    extra={**log_context, "status": previous_status},
                )
                return record

            expected_version = record.version
            transition = getattr(record, TRANSITION_METHODS[status])
            try:
                if status in (PaymentIntentStatus.FAILED, PaymentIntentStatus.CANCELED):
                    transition(reason=reason or None)
                else:
                    transition()
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    f"Cannot move payment from {previous_status} to {status}",
                    details={
                        "provider_transaction_id": provider_transaction_id,
                        "from": previous_status,
                        "to": status,
                    },
                ) from e

            self.store.compare_and_swap(record, expected_version, TRANSITION_FIELDS)

        logger.info(
            "Payment transitioned",
            extra={**log_context, "previous_status": previous_status},
        )
        send_robust(
            payment_intent_transitioned,
            sender=PaymentIntentRecord,
            record=record,
            previous_status=previous_status,
            status=record.status,
            source=source,
        )
        return record
