"""
Immutable configuration for the payment engine.

Django settings are read exactly once into a PaymentsConfig, which is then
passed to each service's constructor. Nothing in the engine reads
django.conf.settings at call time, so tests can build a config directly.

Usage:
    from payments.config import PaymentsConfig

    config = PaymentsConfig.from_settings()
    config.commission_rate           # Decimal('0.05')
    config.provider("gateway").settlement_currency  # 'pyg'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from functools import lru_cache
from typing import TYPE_CHECKING

from payments.commission import validate_rate
from payments.exceptions import PaymentValidationError
from payments.money import ExchangeRateTable, normalize_currency
from payments.state_machines import OnboardingStatus, ProviderKind

if TYPE_CHECKING:
    from typing import Any


@dataclass(frozen=True)
class ProviderSettings:
    """
    Credentials and limits for one provider.

    Attributes:
        kind: ProviderKind value
        secret_key: Server-side API credential (never exposed)
        publishable_key: Client-side key, safe to hand to browsers
        webhook_secret: Signing secret for inbound webhooks
        settlement_currency: Currency the provider settles in (None = any)
        minimum_fee: Provider's own commission floor, in settlement minor units
        api_base_url: Base URL for HTTP-based providers
    """

    kind: str
    secret_key: str = ""
    publishable_key: str = ""
    webhook_secret: str = ""
    settlement_currency: str | None = None
    minimum_fee: int = 0
    api_base_url: str = ""

    def __repr__(self) -> str:
        # Keep credentials out of logs and tracebacks
        return (
            f"ProviderSettings(kind={self.kind!r}, "
            f"settlement_currency={self.settlement_currency!r}, "
            f"minimum_fee={self.minimum_fee!r})"
        )


@dataclass(frozen=True)
class PaymentsConfig:
    """
    Configuration value shared by every payments service.

    Attributes:
        commission_rate: Platform share of each split payment, in [0, 1]
        minimum_fee: Commission floor in settlement-currency minor units
        payout_eligibility_threshold: Lowest OnboardingStatus that can
            receive payouts
        default_provider: Provider for platform-only payments
        idempotency_retention: How long a key maps to its original record
        webhook_retention: How long processed events are kept for de-dup
        provider_timeout: Default timeout for provider calls, in seconds
        lock_ttl: Per-key lock TTL, in seconds; must outlast the holder's
            provider calls
        lock_timeout: How long to wait for a per-key lock, in seconds. A
            gateway create is a lookup plus a POST, so this stays above
            twice provider_timeout or a waiting caller with the same key
            gives up before the holder finishes
        exchange_rates: Explicit conversion rates
        providers: ProviderSettings keyed by ProviderKind value
    """

    commission_rate: Decimal = Decimal("0.05")
    minimum_fee: int = 50
    payout_eligibility_threshold: str = OnboardingStatus.TRANSFERS_ENABLED
    default_provider: str = ProviderKind.CONNECT
    idempotency_retention: timedelta = timedelta(hours=24)
    webhook_retention: timedelta = timedelta(hours=72)
    provider_timeout: float = 10.0
    lock_ttl: int = 30
    lock_timeout: float = 25.0
    exchange_rates: ExchangeRateTable = field(default_factory=ExchangeRateTable)
    providers: dict[str, ProviderSettings] = field(default_factory=dict)

    def __post_init__(self) -> None:
        validate_rate(self.commission_rate)
        if self.payout_eligibility_threshold not in OnboardingStatus.payout_levels():
            raise PaymentValidationError(
                "Payout eligibility threshold must be an onboarding level",
                error_code="INVALID_CONFIGURATION",
                details={"threshold": self.payout_eligibility_threshold},
            )
        if self.minimum_fee < 0:
            raise PaymentValidationError(
                "Minimum fee cannot be negative",
                error_code="INVALID_CONFIGURATION",
                details={"minimum_fee": self.minimum_fee},
            )

    def provider(self, kind: str) -> ProviderSettings:
        """Settings for a provider kind (empty settings when unconfigured)."""
        return self.providers.get(kind) or ProviderSettings(kind=kind)

    @classmethod
    def from_settings(cls, settings: Any = None) -> PaymentsConfig:
        """
        Build the config from Django settings.

        Args:
            settings: Settings object (defaults to django.conf.settings)
        """
        if settings is None:
            from django.conf import settings

        providers = {
            ProviderKind.CONNECT: ProviderSettings(
                kind=ProviderKind.CONNECT,
                secret_key=settings.STRIPE_SECRET_KEY,
                publishable_key=settings.STRIPE_PUBLISHABLE_KEY,
                webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
                settlement_currency=_optional_currency(
                    settings.STRIPE_SETTLEMENT_CURRENCY
                ),
                minimum_fee=settings.STRIPE_MINIMUM_FEE,
            ),
            ProviderKind.GATEWAY: ProviderSettings(
                kind=ProviderKind.GATEWAY,
                secret_key=settings.GATEWAY_PRIVATE_KEY,
                publishable_key=settings.GATEWAY_PUBLIC_KEY,
                webhook_secret=settings.GATEWAY_WEBHOOK_SECRET,
                settlement_currency=_optional_currency(
                    settings.GATEWAY_SETTLEMENT_CURRENCY
                ),
                minimum_fee=settings.GATEWAY_MINIMUM_FEE,
                api_base_url=settings.GATEWAY_API_BASE_URL,
            ),
        }

        return cls(
            commission_rate=Decimal(str(settings.PAYMENTS_COMMISSION_RATE)),
            minimum_fee=int(settings.PAYMENTS_MINIMUM_FEE),
            payout_eligibility_threshold=settings.PAYMENTS_PAYOUT_ELIGIBILITY_THRESHOLD,
            default_provider=settings.PAYMENTS_DEFAULT_PROVIDER,
            idempotency_retention=timedelta(
                hours=settings.PAYMENTS_IDEMPOTENCY_RETENTION_HOURS
            ),
            webhook_retention=timedelta(hours=settings.PAYMENTS_WEBHOOK_RETENTION_HOURS),
            provider_timeout=float(settings.PAYMENTS_PROVIDER_TIMEOUT_SECONDS),
            lock_ttl=int(settings.PAYMENTS_LOCK_TTL_SECONDS),
            lock_timeout=float(settings.PAYMENTS_LOCK_TIMEOUT_SECONDS),
            exchange_rates=ExchangeRateTable.from_setting(
                settings.PAYMENTS_EXCHANGE_RATES
            ),
            providers=providers,
        )


def _optional_currency(value: str | None) -> str | None:
    return normalize_currency(value) if value else None


@lru_cache(maxsize=1)
def get_payments_config() -> PaymentsConfig:
    """Process-wide config built from Django settings on first use."""
    return PaymentsConfig.from_settings()
