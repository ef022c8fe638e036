"""
Commission split between the platform and a vendor.

The platform keeps max(minimum fee, gross x rate) and the vendor receives
the rest. Arithmetic is exact (fractions) and rounded half-up once, so the
two parts always add back to the gross; any rounding remainder lands on
the commission side.

Usage:
    from payments.commission import split

    result = split(Money(10000, "usd"), Decimal("0.05"), Money(50, "usd"))
    result.commission  # Money(500, 'usd')
    result.payout      # Money(9500, 'usd')
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import TYPE_CHECKING

from payments.exceptions import (
    InvalidAmountError,
    InvalidRateError,
    UnsupportedCurrencyError,
)
from payments.money import Money, round_half_up, to_fraction

if TYPE_CHECKING:
    from payments.money import RateLike


@dataclass(frozen=True)
class CommissionSplit:
    """
    Result of splitting a gross amount.

    Attributes:
        gross: Amount charged to the customer
        commission: Platform's share
        payout: Vendor's share (gross - commission)
    """

    gross: Money
    commission: Money
    payout: Money

    @classmethod
    def platform_only(cls, gross: Money) -> CommissionSplit:
        """
        Split for a payment with no vendor.

        The platform receives the whole gross directly, so neither an
        application fee nor a payout is recorded.
        """
        zero = Money(0, gross.currency)
        return cls(gross=gross, commission=zero, payout=zero)


def validate_rate(rate: RateLike) -> Fraction:
    """
    Exact commission rate, checked to lie in [0, 1].

    Raises:
        InvalidRateError: Rate is outside [0, 1] or not a number
    """
    try:
        exact = to_fraction(rate)
    except (TypeError, ValueError, ArithmeticError):
        raise InvalidRateError(
            f"Commission rate is not a number: {rate!r}",
            details={"rate": str(rate)},
        ) from None
    if exact < 0 or exact > 1:
        raise InvalidRateError(
            "Commission rate must be between 0 and 1",
            details={"rate": str(rate)},
        )
    return exact


def split(gross: Money, rate: RateLike, minimum_fee: Money) -> CommissionSplit:
    """
    Split a gross amount into commission and payout.

    commission = max(minimum_fee, round_half_up(gross x rate))
    payout = gross - commission

    Args:
        gross: Positive amount charged to the customer
        rate: Commission rate in [0, 1]
        minimum_fee: Commission floor, in the gross currency

    Returns:
        CommissionSplit with commission + payout == gross

    Raises:
        InvalidAmountError: Gross is not positive, or smaller than the
            minimum fee (the payout would be negative)
        InvalidRateError: Rate outside [0, 1]
        UnsupportedCurrencyError: Minimum fee in a different currency

    Example:
        split(Money(80, "usd"), Decimal("0.05"), Money(50, "usd"))
        # commission=50, payout=30
    """
    gross.require_positive()
    exact_rate = validate_rate(rate)

    if minimum_fee.currency != gross.currency:
        raise UnsupportedCurrencyError(
            "Minimum fee must be in the same currency as the gross amount",
            details={"gross": gross.currency, "minimum_fee": minimum_fee.currency},
        )
    if minimum_fee.amount < 0:
        raise InvalidAmountError(
            "Minimum fee cannot be negative",
            details={"minimum_fee": minimum_fee.amount},
        )
    if gross.amount < minimum_fee.amount:
        raise InvalidAmountError(
            f"Amount {gross} is below the minimum fee {minimum_fee}",
            details={
                "amount": gross.amount,
                "minimum_fee": minimum_fee.amount,
                "currency": gross.currency,
            },
        )

    proportional = round_half_up(Fraction(gross.amount) * exact_rate)
    commission = Money(max(minimum_fee.amount, proportional), gross.currency)
    return CommissionSplit(gross=gross, commission=commission, payout=gross - commission)
