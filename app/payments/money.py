"""
Money value type and explicit currency conversion.

All amounts are integers in the currency's minor unit (cents for USD,
whole guaraníes for PYG) to avoid floating-point precision issues. Rates
are handled as exact fractions and every conversion is rounded once,
half-up, on the target currency's minor-unit boundary.

Types:
    Money: Immutable amount + currency pair
    ExchangeRateTable: Configured rates keyed by (from, to)

Usage:
    from payments.money import Money, convert

    gross = Money(730_000, "pyg")
    usd = convert(gross, "usd", Decimal("0.000137"))  # Money(10001, 'usd')
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import TYPE_CHECKING

from payments.exceptions import (
    InvalidAmountError,
    InvalidRateError,
    UnsupportedCurrencyError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    RateLike = Decimal | Fraction | int | str


# ISO 4217 minor-unit exponents for the currencies the engine settles in
CURRENCY_EXPONENTS: dict[str, int] = {
    "usd": 2,
    "eur": 2,
    "gbp": 2,
    "brl": 2,
    "ars": 2,
    "uyu": 2,
    "mxn": 2,
    "cop": 2,
    "pyg": 0,
    "clp": 0,
    "jpy": 0,
    "krw": 0,
}


def normalize_currency(currency: str) -> str:
    """
    Lowercase a currency code and check it is supported.

    Raises:
        UnsupportedCurrencyError: Code is not in CURRENCY_EXPONENTS
    """
    code = (currency or "").strip().lower()
    if code not in CURRENCY_EXPONENTS:
        raise UnsupportedCurrencyError(
            f"Unsupported currency: {currency!r}",
            details={"currency": currency},
        )
    return code


def to_fraction(value: RateLike) -> Fraction:
    """Exact rational value of a rate; floats go through their repr."""
    if isinstance(value, float):
        return Fraction(repr(value))
    return Fraction(value)


def round_half_up(value: Fraction) -> int:
    """Round a rational to the nearest integer, ties away from zero."""
    if value < 0:
        return -round_half_up(-value)
    return math.floor(value + Fraction(1, 2))


@dataclass(frozen=True)
class Money:
    """
    Represents a monetary amount in minor units.

    Attributes:
        amount: Integer amount in the smallest currency unit
        currency: Lowercase ISO 4217 code from CURRENCY_EXPONENTS

    Example:
        fee = Money(500, "usd")
        print(fee)  # "5.00 USD"
        fee + Money(50, "usd")  # Money(550, 'usd')
    """

    amount: int
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidAmountError(
                "Amount must be an integer number of minor units",
                details={"amount": repr(self.amount)},
            )
        object.__setattr__(self, "currency", normalize_currency(self.currency))

    @property
    def exponent(self) -> int:
        return CURRENCY_EXPONENTS[self.currency]

    def require_positive(self) -> Money:
        """Return self, or raise InvalidAmountError for zero/negative amounts."""
        if self.amount <= 0:
            raise InvalidAmountError(
                "Amount must be positive",
                details={"amount": self.amount, "currency": self.currency},
            )
        return self

    def _check_same_currency(self, other: Money, operation: str) -> None:
        if self.currency != other.currency:
            raise UnsupportedCurrencyError(
                f"Cannot {operation} Money with different currencies: "
                f"{self.currency} and {other.currency}",
                details={"left": self.currency, "right": other.currency},
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __str__(self) -> str:
        """Format as currency string (e.g., '50.00 USD', '73000 PYG')."""
        if self.exponent == 0:
            return f"{self.amount} {self.currency.upper()}"
        major = Decimal(self.amount).scaleb(-self.exponent)
        return f"{major:.{self.exponent}f} {self.currency.upper()}"

    def __repr__(self) -> str:
        return f"Money({self.amount}, {self.currency!r})"


def convert(money: Money, to_currency: str, rate: RateLike) -> Money:
    """
    Convert money into another currency at an explicit rate.

    The rate is units of the target currency per one major unit of the
    source currency. Minor-unit exponents of both currencies are honoured
    and the result is rounded half-up exactly once.

    Args:
        money: Source amount (must be positive)
        to_currency: Target currency code
        rate: Positive exchange rate

    Returns:
        Money in the target currency

    Raises:
        InvalidAmountError: Source amount is not positive
        InvalidRateError: Rate is zero or negative
        UnsupportedCurrencyError: Target currency is not supported

    Example:
        convert(Money(10000, "usd"), "pyg", Decimal("7300"))  # Money(730000, 'pyg')
    """
    money.require_positive()
    target = normalize_currency(to_currency)
    exact_rate = to_fraction(rate)
    if exact_rate <= 0:
        raise InvalidRateError(
            "Exchange rate must be positive",
            details={"rate": str(rate), "from": money.currency, "to": target},
        )
    if target == money.currency:
        return money

    scale = Fraction(10 ** CURRENCY_EXPONENTS[target], 10**money.exponent)
    converted = round_half_up(Fraction(money.amount) * exact_rate * scale)
    return Money(converted, target)


class ExchangeRateTable:
    """
    Explicitly configured exchange rates.

    Rates are never fetched implicitly; a conversion the table cannot
    satisfy raises UnsupportedCurrencyError before any provider call.

    Example:
        rates = ExchangeRateTable({("pyg", "usd"): Decimal("0.000137")})
        rates.rate("pyg", "usd")  # Decimal('0.000137')
    """

    def __init__(self, rates: Mapping[tuple[str, str], RateLike] | None = None):
        self._rates: dict[tuple[str, str], RateLike] = {}
        for (source, target), value in (rates or {}).items():
            self._rates[(normalize_currency(source), normalize_currency(target))] = value

    @classmethod
    def from_setting(cls, raw: Mapping[str, str]) -> ExchangeRateTable:
        """Build from the PAYMENTS_EXCHANGE_RATES {"pyg:usd": "0.000137"} form."""
        parsed: dict[tuple[str, str], RateLike] = {}
        for pair, value in raw.items():
            source, sep, target = pair.partition(":")
            if not sep:
                raise UnsupportedCurrencyError(
                    f"Malformed exchange rate key: {pair!r}",
                    details={"key": pair},
                )
            parsed[(source, target)] = Decimal(str(value))
        return cls(parsed)

    def rate(self, source: str, target: str) -> RateLike:
        source, target = normalize_currency(source), normalize_currency(target)
        if source == target:
            return 1
        try:
            return self._rates[(source, target)]
        except KeyError:
            raise UnsupportedCurrencyError(
                f"No exchange rate configured for {source} -> {target}",
                details={"from": source, "to": target},
            ) from None

    def __contains__(self, pair: tuple[str, str]) -> bool:
        return pair in self._rates

    def __len__(self) -> int:
        return len(self._rates)
