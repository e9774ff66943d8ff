"""
Amount -- Integer-cent monetary value object.

Responsibility:
    The only representation of money inside the close core.  An Amount is
    an exact integer count of minor units paired with a currency code;
    floats never appear in stored values.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Depends only on
    close_kernel.domain.currency, close_kernel.domain.rounding and
    close_kernel.exceptions.

Invariants enforced:
    - ``cents`` is an ``int`` (bool rejected) with
      ``|cents| <= MAX_SAFE_CENTS``; every constructor and every
      arithmetic result is re-checked.
    - Binary operations require identical currencies.
    - Scaling operations round half to even.

Failure modes:
    - InvalidAmountError for non-integer cents.
    - AmountOverflowError when a value leaves the safe range.
    - CurrencyMismatchError when currencies differ.
    - InvalidCurrencyError when a factory is given an unsupported code.
    - EmptyCollectionError from ``Amount.sum([])``.

Audit relevance:
    The safe-integer bound keeps every stored amount exactly representable
    as a JSON number, so lock hashes computed here match hashes computed
    by any other consumer of the same documents.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from close_kernel.domain.currency import DEFAULT_CURRENCIES, CurrencyTable
from close_kernel.domain.rounding import bankers_round
from close_kernel.exceptions import (
    AmountOverflowError,
    CurrencyMismatchError,
    EmptyCollectionError,
    InvalidAmountError,
    InvalidCurrencyError,
)

MAX_SAFE_CENTS = 2**53 - 1


def check_cents(value: object) -> int:
    """Validate a raw cents value and return it as int."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(value)
    if abs(value) > MAX_SAFE_CENTS:
        raise AmountOverflowError(value)
    return value


@dataclass(frozen=True, slots=True)
class Amount:
    """
    Monetary amount in integer minor units.

    Contract:
        Pairs ``cents`` with its currency code; the two are never separated.

    Guarantees:
        - Immutable and hashable.
        - ``from_decimal(a.to_decimal()) == a`` for every valid Amount.

    Non-goals:
        - No currency conversion.
    """

    cents: int
    currency: str

    def __post_init__(self) -> None:
        check_cents(self.cents)
        if not isinstance(self.currency, str) or not self.currency:
            raise InvalidCurrencyError(self.currency)

    # -----------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------

    @classmethod
    def from_cents(
        cls,
        cents: int,
        currency: str,
        currencies: CurrencyTable = DEFAULT_CURRENCIES,
    ) -> Amount:
        currencies.require(currency)
        return cls(cents=check_cents(cents), currency=currency)

    @classmethod
    def from_decimal(
        cls,
        value: Decimal | int | str | float,
        currency: str,
        currencies: CurrencyTable = DEFAULT_CURRENCIES,
    ) -> Amount:
        """Build from a major-unit value, rounding half to even to cents."""
        info = currencies.require(currency)
        try:
            major = value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation as exc:
            raise InvalidAmountError(value, "not a number") from exc
        if not major.is_finite():
            raise InvalidAmountError(value, "not a finite number")
        return cls(cents=check_cents(bankers_round(major * info.minor_units)), currency=currency)

    @classmethod
    def zero(cls, currency: str) -> Amount:
        return cls(cents=0, currency=currency)

    def to_decimal(self, currencies: CurrencyTable = DEFAULT_CURRENCIES) -> Decimal:
        info = currencies.require(self.currency)
        return Decimal(self.cents).scaleb(-info.decimal_places).quantize(info.quantum)

    # -----------------------------------------------------------------
    # Predicates
    # -----------------------------------------------------------------

    @property
    def is_zero(self) -> bool:
        return self.cents == 0

    @property
    def is_positive(self) -> bool:
        return self.cents > 0

    @property
    def is_negative(self) -> bool:
        return self.cents < 0

    # -----------------------------------------------------------------
    # Arithmetic
    # -----------------------------------------------------------------

    def _require_same_currency(self, other: Amount) -> None:
        if not isinstance(other, Amount):
            raise TypeError(f"Cannot combine Amount with {type(other).__name__}")
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: Amount) -> Amount:
        self._require_same_currency(other)
        return Amount(check_cents(self.cents + other.cents), self.currency)

    def __sub__(self, other: Amount) -> Amount:
        self._require_same_currency(other)
        return Amount(check_cents(self.cents - other.cents), self.currency)

    def __neg__(self) -> Amount:
        return Amount(-self.cents, self.currency)

    def __abs__(self) -> Amount:
        return Amount(abs(self.cents), self.currency)

    def multiply(self, factor: Decimal | int | str) -> Amount:
        """Scale by ``factor``, rounding half to even to whole cents."""
        scaled = Decimal(self.cents) * (factor if isinstance(factor, Decimal) else Decimal(str(factor)))
        return Amount(check_cents(bankers_round(scaled)), self.currency)

    @staticmethod
    def sum(amounts: Iterable[Amount]) -> Amount:
        items = list(amounts)
        if not items:
            raise EmptyCollectionError("amounts")
        total = items[0]
        for item in items[1:]:
            total = total + item
        return total

    # -----------------------------------------------------------------
    # Comparison
    # -----------------------------------------------------------------

    def compare(self, other: Amount) -> int:
        """Return -1, 0 or 1."""
        self._require_same_currency(other)
        return (self.cents > other.cents) - (self.cents < other.cents)

    def __lt__(self, other: Amount) -> bool:
        return self.compare(other) < 0

    def __le__(self, other: Amount) -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: Amount) -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: Amount) -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return f"{self.cents} {self.currency} (cents)"
