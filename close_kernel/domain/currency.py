"""Currency -- supported currencies and their minor-unit precision."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from close_kernel.exceptions import InvalidCurrencyError


@dataclass(frozen=True, slots=True)
class CurrencyInfo:
    """Information about a single supported currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_units(self) -> int:
        """Number of minor units per major unit (100 for cents)."""
        return 10 ** self.decimal_places

    @property
    def quantum(self) -> Decimal:
        """Quantum for Decimal.quantize() at this currency's precision."""
        return Decimal(1).scaleb(-self.decimal_places)


@dataclass(frozen=True)
class CurrencyTable:
    """
    Immutable lookup of supported currencies.

    Contract:
        Passed explicitly into every computation that needs currency
        metadata.  There is no process-wide registry to mutate.

    Guarantees:
        - ``require()`` either returns a CurrencyInfo or raises
          InvalidCurrencyError.
        - Iteration order is sorted by code.
    """

    _entries: Mapping[str, CurrencyInfo] = field(default_factory=dict)

    @classmethod
    def of(cls, currencies: Iterable[CurrencyInfo]) -> CurrencyTable:
        entries = {c.code: c for c in sorted(currencies, key=lambda c: c.code)}
        return cls(MappingProxyType(entries))

    def get(self, code: str) -> CurrencyInfo | None:
        return self._entries.get(code)

    def require(self, code: object) -> CurrencyInfo:
        if not isinstance(code, str) or code not in self._entries:
            raise InvalidCurrencyError(code)
        return self._entries[code]

    def is_supported(self, code: object) -> bool:
        return isinstance(code, str) and code in self._entries

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __iter__(self) -> Iterator[CurrencyInfo]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


DEFAULT_CURRENCIES = CurrencyTable.of(
    [
        CurrencyInfo("EUR", 2, "Euro"),
        CurrencyInfo("USD", 2, "US Dollar"),
        CurrencyInfo("GBP", 2, "Pound Sterling"),
        CurrencyInfo("CHF", 2, "Swiss Franc"),
        CurrencyInfo("MXN", 2, "Mexican Peso"),
    ]
)
