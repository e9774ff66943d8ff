"""
CloseConfig schema.

The parsed, frozen form of the close configuration file.  The workflow
receives one of these explicitly; nothing below it reads configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from close_kernel.domain.currency import DEFAULT_CURRENCIES, CurrencyTable

DEFAULT_AS_OF_DAYS: tuple[int, ...] = (5, 10, 20)
DEFAULT_VAT_BUCKETS: tuple[int, ...] = (21, 10, 4, 0)
DEFAULT_CURRENCY = "EUR"


@dataclass(frozen=True)
class CloseConfig:
    """Settings that shape a month close.

    ``late_arrival_days`` of None means "largest as-of day".
    """

    config_id: str = "default"
    version: int = 1
    default_currency: str = DEFAULT_CURRENCY
    as_of_days: tuple[int, ...] = DEFAULT_AS_OF_DAYS
    vat_buckets: tuple[int | Decimal, ...] = DEFAULT_VAT_BUCKETS
    late_arrival_days: int | None = None
    currencies: CurrencyTable = field(default=DEFAULT_CURRENCIES)
    checksum: str = ""
