"""
VAT -- net/gross conversion on integer cents.

Two conversions exist and they are deliberately not inverses:

* ``calculate_vat_from_net`` rounds the VAT amount (half to even) and
  derives gross as ``base + vat``.
* ``calculate_vat_from_gross`` rounds the base (half toward +infinity) and
  derives VAT as the remainder, so ``base + vat == gross`` always holds for
  extracted invoices.

Round-tripping a base through both may drift by at most one cent.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from types import MappingProxyType

from close_kernel.domain.amount import Amount, check_cents
from close_kernel.domain.rounding import bankers_round, round_half_ceiling
from close_kernel.exceptions import InvalidVatRateError

VatRate = int | Decimal

# Standard rates for the jurisdictions the product launched in.
VAT_RATES = MappingProxyType({
    "ES": MappingProxyType({"STANDARD": 21, "REDUCED": 10, "SUPER_REDUCED": 4, "EXEMPT": 0}),
    "DE": MappingProxyType({"STANDARD": 19, "REDUCED": 7}),
    "GB": MappingProxyType({"STANDARD": 20, "REDUCED": 5, "ZERO": 0}),
    "MX": MappingProxyType({"STANDARD": 16, "ZERO": 0}),
})


@dataclass(frozen=True, slots=True)
class VatBreakdown:
    base: Amount
    vat: Amount
    gross: Amount
    rate: VatRate


def assert_valid_rate(rate: object) -> Fraction:
    """Return the rate as an exact fraction or raise InvalidVatRateError."""
    if isinstance(rate, bool) or not isinstance(rate, (int, float, Decimal)):
        raise InvalidVatRateError(rate)
    try:
        exact = Fraction(Decimal(str(rate)) if isinstance(rate, float) else rate)
    except (ValueError, OverflowError) as exc:
        raise InvalidVatRateError(rate) from exc
    if exact < 0 or exact > 100:
        raise InvalidVatRateError(rate)
    return exact


def vat_from_net_cents(base_cents: int, rate: VatRate) -> tuple[int, int]:
    """Return ``(vat_cents, gross_cents)`` for a net base."""
    exact = assert_valid_rate(rate)
    vat = bankers_round(base_cents * exact / 100)
    return vat, check_cents(base_cents + vat)


def vat_from_gross_cents(gross_cents: int, rate: VatRate) -> tuple[int, int]:
    """Return ``(base_cents, vat_cents)`` extracted from a gross total."""
    exact = assert_valid_rate(rate)
    base = round_half_ceiling(gross_cents / (1 + exact / 100))
    return base, gross_cents - base


def calculate_vat_from_net(base: Amount, rate: VatRate) -> VatBreakdown:
    vat, gross = vat_from_net_cents(base.cents, rate)
    return VatBreakdown(
        base=base,
        vat=Amount(vat, base.currency),
        gross=Amount(gross, base.currency),
        rate=rate,
    )


def calculate_vat_from_gross(gross: Amount, rate: VatRate) -> VatBreakdown:
    base, vat = vat_from_gross_cents(gross.cents, rate)
    return VatBreakdown(
        base=Amount(base, gross.currency),
        vat=Amount(vat, gross.currency),
        gross=gross,
        rate=rate,
    )


def sum_vat_lines(lines: Iterable[VatBreakdown], currency: str) -> VatBreakdown | None:
    """Total several breakdowns sharing one rate; None for no lines."""
    items = list(lines)
    if not items:
        return None
    return VatBreakdown(
        base=Amount.sum([Amount.zero(currency)] + [l.base for l in items]),
        vat=Amount.sum([Amount.zero(currency)] + [l.vat for l in items]),
        gross=Amount.sum([Amount.zero(currency)] + [l.gross for l in items]),
        rate=items[0].rate,
    )


def group_vat_by_rate(lines: Iterable[VatBreakdown]) -> dict[VatRate, list[VatBreakdown]]:
    """Group breakdowns by rate; keys come out in ascending rate order."""
    groups: dict[VatRate, list[VatBreakdown]] = {}
    for line in lines:
        groups.setdefault(line.rate, []).append(line)
    return {rate: groups[rate] for rate in sorted(groups)}
