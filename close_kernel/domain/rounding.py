"""Integer rounding rules used by money, VAT and metric calculations."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_EVEN, Decimal
from fractions import Fraction

Number = int | Decimal | Fraction


def _as_fraction(value: Number) -> Fraction:
    return value if isinstance(value, Fraction) else Fraction(value)


def bankers_round(value: Number) -> int:
    """Round half to even: 2.5 -> 2, 3.5 -> 4, -2.5 -> -2."""
    if isinstance(value, Decimal):
        return int(value.to_integral_value(rounding=ROUND_HALF_EVEN))
    return round(_as_fraction(value))


def round_half_ceiling(value: Number) -> int:
    """Round half toward positive infinity: 2.5 -> 3, -2.5 -> -2."""
    return math.floor(_as_fraction(value) + Fraction(1, 2))


def rounded_percent(part: int, whole: int) -> int:
    """Banker-rounded ``part / whole * 100``; 0 when ``whole`` is 0."""
    if whole == 0:
        return 0
    return bankers_round(Fraction(part * 100, whole))
