"""
CloseFrictionIndex -- A single 0-100 score for how hard a month was to close.

Architecture: close_engines -- pure calculation, zero I/O.

Components:
    lateArrivalPercent          share of month events recorded after
                                ``periodEnd + dayForLateArrival``
    adjustmentAfterClosePercent share of ADJUSTMENT_POSTED events that
                                occurred after ``periodEnd``
    reconciliationHalfLifeDays  first as-of day whose variance is within
                                10% of the initial variance

    score = clamp(0, 100, 100 - round_half_even(
        late * 0.5 + adj * 0.3 + halfLife * 2))

Higher is better.  Percentages are banker-rounded integers.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from fractions import Fraction
from typing import Any

from close_kernel.domain.events import BusinessEvent, EventType, add_days, date_key
from close_kernel.domain.rounding import bankers_round, rounded_percent
from close_engines.counterfactual import TimelineEntry, entry_variance
from close_engines.tracer import traced_engine

LATE_ARRIVAL_WEIGHT = Fraction(1, 2)
ADJUSTMENT_WEIGHT = Fraction(3, 10)
HALF_LIFE_WEIGHT = 2
HALF_LIFE_THRESHOLD = Fraction(1, 10)


@dataclass(frozen=True, slots=True)
class CloseFrictionResult:
    tenant_id: str
    month_key: str
    late_arrival_percent: int
    adjustment_after_close_percent: int
    reconciliation_half_life_days: int
    close_friction_score: int

    def to_document(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "monthKey": self.month_key,
            "lateArrivalPercent": self.late_arrival_percent,
            "adjustmentAfterClosePercent": self.adjustment_after_close_percent,
            "reconciliationHalfLifeDays": self.reconciliation_half_life_days,
            "closeFrictionScore": self.close_friction_score,
        }


FALLBACK_LATE_ARRIVAL_DAY = 5


def default_late_arrival_day(as_of_days: Sequence[int]) -> int:
    """Largest configured offset, or 5 when none are configured."""
    return max(as_of_days, default=FALLBACK_LATE_ARRIVAL_DAY)


def compute_half_life_days(timeline: Sequence[TimelineEntry], as_of_days: Sequence[int]) -> int:
    if not timeline:
        return 0
    largest = as_of_days[-1] if as_of_days else 0
    final = timeline[-1]
    initial = entry_variance(timeline[0], final)
    if initial == 0:
        return 0
    threshold = initial * HALF_LIFE_THRESHOLD
    for entry in timeline:
        if entry_variance(entry, final) <= threshold:
            return largest if entry.is_final else entry.as_of_day
    return largest


def _clamp(low: int, high: int, value: int) -> int:
    return min(high, max(low, value))


@traced_engine(
    "close_friction",
    "1.0",
    fingerprint_fields=("month_key", "period_end", "day_for_late_arrival", "as_of_days", "timeline", "events"),
)
def compute_close_friction(
    *,
    tenant_id: str,
    month_key: str,
    period_end: str,
    events: Iterable[BusinessEvent],
    timeline: Sequence[TimelineEntry],
    as_of_days: Sequence[int],
    day_for_late_arrival: int,
) -> CloseFrictionResult:
    """Score the month.

    ``as_of_days`` must be the normalized days the timeline was built with.
    """
    month_events = [e for e in events if e.month_key == month_key]
    late_cutoff = add_days(period_end, day_for_late_arrival)
    late = sum(1 for e in month_events if date_key(e.recorded_at) > late_cutoff)

    adjustments = [e for e in month_events if e.type == EventType.ADJUSTMENT_POSTED]
    after_close = sum(1 for e in adjustments if date_key(e.occurred_at) > period_end)

    late_pct = rounded_percent(late, len(month_events))
    adj_pct = rounded_percent(after_close, len(adjustments))
    half_life = compute_half_life_days(timeline, as_of_days)

    penalty = bankers_round(
        late_pct * LATE_ARRIVAL_WEIGHT + adj_pct * ADJUSTMENT_WEIGHT + half_life * HALF_LIFE_WEIGHT
    )
    return CloseFrictionResult(
        tenant_id=tenant_id,
        month_key=month_key,
        late_arrival_percent=late_pct,
        adjustment_after_close_percent=adj_pct,
        reconciliation_half_life_days=half_life,
        close_friction_score=_clamp(0, 100, 100 - penalty),
    )
