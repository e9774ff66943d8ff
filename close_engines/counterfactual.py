"""
CounterfactualTimeline -- How month-end figures converge as data arrives.

Responsibility:
    Replay the month's events truncated at a series of as-of cutoffs
    (``periodEnd + d`` days) and compare each truncated state with the
    final state built from every event.  Two plain-language insights are
    derived from the convergence curve.

Architecture position:
    Engines -- pure calculation.  Reuses ``build_ledger_snapshot`` for every
    cutoff and the shared match coverage for unmatched counts.

Invariants enforced:
    - As-of days are non-negative, de-duplicated and ascending.
    - Only events tagged with the month key participate.
    - An event belongs to a cutoff when ``dateKey(occurredAt) <= cutoff``.
    - The last entry is the final authoritative one, ``asOfDay`` None.
    - All totals are restricted to the timeline currency.

Failure modes:
    - MalformedEventError from the snapshot fold.
    - InvalidVatRateError from gross-to-net VAT extraction.

Audit relevance:
    Each entry is also written as an auditor replay snapshot so the
    figures for any cutoff can be reproduced from the event log.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any

from close_kernel.domain.events import BusinessEvent, add_days, date_key, events_for_month
from close_kernel.domain.rounding import bankers_round
from close_kernel.domain.vat import vat_from_gross_cents
from close_kernel.logging_config import get_logger
from close_engines.ledger_snapshot import LedgerSnapshot, build_ledger_snapshot
from close_engines.reconciliation.coverage import compute_match_coverage
from close_engines.tracer import traced_engine

logger = get_logger("engines.counterfactual")

ADJUSTMENT_REVENUE = "REVENUE"
ADJUSTMENT_EXPENSE = "EXPENSE"
ADJUSTMENT_VAT = "VAT"


@dataclass(frozen=True, slots=True)
class TimelineEntry:
    as_of_day: int | None
    as_of_date: str
    revenue_cents: int
    expense_cents: int
    vat_cents: int
    unmatched_bank_count: int
    unmatched_invoice_count: int

    @property
    def unmatched_total_count(self) -> int:
        return self.unmatched_bank_count + self.unmatched_invoice_count

    @property
    def is_final(self) -> bool:
        return self.as_of_day is None

    def to_document(self) -> dict[str, Any]:
        return {
            "asOfDay": self.as_of_day,
            "asOfDate": self.as_of_date,
            "revenueCents": self.revenue_cents,
            "expenseCents": self.expense_cents,
            "vatCents": self.vat_cents,
            "unmatchedBankCount": self.unmatched_bank_count,
            "unmatchedInvoiceCount": self.unmatched_invoice_count,
            "unmatchedTotalCount": self.unmatched_total_count,
        }


@dataclass(frozen=True, slots=True)
class CounterfactualTimeline:
    tenant_id: str
    month_key: str
    period_start: str
    period_end: str
    currency: str
    as_of_days: tuple[int, ...]
    entries: tuple[TimelineEntry, ...]
    insights: tuple[str, ...] = field(default_factory=tuple)

    @property
    def final_entry(self) -> TimelineEntry:
        return self.entries[-1]

    def to_document(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "monthKey": self.month_key,
            "periodStart": self.period_start,
            "periodEnd": self.period_end,
            "currency": self.currency,
            "asOfDays": list(self.as_of_days),
            "entries": [e.to_document() for e in self.entries],
            "insights": list(self.insights),
        }


def normalize_as_of_days(days: Iterable[int]) -> tuple[int, ...]:
    """Drop negatives and duplicates; sort ascending."""
    kept = {int(d) for d in days if not isinstance(d, bool) and d >= 0}
    return tuple(sorted(kept))


def entry_variance(entry: TimelineEntry, final: TimelineEntry) -> int:
    """Absolute distance of an entry from the final entry."""
    return (
        abs(entry.revenue_cents - final.revenue_cents)
        + abs(entry.expense_cents - final.expense_cents)
        + abs(entry.vat_cents - final.vat_cents)
        + abs(entry.unmatched_total_count - final.unmatched_total_count)
    )


def _matches_final(entry: TimelineEntry, final: TimelineEntry) -> bool:
    return (
        entry.revenue_cents == final.revenue_cents
        and entry.expense_cents == final.expense_cents
        and entry.vat_cents == final.vat_cents
        and entry.unmatched_total_count == final.unmatched_total_count
    )


def _entry_from_snapshot(
    snapshot: LedgerSnapshot,
    currency: str,
    as_of_date: str,
    as_of_day: int | None,
) -> TimelineEntry:
    revenue = 0
    expense = 0
    vat = 0

    for tx in snapshot.bank_tx:
        if tx.currency != currency:
            continue
        if tx.amount_cents >= 0:
            revenue += tx.amount_cents
        else:
            expense += -tx.amount_cents

    for adj in snapshot.adjustments:
        if adj.currency != currency:
            continue
        if adj.category == ADJUSTMENT_REVENUE:
            revenue += abs(adj.amount_cents)
        elif adj.category == ADJUSTMENT_EXPENSE:
            expense += abs(adj.amount_cents)
        elif adj.category == ADJUSTMENT_VAT:
            vat += adj.amount_cents

    invoices = [inv for inv in snapshot.invoices if inv.currency == currency]
    for inv in invoices:
        vat += vat_from_gross_cents(inv.total_gross_cents, inv.vat_rate_percent)[1]

    coverage = compute_match_coverage(snapshot.bank_tx, snapshot.invoices, snapshot.matches, currency)
    bank_count = sum(1 for tx in snapshot.bank_tx if tx.currency == currency)
    # Matched ids may reference tx in other currencies or not yet arrived.
    unmatched_bank = max(0, bank_count - len(coverage.matched_bank_tx_ids))
    unmatched_invoices = sum(
        1 for inv in invoices if coverage.matched_cents(inv.invoice_id) < inv.total_gross_cents
    )

    return TimelineEntry(
        as_of_day=as_of_day,
        as_of_date=as_of_date,
        revenue_cents=revenue,
        expense_cents=expense,
        vat_cents=vat,
        unmatched_bank_count=unmatched_bank,
        unmatched_invoice_count=unmatched_invoices,
    )


def build_insights(entries: Sequence[TimelineEntry], as_of_days: Sequence[int]) -> tuple[str, ...]:
    """The two convergence sentences shown on the dashboard and the PDF."""
    if not entries:
        return ()
    final = entries[-1]

    accuracy_day = next(
        (e.as_of_day for e in entries if not e.is_final and _matches_final(e, final)),
        None,
    )
    last_day = as_of_days[-1] if as_of_days else 0
    if accuracy_day is None:
        accuracy_day = last_day

    variances = [entry_variance(e, final) for e in entries]
    initial, last = variances[0], variances[-1]
    previous = variances[-2] if len(variances) > 1 else last
    total_reduction = initial - last
    if total_reduction == 0:
        percent = 100
    else:
        percent = bankers_round(Fraction(previous - last, total_reduction) * 100)

    previous_day = as_of_days[-2] if len(as_of_days) > 1 else last_day
    interval = max(0, last_day - previous_day)

    return (
        f"Final accuracy was reached on Day {accuracy_day}.",
        f"{percent}% of variance resolved in the last {interval} days.",
    )


@traced_engine(
    "counterfactual_timeline",
    "1.0",
    fingerprint_fields=("month_key", "period_end", "currency", "as_of_days", "final_as_of_date", "events"),
)
def compute_counterfactual_timeline(
    *,
    tenant_id: str,
    month_key: str,
    period_start: str,
    period_end: str,
    currency: str,
    as_of_days: Iterable[int],
    events: Iterable[BusinessEvent],
    final_as_of_date: str,
) -> CounterfactualTimeline:
    days = normalize_as_of_days(as_of_days)
    month_events = events_for_month(events, month_key)
    occurred = [(date_key(e.occurred_at), e) for e in month_events]

    entries: list[TimelineEntry] = []
    for day in days:
        cutoff = add_days(period_end, day)
        visible = [e for d, e in occurred if d <= cutoff]
        entries.append(
            _entry_from_snapshot(build_ledger_snapshot(events=visible), currency, cutoff, day)
        )
    entries.append(
        _entry_from_snapshot(build_ledger_snapshot(events=month_events), currency, final_as_of_date, None)
    )

    timeline = CounterfactualTimeline(
        tenant_id=tenant_id,
        month_key=month_key,
        period_start=period_start,
        period_end=period_end,
        currency=currency,
        as_of_days=days,
        entries=tuple(entries),
        insights=build_insights(entries, days),
    )
    logger.info(
        "counterfactual_timeline_computed",
        extra={"month_key": month_key, "entries": len(entries), "event_count": len(month_events)},
    )
    return timeline
