"""
Pure domain layer.

Money, VAT, months, events and store records with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (except SystemClock)
- I/O

All domain objects are immutable and deterministic.
"""

from close_kernel.domain.amount import MAX_SAFE_CENTS, Amount
from close_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from close_kernel.domain.currency import DEFAULT_CURRENCIES, CurrencyInfo, CurrencyTable
from close_kernel.domain.events import (
    EVENT_TYPES,
    BusinessEvent,
    EventType,
    add_days,
    compare_events,
    date_key,
    events_for_month,
    sort_events,
)
from close_kernel.domain.month import Month
from close_kernel.domain.records import (
    ArtifactKind,
    ExportArtifactRecord,
    JobRecord,
    JobStatus,
    PeriodRecord,
    PeriodStatus,
    ReadModelKind,
)
from close_kernel.domain.rounding import bankers_round, round_half_ceiling
from close_kernel.domain.vat import (
    VAT_RATES,
    VatBreakdown,
    calculate_vat_from_gross,
    calculate_vat_from_net,
)

__all__ = [
    "Amount",
    "ArtifactKind",
    "BusinessEvent",
    "Clock",
    "CurrencyInfo",
    "CurrencyTable",
    "DEFAULT_CURRENCIES",
    "DeterministicClock",
    "EVENT_TYPES",
    "EventType",
    "ExportArtifactRecord",
    "JobRecord",
    "JobStatus",
    "MAX_SAFE_CENTS",
    "Month",
    "PeriodRecord",
    "PeriodStatus",
    "ReadModelKind",
    "SystemClock",
    "VAT_RATES",
    "VatBreakdown",
    "add_days",
    "bankers_round",
    "calculate_vat_from_gross",
    "calculate_vat_from_net",
    "compare_events",
    "date_key",
    "events_for_month",
    "round_half_ceiling",
    "sort_events",
]
