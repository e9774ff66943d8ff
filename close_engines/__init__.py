"""
Close engines: pure calculations over the event log.

No engine touches the database, the clock or the filesystem.  Each public
entry point is wrapped in ``traced_engine`` and takes keyword arguments so
its input fingerprint is stable.
"""

from close_engines.counterfactual import (
    CounterfactualTimeline,
    TimelineEntry,
    compute_counterfactual_timeline,
)
from close_engines.friction import CloseFrictionResult, compute_close_friction
from close_engines.ledger_snapshot import LedgerSnapshot, build_ledger_snapshot
from close_engines.period_lock import compute_period_lock_hash
from close_engines.reconciliation import MismatchSummary, detect_mismatches
from close_engines.vat_summary import VatSummary, compute_vat_summary

__all__ = [
    "CloseFrictionResult",
    "CounterfactualTimeline",
    "LedgerSnapshot",
    "MismatchSummary",
    "TimelineEntry",
    "VatSummary",
    "build_ledger_snapshot",
    "compute_close_friction",
    "compute_counterfactual_timeline",
    "compute_period_lock_hash",
    "compute_vat_summary",
    "detect_mismatches",
]
