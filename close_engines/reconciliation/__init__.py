"""Reconciliation engines: match coverage and mismatch detection."""

from close_engines.reconciliation.coverage import MatchCoverage, compute_match_coverage
from close_engines.reconciliation.mismatch import MismatchSummary, detect_mismatches

__all__ = [
    "MatchCoverage",
    "MismatchSummary",
    "compute_match_coverage",
    "detect_mismatches",
]
