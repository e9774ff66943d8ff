"""
Read-model projections written at period finalization.

Every document carries ``generatedAt``, ``periodLockHash`` and
``schemaVersion``.  Projections are pure: the generation timestamp is an
input, never read from a clock here.
"""

from __future__ import annotations

from typing import Any

from close_engines.counterfactual import CounterfactualTimeline
from close_engines.friction import CloseFrictionResult
from close_engines.ledger_snapshot import LedgerSnapshot
from close_engines.reconciliation.mismatch import MismatchSummary
from close_engines.vat_summary import VatSummary

SCHEMA_VERSION = 1


def _stamp(doc: dict[str, Any], generated_at: str, period_lock_hash: str) -> dict[str, Any]:
    doc["generatedAt"] = generated_at
    doc["periodLockHash"] = period_lock_hash
    doc["schemaVersion"] = SCHEMA_VERSION
    return doc


def build_month_close_timeline_readmodel(
    timeline: CounterfactualTimeline,
    *,
    generated_at: str,
    period_lock_hash: str,
) -> dict[str, Any]:
    doc = {
        "tenantId": timeline.tenant_id,
        "monthKey": timeline.month_key,
        "periodEnd": timeline.period_end,
        "asOfDays": list(timeline.as_of_days),
        "entries": [e.to_document() for e in timeline.entries],
        "insights": list(timeline.insights),
    }
    return _stamp(doc, generated_at, period_lock_hash)


def build_close_friction_readmodel(
    result: CloseFrictionResult,
    *,
    period_end: str,
    day_for_late_arrival: int,
    generated_at: str,
    period_lock_hash: str,
) -> dict[str, Any]:
    doc = result.to_document()
    doc["periodEnd"] = period_end
    doc["dayForLateArrival"] = day_for_late_arrival
    return _stamp(doc, generated_at, period_lock_hash)


def build_vat_summary_readmodel(
    summary: VatSummary,
    *,
    tenant_id: str,
    month_key: str,
    generated_at: str,
    period_lock_hash: str,
) -> dict[str, Any]:
    doc = {"tenantId": tenant_id, "monthKey": month_key}
    doc.update(summary.to_document())
    return _stamp(doc, generated_at, period_lock_hash)


def build_mismatch_summary_readmodel(
    summary: MismatchSummary,
    *,
    tenant_id: str,
    month_key: str,
    generated_at: str,
    period_lock_hash: str,
) -> dict[str, Any]:
    doc = {"tenantId": tenant_id, "monthKey": month_key}
    doc.update(summary.to_document())
    return _stamp(doc, generated_at, period_lock_hash)


def build_auditor_replay_snapshot(
    snapshot: LedgerSnapshot,
    *,
    tenant_id: str,
    month_key: str,
    as_of_date_key: str,
    generated_at: str,
    period_lock_hash: str,
) -> dict[str, Any]:
    """Ledger state as an auditor would reconstruct it on ``as_of_date_key``.

    Bank tx sort by ``(bookingDate, txId)``, invoices by
    ``(issueDate, invoiceId)`` with a missing date sorting first; matches by
    id; adjustments keep log order.
    """
    bank_tx = sorted(snapshot.bank_tx, key=lambda tx: (tx.booking_date or "", tx.tx_id))
    invoices = sorted(snapshot.invoices, key=lambda inv: (inv.issue_date or "", inv.invoice_id))
    matches = sorted(snapshot.matches, key=lambda m: m.match_id)
    doc = {
        "tenantId": tenant_id,
        "monthKey": month_key,
        "asOfDateKey": as_of_date_key,
        "bankTx": [tx.to_document() for tx in bank_tx],
        "invoices": [inv.to_document() for inv in invoices],
        "matches": [m.to_document() for m in matches],
        "adjustments": [a.to_document() for a in snapshot.adjustments],
    }
    return _stamp(doc, generated_at, period_lock_hash)
