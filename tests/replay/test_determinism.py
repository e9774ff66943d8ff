"""
Replay determinism tests.

Finalizing the same event set must produce the same lock hash, the same read
models and byte-identical exports no matter in which order the events were
appended.  Each ordering runs in its own store over a fresh session.
"""

import random

import pytest
from sqlalchemy.orm import Session

from close_config.schema import CloseConfig
from close_kernel.domain.clock import DeterministicClock
from close_kernel.domain.records import ArtifactKind, PeriodRecord, PeriodStatus, ReadModelKind
from close_kernel.services.close_store import SqlCloseStore
from close_services import FinalizeStatus, PeriodFinalizationWorkflow
from tests.conftest import (
    MONTH,
    TENANT,
    adjustment_event,
    bank_tx_event,
    invoice_event,
    match_event,
    reconciled_month,
)


def _busy_month():
    return reconciled_month() + [
        invoice_event("inv-2", 11000, rate=10, direction="SALES", occurred_at="2026-01-22T08:00:00.000Z"),
        invoice_event("inv-3", 10400, rate=4, occurred_at="2026-01-28T08:00:00.000Z"),
        invoice_event(
            "inv-3", 10400, rate=4, supplier="Acme SL", updated=True, event_id="evt-inv-3-upd",
            occurred_at="2026-02-04T08:00:00.000Z",
        ),
        bank_tx_event("tx-3", 11000, occurred_at="2026-01-29T08:00:00.000Z"),
        match_event("m-2", ["tx-3"], ["inv-2"], occurred_at="2026-02-15T08:00:00.000Z"),
        adjustment_event("adj-2", "REVENUE", -500, occurred_at="2026-01-31T08:00:00.000Z"),
    ]


def _finalize(db_engine, events):
    """Run one finalization in an isolated transaction and return its outputs."""
    conn = db_engine.connect()
    trans = conn.begin()
    session = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    try:
        store = SqlCloseStore(session, clock=DeterministicClock())
        store.append_events(events)
        store.upsert_period(
            PeriodRecord(TENANT, MONTH, PeriodStatus.FINALIZED, "2026-02-28T18:00:00.000Z", (5, 10, 20))
        )
        result = PeriodFinalizationWorkflow(store, DeterministicClock(), CloseConfig()).finalize(TENANT, MONTH)
        assert result.status == FinalizeStatus.COMPLETED
        return {
            "lock_hash": result.period_lock_hash,
            "readmodels": {kind: store.read_readmodel(TENANT, MONTH, kind) for kind in ReadModelKind},
            "snapshots": store.read_audit_snapshots(TENANT, MONTH),
            "exports": {
                kind: store.read_export_artifact(TENANT, MONTH, kind).content for kind in ArtifactKind
            },
        }
    finally:
        session.close()
        trans.rollback()
        conn.close()


class TestReplayDeterminism:

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_shuffled_append_order(self, db_engine, seed):
        events = _busy_month()
        shuffled = list(events)
        random.Random(seed).shuffle(shuffled)

        baseline = _finalize(db_engine, events)
        replayed = _finalize(db_engine, shuffled)

        assert replayed["lock_hash"] == baseline["lock_hash"]
        assert replayed["readmodels"] == baseline["readmodels"]
        assert replayed["snapshots"] == baseline["snapshots"]
        assert replayed["exports"] == baseline["exports"]

    def test_outputs_reflect_updates(self, db_engine):
        outputs = _finalize(db_engine, _busy_month())
        vat = outputs["readmodels"][ReadModelKind.VAT_SUMMARY]
        assert vat["collectedVatCents"] == 1000
        assert vat["paidVatCents"] == 2100 + 400
        mismatches = outputs["readmodels"][ReadModelKind.MISMATCH_SUMMARY]
        assert mismatches["bankTxWithoutInvoice"] == ["tx-2"]
        assert b"INVOICE,inv-3" in outputs["exports"][ArtifactKind.LEDGER_CSV]
