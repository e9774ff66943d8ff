"""
Tests for SqlCloseStore against an in-memory SQLite database.

Verifies:
- Events round-trip in canonical order and are append-only
- Job creation is a conditional create
- Job status updates are compare-and-set with legal transitions only
- Read models, snapshots and exports upsert by their natural keys
- savepoint() rolls back everything written inside a failing block
"""

import pytest
from sqlalchemy import select

from close_kernel.domain.records import (
    FINALIZE_ACTION,
    ArtifactKind,
    ExportArtifactRecord,
    JobRecord,
    JobStatus,
    PeriodRecord,
    PeriodStatus,
    ReadModelKind,
    finalize_job_id,
)
from close_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateEntryError,
    ImmutabilityViolationError,
    InvalidStatusTransitionError,
    JobAlreadyExistsError,
)
from close_kernel.models import StoredEvent
from tests.conftest import MONTH, TENANT, bank_tx_event, reconciled_month


def _job(lock_hash="h" * 64, status=JobStatus.RUNNING):
    return JobRecord(
        id=finalize_job_id(TENANT, MONTH, lock_hash),
        tenant_id=TENANT,
        month_key=MONTH,
        action=FINALIZE_ACTION,
        status=status,
        period_lock_hash=lock_hash,
    )


def _artifact(lock_hash="h1", content=b"a,b\n"):
    return ExportArtifactRecord(
        tenant_id=TENANT,
        month_key=MONTH,
        kind=ArtifactKind.LEDGER_CSV,
        period_lock_hash=lock_hash,
        content_hash="c-" + lock_hash,
        content_type="text/csv",
        filename="ledger.csv",
        content=content,
        generated_at="2026-02-01T12:00:00.000Z",
    )


class TestEvents:

    def test_round_trip_sorted(self, store):
        events = reconciled_month()
        assert store.append_events(reversed(events)) == len(events)
        loaded = store.read_events_by_month(TENANT, MONTH)
        assert [e.id for e in loaded] == ["evt-inv-1", "evt-tx-1", "evt-tx-2", "evt-m-1", "evt-adj-1"]
        assert loaded[0] == events[1]

    def test_scoped_by_tenant_and_month(self, store):
        store.append_event(bank_tx_event("tx-1", 1))
        store.append_event(bank_tx_event("tx-2", 1, month_key="2026-02"))
        store.append_event(bank_tx_event("tx-3", 1, tenant_id="tenant-2"))
        assert [e.payload["txId"] for e in store.read_events_by_month(TENANT, MONTH)] == ["tx-1"]

    def test_duplicate_event_rejected(self, store):
        store.append_event(bank_tx_event("tx-1", 1))
        with pytest.raises(DuplicateEntryError):
            store.append_event(bank_tx_event("tx-1", 999))
        assert store.read_events_by_month(TENANT, MONTH)[0].payload["amountCents"] == 1

    def test_events_cannot_be_modified(self, store, session):
        store.append_event(bank_tx_event("tx-1", 1))
        row = session.scalars(select(StoredEvent)).one()
        row.event_type = "SOMETHING_ELSE"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_events_cannot_be_deleted(self, store, session):
        store.append_event(bank_tx_event("tx-1", 1))
        row = session.scalars(select(StoredEvent)).one()
        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestPeriods:

    def test_missing(self, store):
        assert store.read_period(TENANT, MONTH) is None

    def test_upsert(self, store):
        store.upsert_period(PeriodRecord(TENANT, MONTH, PeriodStatus.DRAFT))
        updated = store.upsert_period(
            PeriodRecord(TENANT, MONTH, PeriodStatus.FINALIZED, "2026-02-28T18:00:00.000Z", (5, 10), "abc")
        )
        assert updated.status == PeriodStatus.FINALIZED
        assert updated.as_of_days == (5, 10)
        assert store.read_period(TENANT, MONTH) == updated


class TestJobs:

    def test_create_and_read(self, store):
        created = store.create_job(_job())
        assert store.read_job(created.id) == created
        assert created.status == JobStatus.RUNNING

    def test_conditional_create(self, store):
        store.create_job(_job())
        with pytest.raises(JobAlreadyExistsError):
            store.create_job(_job())

    def test_complete(self, store):
        job = store.create_job(_job())
        done = store.update_job(
            job.id,
            expected_status=JobStatus.RUNNING,
            status=JobStatus.COMPLETED,
            outputs_refs={"ledgerCsv": "ref"},
        )
        assert done.status == JobStatus.COMPLETED
        assert done.outputs_refs == {"ledgerCsv": "ref"}

    def test_compare_and_set_loses(self, store):
        job = store.create_job(_job())
        with pytest.raises(ConcurrentModificationError):
            store.update_job(job.id, expected_status=JobStatus.FAILED, status=JobStatus.RUNNING)
        assert store.read_job(job.id).status == JobStatus.RUNNING

    def test_failed_then_rerun(self, store):
        job = store.create_job(_job())
        failed = store.update_job(
            job.id,
            expected_status=JobStatus.RUNNING,
            status=JobStatus.FAILED,
            error_code="PERIOD_FINALIZE_FAILED",
            error_message="boom",
        )
        assert failed.error_message == "boom"
        rerun = store.update_job(job.id, expected_status=JobStatus.FAILED, status=JobStatus.RUNNING)
        assert rerun.status == JobStatus.RUNNING
        assert rerun.error_code is None

    @pytest.mark.parametrize(
        "expected, target",
        [
            (JobStatus.COMPLETED, JobStatus.RUNNING),
            (JobStatus.FAILED, JobStatus.COMPLETED),
            (JobStatus.RUNNING, JobStatus.RUNNING),
        ],
    )
    def test_illegal_transitions(self, store, expected, target):
        job = store.create_job(_job())
        with pytest.raises(InvalidStatusTransitionError):
            store.update_job(job.id, expected_status=expected, status=target)


class TestDocuments:

    def test_readmodel_upsert(self, store):
        store.write_readmodel(TENANT, MONTH, ReadModelKind.VAT_SUMMARY, {"periodLockHash": "a", "v": 1})
        store.write_readmodel(TENANT, MONTH, ReadModelKind.VAT_SUMMARY, {"periodLockHash": "b", "v": 2})
        assert store.read_readmodel(TENANT, MONTH, ReadModelKind.VAT_SUMMARY) == {"periodLockHash": "b", "v": 2}
        assert store.read_readmodel(TENANT, MONTH, ReadModelKind.CLOSE_FRICTION) is None

    def test_audit_snapshots_keyed_by_date(self, store):
        store.write_audit_snapshot(TENANT, MONTH, "2026-02-10", {"periodLockHash": "a", "n": 2})
        store.write_audit_snapshot(TENANT, MONTH, "2026-02-05", {"periodLockHash": "a", "n": 1})
        store.write_audit_snapshot(TENANT, MONTH, "2026-02-10", {"periodLockHash": "a", "n": 3})
        snapshots = store.read_audit_snapshots(TENANT, MONTH)
        assert list(snapshots) == ["2026-02-05", "2026-02-10"]
        assert snapshots["2026-02-10"]["n"] == 3

    def test_export_artifact_upsert(self, store):
        store.write_export_artifact(_artifact("h1"))
        store.write_export_artifact(_artifact("h2", content=b"x\n"))
        stored = store.read_export_artifact(TENANT, MONTH, ArtifactKind.LEDGER_CSV)
        assert stored.period_lock_hash == "h2"
        assert stored.content == b"x\n"
        assert stored.ref == f"tenants/{TENANT}/exports/{MONTH}/artifacts/ledgerCsv"
        assert store.read_export_artifact(TENANT, MONTH, ArtifactKind.SUMMARY_PDF) is None


class TestSavepoint:

    def test_rolls_back_on_error(self, store):
        store.write_readmodel(TENANT, MONTH, ReadModelKind.VAT_SUMMARY, {"periodLockHash": "old"})
        with pytest.raises(RuntimeError):
            with store.savepoint():
                store.write_readmodel(TENANT, MONTH, ReadModelKind.VAT_SUMMARY, {"periodLockHash": "new"})
                store.write_export_artifact(_artifact())
                raise RuntimeError("boom")

        assert store.read_readmodel(TENANT, MONTH, ReadModelKind.VAT_SUMMARY) == {"periodLockHash": "old"}
        assert store.read_export_artifact(TENANT, MONTH, ArtifactKind.LEDGER_CSV) is None

    def test_keeps_writes_on_success(self, store):
        with store.savepoint():
            store.write_export_artifact(_artifact())
        assert store.read_export_artifact(TENANT, MONTH, ArtifactKind.LEDGER_CSV) is not None
