"""
CloseStore -- Document store interface and its SQLAlchemy implementation.

Responsibility:
    Everything the finalize workflow reads or writes goes through the
    ``CloseStore`` protocol: events by month, the period record, the job
    record, export artifacts, read models and replay snapshots.
    ``SqlCloseStore`` implements it on a caller-owned Session.

Architecture position:
    Kernel > Services -- imperative shell around the ORM models.  Returns
    frozen records from close_kernel.domain.records, never ORM rows.

Invariants enforced:
    - Services flush, callers commit.  ``SqlCloseStore`` never calls
      ``commit()``.
    - Job creation is a conditional create: the UNIQUE job key lets at most
      one INSERT win, and the loser gets JobAlreadyExistsError.
    - Job status changes are compare-and-set on the current status, and only
      RUNNING -> COMPLETED, RUNNING -> FAILED and FAILED -> RUNNING are legal.
    - ``savepoint()`` gives callers an all-or-nothing unit inside the
      surrounding transaction.

Failure modes:
    - JobAlreadyExistsError when another writer created the job first.
    - ConcurrentModificationError when a compare-and-set update loses.
    - InvalidStatusTransitionError for an illegal job status move.
    - DuplicateEntryError when an event id is appended twice.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from close_kernel.domain.clock import Clock, SystemClock
from close_kernel.domain.events import BusinessEvent, sort_events
from close_kernel.domain.records import (
    ArtifactKind,
    ExportArtifactRecord,
    JobRecord,
    JobStatus,
    PeriodRecord,
    ReadModelKind,
)
from close_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateEntryError,
    InvalidStatusTransitionError,
    JobAlreadyExistsError,
)
from close_kernel.logging_config import get_logger
from close_kernel.models import (
    AuditSnapshotDocument,
    ClosePeriod,
    ExportArtifact,
    FinalizationJob,
    ReadModelDocument,
    StoredEvent,
)

logger = get_logger("services.close_store")

_JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.FAILED: frozenset({JobStatus.RUNNING}),
    JobStatus.COMPLETED: frozenset(),
}


class CloseStore(Protocol):
    """Persistence operations the finalize workflow depends on."""

    def read_events_by_month(self, tenant_id: str, month_key: str) -> list[BusinessEvent]: ...

    def read_period(self, tenant_id: str, month_key: str) -> PeriodRecord | None: ...

    def upsert_period(self, record: PeriodRecord) -> PeriodRecord: ...

    def read_job(self, job_id: str) -> JobRecord | None: ...

    def create_job(self, record: JobRecord) -> JobRecord: ...

    def update_job(
        self,
        job_id: str,
        *,
        expected_status: JobStatus,
        status: JobStatus,
        outputs_refs: dict[str, str] | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> JobRecord: ...

    def read_export_artifact(
        self, tenant_id: str, month_key: str, kind: ArtifactKind
    ) -> ExportArtifactRecord | None: ...

    def write_export_artifact(self, record: ExportArtifactRecord) -> None: ...

    def write_readmodel(
        self, tenant_id: str, month_key: str, kind: ReadModelKind, document: dict[str, Any]
    ) -> None: ...

    def write_audit_snapshot(
        self, tenant_id: str, month_key: str, as_of_date: str, document: dict[str, Any]
    ) -> None: ...

    def savepoint(self) -> Any: ...


class SqlCloseStore:
    """
    CloseStore on a SQLAlchemy Session.

    Contract:
        Every write is flushed before the method returns so constraint
        violations surface at the call site.  The caller owns the
        transaction and decides when to commit.

    Non-goals:
        - Does NOT commit or roll back the outer transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # -----------------------------------------------------------------
    # Transactions
    # -----------------------------------------------------------------

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Roll back everything written inside the block if it raises."""
        with self._session.begin_nested():
            yield

    # -----------------------------------------------------------------
    # Events
    # -----------------------------------------------------------------

    def append_event(self, evt: BusinessEvent) -> None:
        try:
            with self._session.begin_nested():
                self._session.add(StoredEvent.from_domain(evt))
                self._session.flush()
        except IntegrityError as exc:
            raise DuplicateEntryError("event", evt.id) from exc

    def append_events(self, events: Iterable[BusinessEvent]) -> int:
        count = 0
        for evt in events:
            self.append_event(evt)
            count += 1
        logger.info("events_appended", extra={"count": count})
        return count

    def read_events_by_month(self, tenant_id: str, month_key: str) -> list[BusinessEvent]:
        rows = self._session.scalars(
            select(StoredEvent).where(
                StoredEvent.tenant_id == tenant_id,
                StoredEvent.month_key == month_key,
            )
        ).all()
        return sort_events(row.to_domain() for row in rows)

    # -----------------------------------------------------------------
    # Periods
    # -----------------------------------------------------------------

    def _period_row(self, tenant_id: str, month_key: str) -> ClosePeriod | None:
        return self._session.scalars(
            select(ClosePeriod).where(
                ClosePeriod.tenant_id == tenant_id,
                ClosePeriod.month_key == month_key,
            )
        ).one_or_none()

    def read_period(self, tenant_id: str, month_key: str) -> PeriodRecord | None:
        row = self._period_row(tenant_id, month_key)
        return row.to_record() if row is not None else None

    def upsert_period(self, record: PeriodRecord) -> PeriodRecord:
        row = self._period_row(record.tenant_id, record.month_key)
        if row is None:
            row = ClosePeriod(tenant_id=record.tenant_id, month_key=record.month_key)
            self._session.add(row)
        row.status = record.status.value
        row.finalized_at = record.finalized_at
        row.as_of_days = list(record.as_of_days) if record.as_of_days is not None else None
        row.period_lock_hash = record.period_lock_hash
        self._session.flush()
        return row.to_record()

    # -----------------------------------------------------------------
    # Jobs
    # -----------------------------------------------------------------

    def _job_row(self, job_id: str) -> FinalizationJob | None:
        return self._session.scalars(
            select(FinalizationJob).where(FinalizationJob.job_key == job_id)
        ).one_or_none()

    def read_job(self, job_id: str) -> JobRecord | None:
        row = self._job_row(job_id)
        return row.to_record() if row is not None else None

    def create_job(self, record: JobRecord) -> JobRecord:
        now = self._clock.now_utc()
        row = FinalizationJob(
            job_key=record.id,
            tenant_id=record.tenant_id,
            month_key=record.month_key,
            action=record.action,
            status=record.status.value,
            period_lock_hash=record.period_lock_hash,
            outputs_refs=dict(record.outputs_refs),
            error_code=record.error_code,
            error_message=record.error_message,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._session.begin_nested():
                self._session.add(row)
                self._session.flush()
        except IntegrityError as exc:
            logger.info("job_create_conflict", extra={"job_id": record.id})
            raise JobAlreadyExistsError(record.id) from exc
        return row.to_record()

    def update_job(
        self,
        job_id: str,
        *,
        expected_status: JobStatus,
        status: JobStatus,
        outputs_refs: dict[str, str] | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> JobRecord:
        """Compare-and-set the job status from ``expected_status``."""
        if status not in _JOB_TRANSITIONS[expected_status]:
            raise InvalidStatusTransitionError("finalization job", expected_status.value, status.value)

        values: dict[str, Any] = {
            "status": status.value,
            "error_code": error_code,
            "error_message": error_message,
            "updated_at": self._clock.now_utc(),
        }
        if outputs_refs is not None:
            values["outputs_refs"] = dict(outputs_refs)

        result = self._session.execute(
            update(FinalizationJob)
            .where(
                FinalizationJob.job_key == job_id,
                FinalizationJob.status == expected_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError("finalization job", job_id)
        self._session.flush()

        row = self._job_row(job_id)
        self._session.refresh(row)
        return row.to_record()

    # -----------------------------------------------------------------
    # Export artifacts
    # -----------------------------------------------------------------

    def _artifact_row(self, tenant_id: str, month_key: str, kind: ArtifactKind) -> ExportArtifact | None:
        return self._session.scalars(
            select(ExportArtifact).where(
                ExportArtifact.tenant_id == tenant_id,
                ExportArtifact.month_key == month_key,
                ExportArtifact.kind == kind.value,
            )
        ).one_or_none()

    def read_export_artifact(
        self, tenant_id: str, month_key: str, kind: ArtifactKind
    ) -> ExportArtifactRecord | None:
        row = self._artifact_row(tenant_id, month_key, kind)
        return row.to_record() if row is not None else None

    def write_export_artifact(self, record: ExportArtifactRecord) -> None:
        row = self._artifact_row(record.tenant_id, record.month_key, record.kind)
        if row is None:
            row = ExportArtifact(
                tenant_id=record.tenant_id,
                month_key=record.month_key,
                kind=record.kind.value,
            )
            self._session.add(row)
        row.period_lock_hash = record.period_lock_hash
        row.content_hash = record.content_hash
        row.content_type = record.content_type
        row.filename = record.filename
        row.content = record.content
        row.generated_at = record.generated_at
        row.schema_version = record.schema_version
        self._session.flush()

    # -----------------------------------------------------------------
    # Read models and replay snapshots
    # -----------------------------------------------------------------

    def write_readmodel(
        self, tenant_id: str, month_key: str, kind: ReadModelKind, document: dict[str, Any]
    ) -> None:
        row = self._session.scalars(
            select(ReadModelDocument).where(
                ReadModelDocument.tenant_id == tenant_id,
                ReadModelDocument.month_key == month_key,
                ReadModelDocument.kind == kind.value,
            )
        ).one_or_none()
        if row is None:
            row = ReadModelDocument(tenant_id=tenant_id, month_key=month_key, kind=kind.value)
            self._session.add(row)
        row.period_lock_hash = document["periodLockHash"]
        row.document = document
        self._session.flush()

    def read_readmodel(self, tenant_id: str, month_key: str, kind: ReadModelKind) -> dict[str, Any] | None:
        row = self._session.scalars(
            select(ReadModelDocument).where(
                ReadModelDocument.tenant_id == tenant_id,
                ReadModelDocument.month_key == month_key,
                ReadModelDocument.kind == kind.value,
            )
        ).one_or_none()
        return dict(row.document) if row is not None else None

    def write_audit_snapshot(
        self, tenant_id: str, month_key: str, as_of_date: str, document: dict[str, Any]
    ) -> None:
        row = self._session.scalars(
            select(AuditSnapshotDocument).where(
                AuditSnapshotDocument.tenant_id == tenant_id,
                AuditSnapshotDocument.month_key == month_key,
                AuditSnapshotDocument.as_of_date == as_of_date,
            )
        ).one_or_none()
        if row is None:
            row = AuditSnapshotDocument(tenant_id=tenant_id, month_key=month_key, as_of_date=as_of_date)
            self._session.add(row)
        row.period_lock_hash = document["periodLockHash"]
        row.document = document
        self._session.flush()

    def read_audit_snapshots(self, tenant_id: str, month_key: str) -> dict[str, dict[str, Any]]:
        rows = self._session.scalars(
            select(AuditSnapshotDocument)
            .where(
                AuditSnapshotDocument.tenant_id == tenant_id,
                AuditSnapshotDocument.month_key == month_key,
            )
            .order_by(AuditSnapshotDocument.as_of_date)
        ).all()
        return {row.as_of_date: dict(row.document) for row in rows}
