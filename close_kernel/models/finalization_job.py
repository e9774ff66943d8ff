"""
Module: close_kernel.models.finalization_job
Responsibility: ORM persistence for finalize job records.
Architecture position: Kernel > Models.

Invariants enforced:
    - job_key is UNIQUE (uq_finalization_job_key).  The INSERT of a job row
      is the mutual-exclusion point between concurrent finalize calls for
      the same lock hash: at most one INSERT succeeds.
    - Status moves RUNNING -> COMPLETED | FAILED, and FAILED -> RUNNING on an
      explicit re-run.  Moves are applied by the store as compare-and-set
      UPDATEs.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from close_kernel.db.base import Base
from close_kernel.domain.records import JobRecord, JobStatus


class FinalizationJob(Base):
    __tablename__ = "finalization_jobs"

    __table_args__ = (
        UniqueConstraint("job_key", name="uq_finalization_job_key"),
    )

    job_key: Mapped[str] = mapped_column(String(400), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(200), nullable=False)
    month_key: Mapped[str] = mapped_column(String(7), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    period_lock_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    outputs_refs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<FinalizationJob {self.job_key} {self.status}>"

    def to_record(self) -> JobRecord:
        return JobRecord(
            id=self.job_key,
            tenant_id=self.tenant_id,
            month_key=self.month_key,
            action=self.action,
            status=JobStatus(self.status),
            period_lock_hash=self.period_lock_hash,
            outputs_refs=dict(self.outputs_refs or {}),
            error_code=self.error_code,
            error_message=self.error_message,
        )
