"""
Module: close_kernel.models.close_period
Responsibility: ORM persistence for the per-tenant month close record.
Architecture position: Kernel > Models.

Invariants enforced:
    - One row per (tenant_id, month_key) via uq_close_period.
"""

from sqlalchemy import JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from close_kernel.db.base import Base
from close_kernel.domain.records import PeriodRecord, PeriodStatus


class ClosePeriod(Base):
    """
    A tenant's month close.

    Contract:
        ``as_of_days`` holds the close configuration chosen for the month;
        ``period_lock_hash`` is the hash of the last finalize run's inputs.
    """

    __tablename__ = "close_periods"

    __table_args__ = (
        UniqueConstraint("tenant_id", "month_key", name="uq_close_period"),
    )

    tenant_id: Mapped[str] = mapped_column(String(200), nullable=False)
    month_key: Mapped[str] = mapped_column(String(7), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PeriodStatus.DRAFT.value)
    finalized_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    as_of_days: Mapped[list | None] = mapped_column(JSON, nullable=True)
    period_lock_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<ClosePeriod {self.tenant_id}:{self.month_key} {self.status}>"

    def to_record(self) -> PeriodRecord:
        return PeriodRecord(
            tenant_id=self.tenant_id,
            month_key=self.month_key,
            status=PeriodStatus(self.status),
            finalized_at=self.finalized_at,
            as_of_days=tuple(self.as_of_days) if self.as_of_days is not None else None,
            period_lock_hash=self.period_lock_hash,
        )
