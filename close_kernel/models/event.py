"""
Module: close_kernel.models.event
Responsibility: ORM persistence for the append-only business event log.
Architecture position: Kernel > Models.  May import from db/base.py,
    domain/ and exceptions.py only.

Invariants enforced:
    - Event immutability: ORM before_update and before_delete listeners
      reject any change to a persisted row.
    - (tenant_id, event_id) uniqueness via uq_close_event.
    - Timestamps are stored as the exact ISO strings received, because the
      canonical order and the lock hash compare those strings.

Failure modes:
    - IntegrityError on a duplicate (tenant_id, event_id).
    - ImmutabilityViolationError on any UPDATE or DELETE.
"""

from typing import Any

from sqlalchemy import JSON, Index, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from close_kernel.db.base import Base
from close_kernel.domain.events import BusinessEvent
from close_kernel.exceptions import ImmutabilityViolationError


class StoredEvent(Base):
    """
    Persisted business event.

    Contract:
        Once INSERTed a row never changes and is never deleted.

    Non-goals:
        - Does NOT validate payload contents; the ledger fold does.
    """

    __tablename__ = "close_events"

    __table_args__ = (
        UniqueConstraint("tenant_id", "event_id", name="uq_close_event"),
        Index("idx_close_event_month", "tenant_id", "month_key"),
    )

    event_id: Mapped[str] = mapped_column(String(200), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(200), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    occurred_at: Mapped[str] = mapped_column(String(40), nullable=False)
    recorded_at: Mapped[str] = mapped_column(String(40), nullable=False)
    month_key: Mapped[str] = mapped_column(String(7), nullable=False)
    deterministic_id: Mapped[str] = mapped_column(String(200), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<StoredEvent {self.event_type}:{self.event_id}>"

    @classmethod
    def from_domain(cls, evt: BusinessEvent) -> "StoredEvent":
        return cls(
            event_id=evt.id,
            tenant_id=evt.tenant_id,
            event_type=evt.type,
            occurred_at=evt.occurred_at,
            recorded_at=evt.recorded_at,
            month_key=evt.month_key,
            deterministic_id=evt.deterministic_id,
            payload=dict(evt.payload),
        )

    def to_domain(self) -> BusinessEvent:
        return BusinessEvent(
            id=self.event_id,
            tenant_id=self.tenant_id,
            type=self.event_type,
            occurred_at=self.occurred_at,
            recorded_at=self.recorded_at,
            month_key=self.month_key,
            deterministic_id=self.deterministic_id,
            payload=dict(self.payload),
        )


@event.listens_for(StoredEvent, "before_update")
def prevent_event_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        "StoredEvent", target.event_id, "events are append-only and cannot be modified"
    )


@event.listens_for(StoredEvent, "before_delete")
def prevent_event_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        "StoredEvent", target.event_id, "events are append-only and cannot be deleted"
    )
