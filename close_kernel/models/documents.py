"""
Module: close_kernel.models.documents
Responsibility: ORM persistence for derived documents of a finalize run:
    export artifacts, read-model projections and auditor replay snapshots.
Architecture position: Kernel > Models.

Invariants enforced:
    - One export artifact per (tenant, month, kind).
    - One read model per (tenant, month, kind).
    - One replay snapshot per (tenant, month, as-of date).
    - All of them are derived data: they may be deleted and rebuilt from
      the event log at any time.
"""

from typing import Any

from sqlalchemy import JSON, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from close_kernel.db.base import Base
from close_kernel.domain.records import ArtifactKind, ExportArtifactRecord


class ExportArtifact(Base):
    __tablename__ = "export_artifacts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "month_key", "kind", name="uq_export_artifact"),
    )

    tenant_id: Mapped[str] = mapped_column(String(200), nullable=False)
    month_key: Mapped[str] = mapped_column(String(7), nullable=False)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    period_lock_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    filename: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    generated_at: Mapped[str] = mapped_column(String(40), nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_record(self) -> ExportArtifactRecord:
        return ExportArtifactRecord(
            tenant_id=self.tenant_id,
            month_key=self.month_key,
            kind=ArtifactKind(self.kind),
            period_lock_hash=self.period_lock_hash,
            content_hash=self.content_hash,
            content_type=self.content_type,
            filename=self.filename,
            content=bytes(self.content),
            generated_at=self.generated_at,
            schema_version=self.schema_version,
        )


class ReadModelDocument(Base):
    __tablename__ = "readmodel_documents"

    __table_args__ = (
        UniqueConstraint("tenant_id", "month_key", "kind", name="uq_readmodel_document"),
    )

    tenant_id: Mapped[str] = mapped_column(String(200), nullable=False)
    month_key: Mapped[str] = mapped_column(String(7), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    period_lock_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)


class AuditSnapshotDocument(Base):
    __tablename__ = "audit_snapshot_documents"

    __table_args__ = (
        UniqueConstraint("tenant_id", "month_key", "as_of_date", name="uq_audit_snapshot"),
    )

    tenant_id: Mapped[str] = mapped_column(String(200), nullable=False)
    month_key: Mapped[str] = mapped_column(String(7), nullable=False)
    as_of_date: Mapped[str] = mapped_column(String(10), nullable=False)
    period_lock_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
