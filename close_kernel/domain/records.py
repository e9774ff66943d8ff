"""
Records -- Plain DTOs exchanged with the close document store.

The store adapter converts ORM rows into these frozen records so that the
finalize workflow never touches a Session-bound object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PeriodStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    FINALIZED = "FINALIZED"


class JobStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ArtifactKind(str, Enum):
    LEDGER_CSV = "ledgerCsv"
    SUMMARY_PDF = "summaryPdf"


class ReadModelKind(str, Enum):
    MONTH_CLOSE_TIMELINE = "monthCloseTimeline"
    CLOSE_FRICTION = "closeFriction"
    VAT_SUMMARY = "vatSummary"
    MISMATCH_SUMMARY = "mismatchSummary"


FINALIZE_ACTION = "periodFinalized"


@dataclass(frozen=True, slots=True)
class PeriodRecord:
    tenant_id: str
    month_key: str
    status: PeriodStatus
    finalized_at: str | None = None
    as_of_days: tuple[int, ...] | None = None
    period_lock_hash: str | None = None


@dataclass(frozen=True, slots=True)
class JobRecord:
    """Idempotency record for one finalize run of one lock hash."""

    id: str
    tenant_id: str
    month_key: str
    action: str
    status: JobStatus
    period_lock_hash: str
    outputs_refs: dict[str, str] = field(default_factory=dict)
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class ExportArtifactRecord:
    tenant_id: str
    month_key: str
    kind: ArtifactKind
    period_lock_hash: str
    content_hash: str
    content_type: str
    filename: str
    content: bytes
    generated_at: str
    schema_version: int = 1

    @property
    def ref(self) -> str:
        return artifact_ref(self.tenant_id, self.month_key, self.kind)


def artifact_ref(tenant_id: str, month_key: str, kind: ArtifactKind) -> str:
    return f"tenants/{tenant_id}/exports/{month_key}/artifacts/{kind.value}"


def finalize_job_id(tenant_id: str, month_key: str, period_lock_hash: str) -> str:
    return f"{FINALIZE_ACTION}:{tenant_id}:{month_key}:{period_lock_hash}"
