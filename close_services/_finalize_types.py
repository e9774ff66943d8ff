"""
close_services._finalize_types -- Result DTOs for period finalization.

Responsibility:
    Define the outcome of one ``PeriodFinalizationWorkflow.finalize`` call.
    The workflow returns these instead of raising so callers such as the
    CLI or a trigger handler can report every outcome uniformly.

Architecture position:
    Services.  The types have no ORM or engine dependency.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FinalizeStatus(str, Enum):
    """How a finalize call ended."""

    COMPLETED = "COMPLETED"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    PERIOD_NOT_FINALIZED = "PERIOD_NOT_FINALIZED"
    JOB_IN_PROGRESS = "JOB_IN_PROGRESS"
    FAILED = "PERIOD_FINALIZE_FAILED"

    @property
    def is_success(self) -> bool:
        return self in (FinalizeStatus.COMPLETED, FinalizeStatus.ALREADY_COMPLETED)


@dataclass(frozen=True)
class FinalizeResult:
    status: FinalizeStatus
    tenant_id: str
    month_key: str
    job_id: str | None = None
    period_lock_hash: str | None = None
    outputs_refs: dict[str, str] = field(default_factory=dict)
    message: str | None = None

    @property
    def success(self) -> bool:
        return self.status.is_success

    @property
    def code(self) -> str | None:
        """Failure code, None on success."""
        return None if self.success else self.status.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "code": self.code,
            "tenantId": self.tenant_id,
            "monthKey": self.month_key,
            "jobId": self.job_id,
            "periodLockHash": self.period_lock_hash,
            "exports": dict(self.outputs_refs),
            "message": self.message,
        }
