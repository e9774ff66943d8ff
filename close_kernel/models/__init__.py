"""ORM models for the close store."""

from close_kernel.models.close_period import ClosePeriod
from close_kernel.models.documents import (
    AuditSnapshotDocument,
    ExportArtifact,
    ReadModelDocument,
)
from close_kernel.models.event import StoredEvent
from close_kernel.models.finalization_job import FinalizationJob

__all__ = [
    "AuditSnapshotDocument",
    "ClosePeriod",
    "ExportArtifact",
    "FinalizationJob",
    "ReadModelDocument",
    "StoredEvent",
]
