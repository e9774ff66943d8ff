"""Close services: orchestration over the engines and the close store."""

from close_services._finalize_types import FinalizeResult, FinalizeStatus
from close_services.period_finalization import PeriodFinalizationWorkflow

__all__ = ["FinalizeResult", "FinalizeStatus", "PeriodFinalizationWorkflow"]
