"""Inspection and SPCC compliance helpers."""

from .inspections import (
    CompletionStatus,
    completion_status,
    is_completed,
    is_inspection_valid,
    latest_inspections,
)
from .spcc import SPCCPlanStatus, SPCCStatusResult, spcc_plan_status

__all__ = [
    "CompletionStatus",
    "completion_status",
    "is_completed",
    "is_inspection_valid",
    "latest_inspections",
    "SPCCPlanStatus",
    "SPCCStatusResult",
    "spcc_plan_status",
]
