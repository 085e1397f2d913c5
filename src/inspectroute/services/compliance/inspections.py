"""Inspection validity and facility completion status."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Mapping, Optional

from ...models.domain import Facility, Inspection

COMPLETED_STATUS = "completed"


class CompletionStatus(str, Enum):
    NONE = "none"
    INSPECTED = "inspected"
    INTERNAL = "internal"
    EXTERNAL = "external"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _one_year_before(moment: datetime) -> datetime:
    try:
        return moment.replace(year=moment.year - 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return moment.replace(year=moment.year - 1, day=28)


def is_inspection_valid(inspection: Optional[Inspection], now: Optional[datetime] = None) -> bool:
    """A completed inspection stays valid for one year after it was conducted."""

    if inspection is None or inspection.status != COMPLETED_STATUS:
        return False
    reference = _aware(now or _now())
    return _aware(inspection.conducted_at) >= _one_year_before(reference)


def days_until_expiry(inspection: Optional[Inspection], now: Optional[datetime] = None) -> Optional[int]:
    if inspection is None or inspection.status != COMPLETED_STATUS:
        return None
    conducted = _aware(inspection.conducted_at)
    try:
        expiry = conducted.replace(year=conducted.year + 1)
    except ValueError:
        expiry = conducted.replace(year=conducted.year + 1, day=28)
    remaining = expiry - _aware(now or _now())
    return remaining.days + (1 if remaining.seconds or remaining.microseconds else 0)


def latest_inspections(inspections: Iterable[Inspection]) -> dict[str, Inspection]:
    """Most recently conducted inspection per facility id."""

    latest: dict[str, Inspection] = {}
    for inspection in inspections:
        current = latest.get(inspection.facility_id)
        if current is None or _aware(inspection.conducted_at) > _aware(current.conducted_at):
            latest[inspection.facility_id] = inspection
    return latest


def completion_status(
    facility: Facility,
    inspection: Optional[Inspection] = None,
    now: Optional[datetime] = None,
) -> CompletionStatus:
    """Manual completion wins over inspection-derived completion."""

    if facility.spcc_completed_date is not None:
        if facility.spcc_completion_type == "external":
            return CompletionStatus.EXTERNAL
        return CompletionStatus.INTERNAL
    if is_inspection_valid(inspection, now):
        return CompletionStatus.INSPECTED
    return CompletionStatus.NONE


def is_completed(
    facility: Facility,
    inspections: Mapping[str, Inspection],
    now: Optional[datetime] = None,
) -> bool:
    return completion_status(facility, inspections.get(facility.id), now) is not CompletionStatus.NONE
