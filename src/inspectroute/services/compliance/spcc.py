"""SPCC plan status, derived from production and PE-stamp dates.

Independent of inspection status. A PE-stamped plan must be renewed every
five years; a facility without one needs its initial plan within six months of
first production.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from ...models.domain import Facility

RENEWAL_YEARS = 5
RENEWAL_WARNING_DAYS = 90
INITIAL_PLAN_MONTHS = 6
INITIAL_WARNING_DAYS = 30


class SPCCPlanStatus(str, Enum):
    NO_IP_DATE = "no_ip_date"
    NO_PLAN = "no_plan"
    INITIAL_DUE = "initial_due"
    INITIAL_OVERDUE = "initial_overdue"
    VALID = "valid"
    EXPIRING = "expiring"
    EXPIRED = "expired"


@dataclass(slots=True)
class SPCCStatusResult:
    status: SPCCPlanStatus
    message: str
    is_compliant: bool
    is_urgent: bool
    days_until_due: Optional[int] = None
    pe_stamp_date: Optional[date] = None
    renewal_date: Optional[date] = None
    has_plan: bool = False


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def spcc_plan_status(facility: Facility, today: Optional[date] = None) -> SPCCStatusResult:
    today = today or date.today()
    has_plan = bool(facility.spcc_plan_url and facility.spcc_pe_stamp_date)

    if facility.spcc_pe_stamp_date is not None:
        stamp = facility.spcc_pe_stamp_date
        renewal = add_months(stamp, RENEWAL_YEARS * 12)
        days = (renewal - today).days
        if days < 0:
            return SPCCStatusResult(
                SPCCPlanStatus.EXPIRED, f"Expired {abs(days)}d ago", False, True, days, stamp, renewal, has_plan
            )
        if days <= RENEWAL_WARNING_DAYS:
            return SPCCStatusResult(
                SPCCPlanStatus.EXPIRING, f"Renewal in {days}d", True, True, days, stamp, renewal, has_plan
            )
        return SPCCStatusResult(SPCCPlanStatus.VALID, "Plan Active", True, False, days, stamp, renewal, has_plan)

    if facility.first_prod_date is None:
        return SPCCStatusResult(SPCCPlanStatus.NO_IP_DATE, "No IP Date", True, False)

    due = add_months(facility.first_prod_date, INITIAL_PLAN_MONTHS)
    days = (due - today).days
    if days < 0:
        return SPCCStatusResult(SPCCPlanStatus.INITIAL_OVERDUE, f"Overdue {abs(days)}d", False, True, days)
    if days <= INITIAL_WARNING_DAYS:
        return SPCCStatusResult(SPCCPlanStatus.INITIAL_DUE, f"Due in {days}d", True, True, days)
    return SPCCStatusResult(SPCCPlanStatus.NO_PLAN, f"Due {due:%b} {due.day}, {due.year}", True, False, days)
