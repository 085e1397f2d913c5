"""Coarse sunset estimate used to flag days that run late.

This is a seasonal/latitude approximation, not a solar-position calculation.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Literal, Optional

from .day_calculator import parse_clock
from .models import DayRoute

NEAR_SUNSET_MINUTES = 60
REFERENCE_LATITUDE = 35.0

SunsetStatus = Literal["before", "near", "after"]


def estimate_sunset_hour(latitude: float, month: int) -> int:
    """Winter (Nov-Feb) 17h, summer (May-Aug) 20h, else 18h; one hour per 10 deg from 35N."""

    if month >= 11 or month <= 2:
        hour = 17
    elif 5 <= month <= 8:
        hour = 20
    else:
        hour = 18
    return hour + math.floor((latitude - REFERENCE_LATITUDE) / 10)


def minutes_until_sunset(end_time: str, latitude: float, month: int, offset_minutes: int = 0) -> int:
    sunset = estimate_sunset_hour(latitude, month) * 60 + offset_minutes
    return sunset - parse_clock(end_time)


def sunset_status(end_time: str, latitude: float, month: int, offset_minutes: int = 0) -> SunsetStatus:
    remaining = minutes_until_sunset(end_time, latitude, month, offset_minutes)
    if remaining < 0:
        return "after"
    if remaining < NEAR_SUNSET_MINUTES:
        return "near"
    return "before"


def day_sunset_status(
    route: DayRoute, offset_minutes: int = 0, today: Optional[date] = None
) -> Optional[SunsetStatus]:
    """Status of a day's last departure, judged at its first stop's latitude."""

    if not route.stops:
        return None
    month = (today or date.today()).month
    return sunset_status(route.last_departure_time, route.stops[0].latitude, month, offset_minutes)
