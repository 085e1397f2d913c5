"""Domain models for facilities, home bases, inspections and account settings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal, Optional

# Sentinel day assignments stored on a facility.
DAY_EXCLUDED = -1
DAY_REMOVED = -2
INACTIVE_DAY_ASSIGNMENTS = frozenset({DAY_EXCLUDED, DAY_REMOVED})


def is_valid_coordinate(latitude: object, longitude: object) -> bool:
    """Return True when both values are finite numbers inside WGS84 bounds."""

    if isinstance(latitude, bool) or isinstance(longitude, bool):
        return False
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        return False
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


@dataclass(slots=True, frozen=True)
class Location:
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return is_valid_coordinate(self.latitude, self.longitude)

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class HomeBase:
    """Starting and ending point for every day route of a team."""

    id: str
    address: str
    latitude: float
    longitude: float
    team_number: int = 1
    team_label: Optional[str] = None

    @property
    def location(self) -> Location:
        return Location(self.latitude, self.longitude)


@dataclass(slots=True)
class Facility:
    """A visit target with its scheduling and compliance metadata."""

    id: str
    name: str
    latitude: float
    longitude: float
    visit_duration_minutes: int = 30
    day_assignment: Optional[int] = None
    team_assignment: Optional[int] = None
    address: Optional[str] = None
    spcc_completion_type: Optional[Literal["internal", "external"]] = None
    spcc_completed_date: Optional[date] = None
    first_prod_date: Optional[date] = None
    spcc_pe_stamp_date: Optional[date] = None
    spcc_plan_url: Optional[str] = None

    @property
    def location(self) -> Location:
        return Location(self.latitude, self.longitude)

    @property
    def is_active(self) -> bool:
        """Active facilities are eligible for optimization."""
        return self.day_assignment not in INACTIVE_DAY_ASSIGNMENTS

    @property
    def is_removed(self) -> bool:
        return self.day_assignment == DAY_REMOVED

    @property
    def is_excluded(self) -> bool:
        return self.day_assignment == DAY_EXCLUDED


@dataclass(slots=True)
class Inspection:
    id: str
    facility_id: str
    conducted_at: datetime
    status: str


@dataclass(slots=True)
class UserSettings:
    """Per-account planning and navigation preferences."""

    max_facilities_per_day: int = 8
    max_hours_per_day: float = 8.0
    default_visit_duration_minutes: int = 30
    use_facilities_constraint: bool = True
    use_hours_constraint: bool = True
    clustering_tightness: float = 0.5
    cluster_balance_weight: float = 0.5
    start_time: str = "08:00"
    sunset_offset_minutes: int = 0
    exclude_completed_facilities: bool = False
    exclude_externally_completed: bool = False
    navigation_mode_enabled: bool = False
    location_permission_granted: bool = False
    show_road_routes: bool = True
    speed_unit: Literal["mph", "kmh"] = "mph"
    map_preference: Literal["google", "apple"] = "google"
    team_count: int = 1
