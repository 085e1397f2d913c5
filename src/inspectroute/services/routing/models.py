"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ...models.domain import Location, UserSettings

HOME_BASE_NAME = "Home Base"


@dataclass(slots=True)
class RouteStop:
    """A facility inside a day route, tied to its row in the distance matrix."""

    facility_id: str
    name: str
    latitude: float
    longitude: float
    visit_duration: int
    index: int

    @property
    def location(self) -> Location:
        return Location(self.latitude, self.longitude)


@dataclass(slots=True)
class RouteSegment:
    """One leg of a day. A ``None`` id on either end is the home base."""

    from_id: Optional[str]
    from_name: str
    to_id: Optional[str]
    to_name: str
    distance_miles: float
    duration_minutes: float
    arrival_time: str
    departure_time: str

    @property
    def starts_at_home(self) -> bool:
        return self.from_id is None

    @property
    def ends_at_home(self) -> bool:
        return self.to_id is None


@dataclass(slots=True)
class DayRoute:
    day: int
    stops: List[RouteStop]
    segments: List[RouteSegment]
    total_miles: float
    total_drive_time: float
    total_visit_time: float
    start_time: str
    end_time: str
    last_departure_time: str

    @property
    def total_time(self) -> float:
        return self.total_drive_time + self.total_visit_time

    @property
    def facility_ids(self) -> list[str]:
        return [stop.facility_id for stop in self.stops]

    @property
    def sequence(self) -> list[int]:
        return [stop.index for stop in self.stops]


@dataclass(slots=True)
class OptimizationResult:
    """A multi-day plan. Totals are always derived from the day routes."""

    routes: List[DayRoute] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    @property
    def total_days(self) -> int:
        return len(self.routes)

    @property
    def total_facilities(self) -> int:
        return sum(len(route.stops) for route in self.routes)

    @property
    def total_miles(self) -> float:
        return sum(route.total_miles for route in self.routes)

    @property
    def total_drive_time(self) -> float:
        return sum(route.total_drive_time for route in self.routes)

    @property
    def total_visit_time(self) -> float:
        return sum(route.total_visit_time for route in self.routes)

    @property
    def total_time(self) -> float:
        return sum(route.total_time for route in self.routes)

    def route_for_day(self, day: int) -> Optional[DayRoute]:
        return next((route for route in self.routes if route.day == day), None)


@dataclass(slots=True)
class DistanceMatrix:
    """Pairwise miles and minutes. Row/column 0 is the home base by convention."""

    distances: List[List[float]]
    durations: List[List[float]]
    source: str = "osrm"

    def __len__(self) -> int:
        return len(self.distances)


@dataclass(slots=True)
class RouteGeometry:
    coordinates: List[tuple[float, float]]
    source: str = "osrm"


@dataclass(slots=True)
class OptimizationConstraints:
    use_facilities_constraint: bool = True
    max_facilities_per_day: int = 8
    use_hours_constraint: bool = True
    max_hours_per_day: float = 8.0
    clustering_tightness: float = 0.5
    cluster_balance_weight: float = 0.5
    start_time: str = "08:00"
    sunset_offset_minutes: int = 0

    @classmethod
    def from_settings(cls, user_settings: UserSettings) -> "OptimizationConstraints":
        return cls(
            use_facilities_constraint=user_settings.use_facilities_constraint,
            max_facilities_per_day=user_settings.max_facilities_per_day,
            use_hours_constraint=user_settings.use_hours_constraint,
            max_hours_per_day=user_settings.max_hours_per_day,
            clustering_tightness=user_settings.clustering_tightness,
            cluster_balance_weight=user_settings.cluster_balance_weight,
            start_time=user_settings.start_time,
            sunset_offset_minutes=user_settings.sunset_offset_minutes,
        )

    @property
    def facility_ceiling(self) -> Optional[int]:
        """Maximum stops per day, or None when the constraint is off."""
        if not self.use_facilities_constraint:
            return None
        return max(1, int(self.max_facilities_per_day))

    @property
    def minutes_ceiling(self) -> Optional[float]:
        if not self.use_hours_constraint:
            return None
        return float(self.max_hours_per_day) * 60.0
