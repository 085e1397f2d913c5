"""Nearby-facility lookup and next-stop guidance while driving."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable, Optional

from ...config import settings
from ...models.domain import Facility
from ..geospatial import haversine_meters
from ..routing.models import DayRoute, RouteStop

MAX_NEARBY_RESULTS = 5


@dataclass(slots=True, frozen=True)
class NearbyFacility:
    facility: Facility
    distance_meters: float


def find_nearby_facilities(
    latitude: float,
    longitude: float,
    facilities: Iterable[Facility],
    completed_ids: Collection[str] = (),
    *,
    radius_meters: float | None = None,
    limit: int = MAX_NEARBY_RESULTS,
) -> list[NearbyFacility]:
    """Closest uncompleted facilities within ``radius_meters``, nearest first."""

    radius = settings.nearby_radius_meters if radius_meters is None else radius_meters
    nearby = []
    for facility in facilities:
        if facility.id in completed_ids or not facility.location.is_valid():
            continue
        distance = haversine_meters(latitude, longitude, facility.latitude, facility.longitude)
        if distance <= radius:
            nearby.append(NearbyFacility(facility, distance))
    nearby.sort(key=lambda item: item.distance_meters)
    return nearby[:limit]


def next_facility(route: Optional[DayRoute], completed_ids: Collection[str] = ()) -> Optional[RouteStop]:
    """First stop of the day that has not been completed yet."""

    if route is None:
        return None
    for stop in route.stops:
        if stop.facility_id not in completed_ids:
            return stop
    return None
