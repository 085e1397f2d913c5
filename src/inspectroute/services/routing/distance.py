"""Distance/route providers and the straight-line fallback."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

import httpx

from ...config import settings
from ...models.domain import Location
from ..geospatial import haversine_miles
from .models import DistanceMatrix, RouteGeometry
from .osrm_client import OSRMClient, decode_polyline

METERS_PER_MILE = 1609.344

logger = logging.getLogger(__name__)


class DistanceProvider(Protocol):
    def get_distance_matrix(self, locations: Sequence[Location]) -> DistanceMatrix: ...

    def get_route_geometry(self, locations: Sequence[Location]) -> Optional[RouteGeometry]: ...


def _straight_line(origin: Location, destination: Location, speed_mph: float) -> tuple[float, float]:
    miles = haversine_miles(origin.latitude, origin.longitude, destination.latitude, destination.longitude)
    return miles, float(round(miles / speed_mph * 60))


class HaversineDistanceProvider:
    """Great-circle miles with travel time at a fixed average speed."""

    def __init__(self, speed_mph: float | None = None) -> None:
        self.speed_mph = speed_mph or settings.fallback_speed_mph

    def get_distance_matrix(self, locations: Sequence[Location]) -> DistanceMatrix:
        n = len(locations)
        distances = [[0.0] * n for _ in range(n)]
        durations = [[0.0] * n for _ in range(n)]
        for i in range(n):
            for j in range(i + 1, n):
                miles, minutes = _straight_line(locations[i], locations[j], self.speed_mph)
                distances[i][j] = distances[j][i] = miles
                durations[i][j] = durations[j][i] = minutes
        return DistanceMatrix(distances=distances, durations=durations, source="haversine")

    def get_route_geometry(self, locations: Sequence[Location]) -> Optional[RouteGeometry]:
        if len(locations) < 2:
            return None
        return RouteGeometry(coordinates=[loc.as_tuple() for loc in locations], source="straight")


class OSRMDistanceProvider:
    """Road distances from OSRM, converted to miles and whole minutes."""

    def __init__(self, client: OSRMClient | None = None) -> None:
        self.client = client or OSRMClient()

    def get_distance_matrix(self, locations: Sequence[Location]) -> DistanceMatrix:
        table = self.client.table([loc.as_tuple() for loc in locations])
        distances = [
            [None if value is None else value / METERS_PER_MILE for value in row] for row in table["distances"]
        ]
        durations = [[None if value is None else float(round(value / 60)) for value in row] for row in table["durations"]]
        return DistanceMatrix(distances=distances, durations=durations, source="osrm")

    def get_route_geometry(self, locations: Sequence[Location]) -> Optional[RouteGeometry]:
        if len(locations) < 2:
            return None
        try:
            data = self.client.route([loc.as_tuple() for loc in locations])
            geometry = data["routes"][0]["geometry"]
            return RouteGeometry(coordinates=decode_polyline(geometry), source="osrm")
        except (ConnectionError, ValueError, KeyError, IndexError, httpx.HTTPError) as exc:
            logger.warning(f"OSRM route geometry unavailable, falling back to straight lines: {exc}")
            return None


def build_distance_provider() -> DistanceProvider:
    if not settings.osrm_base_url:
        logging.warning("OSRM base URL not configured, using straight-line distances")
        return HaversineDistanceProvider()
    return OSRMDistanceProvider()


def _unreachable_ratio(matrix: DistanceMatrix) -> float:
    n = len(matrix)
    off_diagonal = n * (n - 1)
    if off_diagonal == 0:
        return 0.0
    missing = sum(
        1
        for i in range(n)
        for j in range(n)
        if i != j and (matrix.distances[i][j] is None or matrix.durations[i][j] is None)
    )
    return missing / off_diagonal


def build_distance_matrix(locations: Sequence[Location], provider: DistanceProvider | None = None) -> DistanceMatrix:
    """Return a complete matrix, degrading to straight lines instead of failing.

    Provider failures and mostly-unreachable responses switch to the haversine
    matrix; isolated unreachable cells are patched with haversine estimates.
    """

    fallback = HaversineDistanceProvider()
    if len(locations) < 2:
        return fallback.get_distance_matrix(locations)

    provider = provider or build_distance_provider()
    try:
        matrix = provider.get_distance_matrix(locations)
    except (ConnectionError, ValueError, httpx.HTTPError) as exc:
        logging.warning(f"Distance provider request failed: {exc}. Using haversine fallback.")
        return fallback.get_distance_matrix(locations)
    except Exception as exc:
        logging.error(f"Unexpected error getting distance matrix: {exc}. Using haversine fallback.")
        return fallback.get_distance_matrix(locations)

    if len(matrix) != len(locations) or any(len(row) != len(locations) for row in matrix.durations):
        logging.warning("Distance provider returned a matrix of the wrong shape. Using haversine fallback.")
        return fallback.get_distance_matrix(locations)

    ratio = _unreachable_ratio(matrix)
    if ratio > settings.unreachable_fallback_ratio:
        logging.warning(f"Too many unreachable pairs ({ratio * 100:.1f}%). Using haversine fallback.")
        return fallback.get_distance_matrix(locations)

    if ratio > 0:
        patched = 0
        for i in range(len(locations)):
            for j in range(len(locations)):
                if matrix.distances[i][j] is None or matrix.durations[i][j] is None:
                    miles, minutes = _straight_line(locations[i], locations[j], fallback.speed_mph)
                    matrix.distances[i][j] = miles
                    matrix.durations[i][j] = minutes
                    patched += 1
        logging.info(f"Patched {patched} unreachable matrix cells with straight-line estimates")
    return matrix
