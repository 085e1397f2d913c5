"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_MILES = 3959.0
EARTH_RADIUS_METERS = 6371000.0
KM_PER_MILE = 1.609344


def _central_angle(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    return EARTH_RADIUS_KM * _central_angle(lat1, lon1, lat2, lon2)


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return EARTH_RADIUS_MILES * _central_angle(lat1, lon1, lat2, lon2)


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return EARTH_RADIUS_METERS * _central_angle(lat1, lon1, lat2, lon2)


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial bearing from (lat1, lon1) to (lat2, lon2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def spherical_centroid(points: Sequence[tuple[float, float]]) -> tuple[float, float]:
    """Return the geographic centroid of (lat, lon) points via 3D unit vectors."""

    if not points:
        return (0.0, 0.0)
    x = y = z = 0.0
    for lat, lon in points:
        phi, lam = math.radians(lat), math.radians(lon)
        x += math.cos(phi) * math.cos(lam)
        y += math.cos(phi) * math.sin(lam)
        z += math.sin(phi)
    n = len(points)
    x, y, z = x / n, y / n, z / n
    lon = math.atan2(y, x)
    lat = math.atan2(z, math.sqrt(x * x + y * y))
    return (math.degrees(lat), math.degrees(lon))
