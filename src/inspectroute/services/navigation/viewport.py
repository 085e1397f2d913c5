"""Web Mercator projection between geographic and container pixel coordinates."""

from __future__ import annotations

import math
from dataclasses import dataclass

TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798
EARTH_CIRCUMFERENCE_METERS = 40075016.686
METERS_PER_DEGREE_LATITUDE = 111320.0


def meters_per_pixel(latitude: float, zoom: float) -> float:
    return (EARTH_CIRCUMFERENCE_METERS / TILE_SIZE) * math.cos(math.radians(latitude)) / (2**zoom)


def _project(latitude: float, longitude: float, zoom: float) -> tuple[float, float]:
    scale = TILE_SIZE * (2**zoom)
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, latitude))
    sin_lat = math.sin(math.radians(lat))
    x = (longitude + 180.0) / 360.0 * scale
    y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * scale
    return x, y


def _unproject(x: float, y: float, zoom: float) -> tuple[float, float]:
    scale = TILE_SIZE * (2**zoom)
    longitude = x / scale * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / scale
    latitude = math.degrees(math.atan(math.sinh(n)))
    return latitude, longitude


@dataclass(slots=True, frozen=True)
class Viewport:
    """The visible map: its centre, zoom level and container size in pixels."""

    latitude: float
    longitude: float
    zoom: float
    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        return not (self.width > 0 and self.height > 0)

    def latlng_to_container_point(self, latitude: float, longitude: float) -> tuple[float, float]:
        cx, cy = _project(self.latitude, self.longitude, self.zoom)
        px, py = _project(latitude, longitude, self.zoom)
        return px - cx + self.width / 2, py - cy + self.height / 2

    def container_point_to_latlng(self, x: float, y: float) -> tuple[float, float]:
        cx, cy = _project(self.latitude, self.longitude, self.zoom)
        return _unproject(cx + x - self.width / 2, cy + y - self.height / 2, self.zoom)

    def pixel_distance(self, a: tuple[float, float], b: tuple[float, float]) -> float:
        ax, ay = self.latlng_to_container_point(*a)
        bx, by = self.latlng_to_container_point(*b)
        return math.hypot(ax - bx, ay - by)
