"""Fan out overlapping markers so each one can be clicked."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from shapely import affinity
from shapely.geometry import Point, Polygon

from .markers import MarkerRegistry
from .surface import LayerHandle, LineStyle, MapSurface, PolygonStyle
from .viewport import Viewport

logger = logging.getLogger(__name__)

OVERLAP_RADIUS_PIXELS = 40.0
PIXEL_SPACING = 60.0
BACKDROP_PADDING_PIXELS = 40.0
BACKDROP_HEIGHT_PIXELS = 60.0
# 16 segments per quarter circle gives a 64-point outline.
BACKDROP_QUAD_SEGMENTS = 16
SPIDERFIED_Z_OFFSET = 50

BACKDROP_STYLE = PolygonStyle(fill_color="#ffffff", fill_opacity=0.75, color="#3b82f6", weight=2.0)
LEG_STYLE = LineStyle(color="#666", weight=1.0, opacity=0.5, dash_array="4, 4")


def backdrop_ellipse(center_x: float, center_y: float, width: float, height: float) -> Polygon:
    """Ellipse in container pixel space centred on the fan."""

    circle = Point(center_x, center_y).buffer(1.0, quad_segs=BACKDROP_QUAD_SEGMENTS)
    return affinity.scale(circle, xfact=width / 2, yfact=height / 2, origin=(center_x, center_y))


def fan_positions(center_x: float, center_y: float, count: int, spacing: float = PIXEL_SPACING) -> list[tuple[float, float]]:
    """Left-to-right pixel positions for ``count`` markers on one horizontal line."""

    total = (count - 1) * spacing
    start = center_x - total / 2
    return [(start + i * spacing, center_y) for i in range(count)]


@dataclass(slots=True)
class _Fan:
    backdrop: Optional[LayerHandle] = None
    markers: dict[str, LayerHandle] = field(default_factory=dict)
    legs: list[LayerHandle] = field(default_factory=list)
    saved_opacity: dict[str, float] = field(default_factory=dict)
    positions: dict[str, tuple[float, float]] = field(default_factory=dict)


class Spiderfier:
    """Owns the temporary layers of at most one fanned-out group."""

    def __init__(self, surface: MapSurface, registry: MarkerRegistry) -> None:
        self._surface = surface
        self._registry = registry
        self._fan: Optional[_Fan] = None

    @property
    def active(self) -> bool:
        return self._fan is not None

    def position_of(self, facility_id: str) -> Optional[tuple[float, float]]:
        if self._fan is None:
            return None
        return self._fan.positions.get(facility_id)

    def facility_for_handle(self, handle: LayerHandle) -> Optional[str]:
        if self._fan is None:
            return None
        for facility_id, marker in self._fan.markers.items():
            if marker == handle:
                return facility_id
        return None

    def find_overlapping(
        self, facility_id: str, viewport: Viewport, radius: float = OVERLAP_RADIUS_PIXELS
    ) -> list[str]:
        """Facility ids whose markers sit within ``radius`` pixels of the clicked one."""

        clicked = self._registry.get(facility_id)
        if clicked is None:
            return []
        return [
            entry.facility_id
            for entry in self._registry
            if viewport.pixel_distance(clicked.position, entry.position) <= radius
        ]

    def spiderfy(self, facility_ids: Sequence[str], center: tuple[float, float], viewport: Viewport) -> bool:
        """Fan the given markers around ``center``; returns False when there is nothing to fan."""

        self.unspiderfy()
        entries = [entry for fid in facility_ids if (entry := self._registry.get(fid)) is not None]
        if len(entries) <= 1:
            return False

        cx, cy = viewport.latlng_to_container_point(*center)
        total_width = (len(entries) - 1) * PIXEL_SPACING
        fan = _Fan()

        ellipse = backdrop_ellipse(cx, cy, total_width + BACKDROP_PADDING_PIXELS * 2, BACKDROP_HEIGHT_PIXELS)
        outline = [viewport.container_point_to_latlng(x, y) for x, y in list(ellipse.exterior.coords)[:-1]]
        fan.backdrop = self._surface.add_polygon(outline, BACKDROP_STYLE)

        for entry, (x, y) in zip(entries, fan_positions(cx, cy, len(entries))):
            latlng = viewport.container_point_to_latlng(x, y)
            fan.markers[entry.facility_id] = self._surface.add_marker(
                latlng[0], latlng[1], entry.style, z_offset=SPIDERFIED_Z_OFFSET
            )
            fan.positions[entry.facility_id] = latlng
            fan.legs.append(self._surface.add_polyline([entry.position, latlng], LEG_STYLE))
            fan.saved_opacity[entry.facility_id] = entry.style.opacity
            self._surface.set_opacity(entry.handle, 0.0)

        self._fan = fan
        logger.debug("Spiderfied %d markers", len(entries))
        return True

    def unspiderfy(self) -> None:
        fan = self._fan
        if fan is None:
            return
        self._fan = None
        for handle in fan.markers.values():
            self._surface.remove_layer(handle)
        for handle in fan.legs:
            self._surface.remove_layer(handle)
        if fan.backdrop is not None:
            self._surface.remove_layer(fan.backdrop)
        for facility_id, opacity in fan.saved_opacity.items():
            entry = self._registry.get(facility_id)
            if entry is not None:
                self._surface.set_opacity(entry.handle, opacity)
