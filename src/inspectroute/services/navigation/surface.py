"""Rendering contract between the map session and the UI map widget."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Optional, Protocol, Sequence

from .viewport import Viewport

LayerHandle = Hashable


@dataclass(slots=True, frozen=True)
class MarkerStyle:
    fill_color: str
    ring_color: str
    glyph: str
    opacity: float = 1.0
    size: int = 36
    ring_width: int = 3


@dataclass(slots=True, frozen=True)
class LineStyle:
    color: str
    weight: float = 4.0
    opacity: float = 0.8
    dash_array: Optional[str] = None


@dataclass(slots=True, frozen=True)
class PolygonStyle:
    fill_color: str
    fill_opacity: float
    color: str
    weight: float = 2.0


class MapSurface(Protocol):
    """Operations the session needs from an interactive map."""

    def viewport(self) -> Viewport: ...

    def set_view(self, latitude: float, longitude: float, zoom: float, *, animate: bool, duration: float) -> None: ...

    def get_bearing(self) -> float: ...

    def set_bearing(self, bearing: float) -> None: ...

    def add_marker(
        self, latitude: float, longitude: float, style: MarkerStyle, *, z_offset: int = 0
    ) -> LayerHandle: ...

    def add_polyline(self, coordinates: Sequence[tuple[float, float]], style: LineStyle) -> LayerHandle: ...

    def add_polygon(self, coordinates: Sequence[tuple[float, float]], style: PolygonStyle) -> LayerHandle: ...

    def set_opacity(self, handle: LayerHandle, opacity: float) -> None: ...

    def remove_layer(self, handle: LayerHandle) -> None: ...
