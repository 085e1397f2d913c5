"""Facility marker styling and the per-session marker registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from ..compliance.inspections import CompletionStatus
from ..compliance.spcc import SPCCPlanStatus
from .surface import LayerHandle, MarkerStyle

DAY_COLORS: tuple[str, ...] = (
    "#3B82F6",
    "#EF4444",
    "#10B981",
    "#F59E0B",
    "#EC4899",
    "#14B8A6",
    "#F97316",
    "#06B6D4",
    "#84CC16",
    "#F43F5E",
    "#0EA5E9",
    "#22C55E",
    "#EAB308",
    "#D946EF",
    "#FB923C",
    "#2DD4BF",
    "#4ADE80",
    "#FBBF24",
    "#F472B6",
    "#38BDF8",
    "#A3E635",
    "#DC2626",
    "#059669",
    "#EA580C",
)
UNASSIGNED_COLOR = "#6B7280"
REMOVED_COLOR = "#9CA3AF"

RING_DEFAULT = "#FFFFFF"
RING_INTERNAL = "#3B82F6"
RING_EXTERNAL = "#EAB308"
RING_SELECTED = "#000000"

SPCC_COLORS = {
    SPCCPlanStatus.EXPIRED: "#EF4444",
    SPCCPlanStatus.INITIAL_OVERDUE: "#EF4444",
    SPCCPlanStatus.EXPIRING: "#F97316",
    SPCCPlanStatus.INITIAL_DUE: "#F97316",
    SPCCPlanStatus.VALID: "#10B981",
    SPCCPlanStatus.NO_PLAN: "#6B7280",
    SPCCPlanStatus.NO_IP_DATE: "#6B7280",
}

COMPLETED_GLYPH = "✓"
REMOVED_GLYPH = "✗"

HIDDEN_COMPLETED_OPACITY = 0.3
REMOVED_OPACITY = 0.6
COMPLETED_SIZE = 30
DEFAULT_SIZE = 36


def day_color(day: Optional[int]) -> str:
    if day is None or day < 1:
        return UNASSIGNED_COLOR
    return DAY_COLORS[(day - 1) % len(DAY_COLORS)]


def ring_color(status: CompletionStatus) -> str:
    if status is CompletionStatus.EXTERNAL:
        return RING_EXTERNAL
    if status in (CompletionStatus.INTERNAL, CompletionStatus.INSPECTED):
        return RING_INTERNAL
    return RING_DEFAULT


def marker_style(
    *,
    day: Optional[int],
    position: Optional[int],
    status: CompletionStatus = CompletionStatus.NONE,
    removed: bool = False,
    hide_completed: bool = False,
    selected: bool = False,
    spcc_status: Optional[SPCCPlanStatus] = None,
) -> MarkerStyle:
    """Derive the full marker appearance from facility state.

    ``spcc_status`` switches the fill from the day palette to the plan
    compliance colours.
    """

    completed = status is not CompletionStatus.NONE
    if removed:
        return MarkerStyle(
            fill_color=REMOVED_COLOR,
            ring_color=RING_SELECTED if selected else RING_DEFAULT,
            glyph=REMOVED_GLYPH,
            opacity=REMOVED_OPACITY,
            size=DEFAULT_SIZE,
        )

    fill = SPCC_COLORS[spcc_status] if spcc_status is not None else day_color(day)
    if completed:
        glyph = COMPLETED_GLYPH
    else:
        glyph = str(position) if position is not None else ""
    return MarkerStyle(
        fill_color=fill,
        ring_color=RING_SELECTED if selected else ring_color(status),
        glyph=glyph,
        opacity=HIDDEN_COMPLETED_OPACITY if completed and hide_completed else 1.0,
        size=COMPLETED_SIZE if completed else DEFAULT_SIZE,
    )


@dataclass(slots=True)
class MarkerEntry:
    facility_id: str
    handle: LayerHandle
    latitude: float
    longitude: float
    style: MarkerStyle
    day: Optional[int] = None

    @property
    def position(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class MarkerRegistry:
    """Marker handles keyed by facility id."""

    def __init__(self) -> None:
        self._entries: dict[str, MarkerEntry] = {}

    def put(self, entry: MarkerEntry) -> None:
        self._entries[entry.facility_id] = entry

    def get(self, facility_id: str) -> Optional[MarkerEntry]:
        return self._entries.get(facility_id)

    def find_by_handle(self, handle: LayerHandle) -> Optional[MarkerEntry]:
        for entry in self._entries.values():
            if entry.handle == handle:
                return entry
        return None

    def clear(self) -> list[MarkerEntry]:
        entries = list(self._entries.values())
        self._entries.clear()
        return entries

    def __contains__(self, facility_id: object) -> bool:
        return facility_id in self._entries

    def __iter__(self) -> Iterator[MarkerEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)
