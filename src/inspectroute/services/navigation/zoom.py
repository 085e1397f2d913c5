"""Speed-dependent zoom levels and speed unit conversion."""

from __future__ import annotations

from typing import Literal, Optional

MPH_PER_MPS = 2.23694
KMH_PER_MPS = 3.6

LOCATE_ZOOM = 18
DRIVE_ENTRY_ZOOM = 17

# (upper speed bound in mph, zoom level)
SPEED_ZOOM_STEPS: tuple[tuple[float, int], ...] = (
    (0.0, 18),
    (10.0, 17),
    (15.0, 16),
    (35.0, 15),
    (50.0, 14),
    (65.0, 13),
)
HIGHWAY_ZOOM = 12


def zoom_for_speed(speed_mph: float) -> int:
    """Closer zoom at walking pace, wider as speed increases."""
    for limit, zoom in SPEED_ZOOM_STEPS:
        if speed_mph <= limit:
            return zoom
    return HIGHWAY_ZOOM


def mps_to_mph(speed: float) -> float:
    return speed * MPH_PER_MPS


def convert_speed(speed_mps: Optional[float], unit: Literal["mph", "kmh"] = "mph") -> Optional[float]:
    if speed_mps is None:
        return None
    factor = KMH_PER_MPS if unit == "kmh" else MPH_PER_MPS
    return round(max(speed_mps, 0.0) * factor, 1)


def format_speed(speed_mps: Optional[float], unit: Literal["mph", "kmh"] = "mph") -> str:
    value = convert_speed(speed_mps, unit)
    label = "km/h" if unit == "kmh" else "mph"
    if value is None:
        return f"-- {label}"
    return f"{value:.0f} {label}"
