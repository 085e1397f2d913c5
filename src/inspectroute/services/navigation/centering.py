"""Camera centering with the drive-mode look-ahead offset."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ...models.domain import is_valid_coordinate
from .viewport import METERS_PER_DEGREE_LATITUDE, Viewport, meters_per_pixel

logger = logging.getLogger(__name__)

# Drive mode keeps the user marker 35% above the bottom edge.
DRIVE_OFFSET_FRACTION = 0.15
MAX_OFFSET_DEGREES = 0.1
ANIMATION_DURATION_SECONDS = 0.3


@dataclass(slots=True, frozen=True)
class CenterCommand:
    latitude: float
    longitude: float
    zoom: float
    animate: bool
    duration: float
    offset_applied: bool = False


def drive_offset_degrees(latitude: float, zoom: float, viewport: Viewport) -> float:
    """Northward shift of the map centre, in degrees of latitude."""

    offset_pixels = viewport.height * DRIVE_OFFSET_FRACTION
    return offset_pixels * meters_per_pixel(latitude, zoom) / METERS_PER_DEGREE_LATITUDE


def compute_center(
    latitude: float,
    longitude: float,
    zoom: float,
    viewport: Viewport,
    *,
    drive_mode: bool = False,
    animate: bool = True,
) -> Optional[CenterCommand]:
    """Camera command placing the position in view, or None for invalid input."""

    if not is_valid_coordinate(latitude, longitude):
        logger.warning("Refusing to center on invalid coordinates (%s, %s)", latitude, longitude)
        return None

    duration = ANIMATION_DURATION_SECONDS if animate else 0.0
    direct = CenterCommand(latitude, longitude, zoom, animate, duration)
    if not drive_mode:
        return direct

    try:
        if viewport.is_degenerate:
            logger.debug("Viewport has no size yet; centering without offset")
            return direct
        offset = drive_offset_degrees(latitude, zoom, viewport)
    except (ArithmeticError, ValueError) as exc:
        logger.warning("Drive offset calculation failed, centering directly: %s", exc)
        return direct

    if not 0 <= offset <= MAX_OFFSET_DEGREES:
        logger.debug("Drive offset %.4f out of bounds; centering without offset", offset)
        return direct
    return CenterCommand(latitude + offset, longitude, zoom, animate, duration, offset_applied=True)
