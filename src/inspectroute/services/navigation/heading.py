"""Heading smoothing and map rotation animation for drive mode."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

from ...config import settings

ROTATION_DURATION_SECONDS = 0.5
NORTH_RESET_DURATION_SECONDS = 0.6


def normalize_degrees(value: float) -> float:
    return value % 360.0


def circular_mean(headings: Iterable[float]) -> Optional[float]:
    """Average angles as unit vectors so 350 and 10 average to 0, not 180."""

    values = list(headings)
    if not values:
        return None
    sin_sum = sum(math.sin(math.radians(h)) for h in values)
    cos_sum = sum(math.cos(math.radians(h)) for h in values)
    if math.isclose(sin_sum, 0.0, abs_tol=1e-12) and math.isclose(cos_sum, 0.0, abs_tol=1e-12):
        return normalize_degrees(values[-1])
    return normalize_degrees(math.degrees(math.atan2(sin_sum, cos_sum)))


def shortest_rotation(current: float, target: float) -> float:
    """Signed delta in [-180, 180] that turns ``current`` into ``target``."""

    delta = (target - current) % 360.0
    if delta > 180.0:
        delta -= 360.0
    return delta


def ease_in_out_cubic(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    if t < 0.5:
        return 4 * t * t * t
    return 1 - (-2 * t + 2) ** 3 / 2


class HeadingSmoother:
    """Rolling circular mean over the most recent headings."""

    def __init__(self, window: int | None = None) -> None:
        self._readings: deque[float] = deque(maxlen=window or settings.heading_window)

    def push(self, heading: float) -> float:
        self._readings.append(normalize_degrees(heading))
        return circular_mean(self._readings)

    @property
    def value(self) -> Optional[float]:
        return circular_mean(self._readings)

    def reset(self) -> None:
        self._readings.clear()

    def __len__(self) -> int:
        return len(self._readings)


@dataclass(slots=True)
class RotationAnimation:
    start_bearing: float
    delta: float
    started_at: float
    duration: float = ROTATION_DURATION_SECONDS

    @classmethod
    def towards(cls, current: float, target: float, now: float, duration: float = ROTATION_DURATION_SECONDS) -> "RotationAnimation":
        return cls(start_bearing=current, delta=shortest_rotation(current, target), started_at=now, duration=duration)

    @property
    def target(self) -> float:
        return normalize_degrees(self.start_bearing + self.delta)

    def bearing_at(self, now: float) -> float:
        if self.duration <= 0:
            return self.target
        progress = (now - self.started_at) / self.duration
        return normalize_degrees(self.start_bearing + self.delta * ease_in_out_cubic(progress))

    def finished(self, now: float) -> bool:
        return now - self.started_at >= self.duration
