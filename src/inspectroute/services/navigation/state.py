"""Tracking state machine for the map camera."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TrackingMode(str, Enum):
    IDLE = "idle"
    MANUAL_TRACKING = "manual_tracking"
    MANUAL_SUPPRESSED = "manual_suppressed"
    DRIVE_MODE = "drive_mode"
    DRIVE_SUPPRESSED = "drive_suppressed"
    FACILITY_FOCUS = "facility_focus"
    DRIVE_FOCUS = "drive_focus"


class TrackingEvent(str, Enum):
    LOCATE_REQUESTED = "locate_requested"
    TRACKING_STOPPED = "tracking_stopped"
    DRIVE_ON = "drive_on"
    DRIVE_OFF = "drive_off"
    GESTURE = "gesture"
    COOLDOWN_EXPIRED = "cooldown_expired"
    FACILITY_FOCUSED = "facility_focused"
    DRIVE_LOCATION_FAILED = "drive_location_failed"


M = TrackingMode
E = TrackingEvent

TRANSITIONS: dict[TrackingMode, dict[TrackingEvent, TrackingMode]] = {
    M.IDLE: {
        E.LOCATE_REQUESTED: M.MANUAL_TRACKING,
        E.DRIVE_ON: M.DRIVE_MODE,
        E.FACILITY_FOCUSED: M.FACILITY_FOCUS,
    },
    M.MANUAL_TRACKING: {
        E.LOCATE_REQUESTED: M.MANUAL_TRACKING,
        E.TRACKING_STOPPED: M.IDLE,
        E.DRIVE_ON: M.DRIVE_MODE,
        E.GESTURE: M.MANUAL_SUPPRESSED,
        E.FACILITY_FOCUSED: M.FACILITY_FOCUS,
    },
    M.MANUAL_SUPPRESSED: {
        E.LOCATE_REQUESTED: M.MANUAL_TRACKING,
        E.TRACKING_STOPPED: M.IDLE,
        E.DRIVE_ON: M.DRIVE_MODE,
        E.COOLDOWN_EXPIRED: M.MANUAL_TRACKING,
        E.FACILITY_FOCUSED: M.FACILITY_FOCUS,
    },
    M.DRIVE_MODE: {
        E.LOCATE_REQUESTED: M.DRIVE_MODE,
        E.DRIVE_OFF: M.IDLE,
        E.TRACKING_STOPPED: M.IDLE,
        E.GESTURE: M.DRIVE_SUPPRESSED,
        E.FACILITY_FOCUSED: M.DRIVE_FOCUS,
        E.DRIVE_LOCATION_FAILED: M.IDLE,
    },
    M.DRIVE_SUPPRESSED: {
        E.LOCATE_REQUESTED: M.DRIVE_MODE,
        E.DRIVE_OFF: M.IDLE,
        E.TRACKING_STOPPED: M.IDLE,
        E.COOLDOWN_EXPIRED: M.DRIVE_MODE,
        E.FACILITY_FOCUSED: M.DRIVE_FOCUS,
        E.DRIVE_LOCATION_FAILED: M.IDLE,
    },
    M.FACILITY_FOCUS: {
        E.LOCATE_REQUESTED: M.MANUAL_TRACKING,
        E.DRIVE_ON: M.DRIVE_MODE,
        E.TRACKING_STOPPED: M.IDLE,
        E.FACILITY_FOCUSED: M.FACILITY_FOCUS,
    },
    M.DRIVE_FOCUS: {
        E.LOCATE_REQUESTED: M.DRIVE_MODE,
        E.DRIVE_OFF: M.IDLE,
        E.TRACKING_STOPPED: M.IDLE,
        E.FACILITY_FOCUSED: M.DRIVE_FOCUS,
        E.DRIVE_LOCATION_FAILED: M.IDLE,
    },
}

del M, E

DRIVE_MODES = frozenset({TrackingMode.DRIVE_MODE, TrackingMode.DRIVE_SUPPRESSED, TrackingMode.DRIVE_FOCUS})
AUTO_CENTER_MODES = frozenset({TrackingMode.MANUAL_TRACKING, TrackingMode.DRIVE_MODE})
SUPPRESSED_MODES = frozenset({TrackingMode.MANUAL_SUPPRESSED, TrackingMode.DRIVE_SUPPRESSED})


def next_state(event: TrackingEvent, state: TrackingMode) -> TrackingMode:
    """Resulting mode for ``event``; events with no entry leave the mode unchanged."""

    return TRANSITIONS.get(state, {}).get(event, state)


def auto_centers(state: TrackingMode) -> bool:
    return state in AUTO_CENTER_MODES


def is_drive_mode(state: TrackingMode) -> bool:
    return state in DRIVE_MODES


def is_tracking(state: TrackingMode) -> bool:
    return state is not TrackingMode.IDLE and state is not TrackingMode.FACILITY_FOCUS


@dataclass(slots=True)
class SessionState:
    mode: TrackingMode = TrackingMode.IDLE
    last_centered_position: Optional[tuple[float, float]] = None
    interaction_cooldown_until: Optional[float] = None

    def apply(self, event: TrackingEvent) -> TrackingMode:
        self.mode = next_state(event, self.mode)
        return self.mode
