import pytest

from inspectroute.models.domain import Facility
from inspectroute.services.compliance.inspections import CompletionStatus
from inspectroute.services.compliance.spcc import SPCCPlanStatus
from inspectroute.services.navigation.centering import compute_center
from inspectroute.services.navigation.geolocation import GeolocationError, GeolocationErrorKind
from inspectroute.services.navigation.guidance import find_nearby_facilities, next_facility
from inspectroute.services.navigation.heading import (
    HeadingSmoother,
    RotationAnimation,
    circular_mean,
    ease_in_out_cubic,
    shortest_rotation,
)
from inspectroute.services.navigation.markers import (
    DAY_COLORS,
    RING_EXTERNAL,
    RING_INTERNAL,
    RING_SELECTED,
    UNASSIGNED_COLOR,
    day_color,
    marker_style,
)
from inspectroute.services.navigation.popups import ActionDispatcher, ActionType, PopupAction, navigation_url
from inspectroute.services.navigation.state import TrackingEvent, TrackingMode, auto_centers, next_state
from inspectroute.services.navigation.viewport import Viewport
from inspectroute.services.navigation.zoom import convert_speed, format_speed, zoom_for_speed
from inspectroute.services.routing.models import DayRoute, RouteStop


def _angle_gap(a: float, b: float) -> float:
    return abs((a - b + 180) % 360 - 180)


def test_circular_mean_around_north():
    assert _angle_gap(circular_mean([10, 350, 5, 355, 0]), 0.0) < 1e-6
    assert circular_mean([]) is None


def test_heading_smoother_keeps_last_five_readings():
    smoother = HeadingSmoother(window=5)
    for heading in (180, 180, 90, 90, 90, 90, 90):
        value = smoother.push(heading)

    assert len(smoother) == 5
    assert value == pytest.approx(90.0)


def test_shortest_rotation_wraps():
    assert shortest_rotation(350, 10) == pytest.approx(20)
    assert shortest_rotation(10, 350) == pytest.approx(-20)
    assert shortest_rotation(0, 180) == pytest.approx(180)


def test_rotation_animation_eases_along_shortest_path():
    animation = RotationAnimation.towards(350.0, 10.0, now=0.0)

    assert ease_in_out_cubic(0.5) == pytest.approx(0.5)
    assert _angle_gap(animation.bearing_at(0.25), 0.0) < 1e-6
    assert animation.bearing_at(1.0) == pytest.approx(10.0)
    assert not animation.finished(0.4)
    assert animation.finished(0.5)


@pytest.mark.parametrize("mph, zoom", [(0, 18), (5, 17), (12, 16), (20, 15), (40, 14), (60, 13), (80, 12)])
def test_zoom_for_speed(mph, zoom):
    assert zoom_for_speed(mph) == zoom


def test_speed_conversion():
    assert convert_speed(10, "mph") == pytest.approx(22.4)
    assert convert_speed(10, "kmh") == pytest.approx(36.0)
    assert convert_speed(None) is None
    assert format_speed(10, "kmh") == "36 km/h"
    assert format_speed(None) == "-- mph"


@pytest.mark.parametrize(
    "state, event, expected",
    [
        (TrackingMode.IDLE, TrackingEvent.LOCATE_REQUESTED, TrackingMode.MANUAL_TRACKING),
        (TrackingMode.IDLE, TrackingEvent.DRIVE_ON, TrackingMode.DRIVE_MODE),
        (TrackingMode.IDLE, TrackingEvent.GESTURE, TrackingMode.IDLE),
        (TrackingMode.MANUAL_TRACKING, TrackingEvent.GESTURE, TrackingMode.MANUAL_SUPPRESSED),
        (TrackingMode.MANUAL_SUPPRESSED, TrackingEvent.COOLDOWN_EXPIRED, TrackingMode.MANUAL_TRACKING),
        (TrackingMode.MANUAL_TRACKING, TrackingEvent.TRACKING_STOPPED, TrackingMode.IDLE),
        (TrackingMode.MANUAL_TRACKING, TrackingEvent.FACILITY_FOCUSED, TrackingMode.FACILITY_FOCUS),
        (TrackingMode.DRIVE_MODE, TrackingEvent.GESTURE, TrackingMode.DRIVE_SUPPRESSED),
        (TrackingMode.DRIVE_SUPPRESSED, TrackingEvent.COOLDOWN_EXPIRED, TrackingMode.DRIVE_MODE),
        (TrackingMode.DRIVE_MODE, TrackingEvent.FACILITY_FOCUSED, TrackingMode.DRIVE_FOCUS),
        (TrackingMode.DRIVE_FOCUS, TrackingEvent.LOCATE_REQUESTED, TrackingMode.DRIVE_MODE),
        (TrackingMode.DRIVE_MODE, TrackingEvent.DRIVE_OFF, TrackingMode.IDLE),
        (TrackingMode.DRIVE_MODE, TrackingEvent.DRIVE_LOCATION_FAILED, TrackingMode.IDLE),
        (TrackingMode.FACILITY_FOCUS, TrackingEvent.COOLDOWN_EXPIRED, TrackingMode.FACILITY_FOCUS),
        (TrackingMode.FACILITY_FOCUS, TrackingEvent.LOCATE_REQUESTED, TrackingMode.MANUAL_TRACKING),
    ],
)
def test_next_state(state, event, expected):
    assert next_state(event, state) is expected


def test_only_tracking_modes_auto_center():
    centering = {mode for mode in TrackingMode if auto_centers(mode)}
    assert centering == {TrackingMode.MANUAL_TRACKING, TrackingMode.DRIVE_MODE}


def test_center_without_drive_mode_is_direct():
    viewport = Viewport(32.0, -102.0, 17, 400, 800)

    command = compute_center(32.1, -102.1, 17, viewport, animate=True)

    assert (command.latitude, command.longitude) == (32.1, -102.1)
    assert command.duration == pytest.approx(0.3)
    assert not command.offset_applied
    assert compute_center(32.1, -102.1, 17, viewport, animate=False).duration == 0


def test_drive_mode_shifts_center_north():
    viewport = Viewport(32.0, -102.0, 17, 400, 800)

    command = compute_center(32.0, -102.0, 17, viewport, drive_mode=True)

    assert command.offset_applied
    assert 0 < command.latitude - 32.0 < 0.1
    moved = Viewport(command.latitude, command.longitude, 17, 400, 800)
    _, y = moved.latlng_to_container_point(32.0, -102.0)
    assert y == pytest.approx(800 * 0.65, abs=2)


def test_drive_offset_falls_back_when_unusable():
    assert not compute_center(32.0, -102.0, 17, Viewport(32.0, -102.0, 17, 0, 0), drive_mode=True).offset_applied
    assert not compute_center(32.0, -102.0, 3, Viewport(32.0, -102.0, 3, 400, 800), drive_mode=True).offset_applied
    assert compute_center(95.0, -102.0, 17, Viewport(32.0, -102.0, 17, 400, 800)) is None


def test_day_palette_cycles():
    assert day_color(1) == DAY_COLORS[0]
    assert day_color(25) == DAY_COLORS[0]
    assert day_color(None) == UNASSIGNED_COLOR
    assert day_color(-2) == UNASSIGNED_COLOR


def test_marker_style_encodes_state():
    plain = marker_style(day=2, position=4)
    assert (plain.fill_color, plain.glyph, plain.opacity, plain.size) == (DAY_COLORS[1], "4", 1.0, 36)

    external = marker_style(day=2, position=4, status=CompletionStatus.EXTERNAL, hide_completed=True)
    assert external.ring_color == RING_EXTERNAL
    assert external.glyph == "✓"
    assert external.opacity == 0.3
    assert external.size == 30

    assert marker_style(day=1, position=1, status=CompletionStatus.INSPECTED).ring_color == RING_INTERNAL
    assert marker_style(day=1, position=1, selected=True).ring_color == RING_SELECTED

    removed = marker_style(day=-2, position=None, removed=True)
    assert (removed.glyph, removed.opacity) == ("✗", 0.6)

    assert marker_style(day=1, position=1, spcc_status=SPCCPlanStatus.EXPIRED).fill_color == "#EF4444"


def test_navigation_urls():
    assert navigation_url(32.1, -102.2) == "https://maps.google.com/?q=32.1,-102.2"
    assert navigation_url(32.1, -102.2, "apple") == "http://maps.apple.com/?daddr=32.1,-102.2"


def test_dispatcher_routes_actions_and_rejects_unknown():
    dispatcher = ActionDispatcher()
    seen = []
    dispatcher.register(ActionType.SURVEY, lambda action: seen.append(action.facility_id) or "ok")

    assert dispatcher.dispatch(PopupAction(ActionType.SURVEY, "F1")) == "ok"
    assert dispatcher.dispatch({"action": "survey", "facility_id": "F2"}) == "ok"
    assert seen == ["F1", "F2"]
    with pytest.raises(ValueError):
        dispatcher.dispatch({"action": "teleport", "facility_id": "F1"})
    with pytest.raises(ValueError):
        dispatcher.dispatch(PopupAction(ActionType.REMOVE, "F1"))
    with pytest.raises(ValueError):
        dispatcher.dispatch({"action": "survey"})


def test_geolocation_error_messages():
    error = GeolocationError(GeolocationErrorKind.PERMISSION_DENIED)

    assert error.kind is GeolocationErrorKind.PERMISSION_DENIED
    assert "denied" in error.user_message
    assert "timed out" in GeolocationError(3).user_message


def test_find_nearby_facilities_sorted_and_limited():
    base = (32.0, -102.0)
    facilities = [
        Facility(id=f"F{i}", name=f"Facility {i}", latitude=base[0] + i * 0.0003, longitude=base[1]) for i in range(8)
    ]

    nearby = find_nearby_facilities(base[0], base[1], facilities, completed_ids={"F0"})

    assert [item.facility.id for item in nearby] == ["F1", "F2", "F3", "F4", "F5"]
    assert all(item.distance_meters <= 200 for item in nearby)
    assert nearby[0].distance_meters < nearby[1].distance_meters


def test_next_facility_skips_completed_stops():
    stops = [RouteStop(f"F{i}", f"Facility {i}", 32.0, -102.0, 30, i + 1) for i in range(3)]
    route = DayRoute(1, stops, [], 0.0, 0.0, 0.0, "08:00", "08:00", "08:00")

    assert next_facility(route, {"F0"}).facility_id == "F1"
    assert next_facility(route, {"F0", "F1", "F2"}) is None
    assert next_facility(None) is None


def test_drive_offset_that_is_not_a_number_centers_directly(monkeypatch):
    from inspectroute.services.navigation import centering

    monkeypatch.setattr(centering, "drive_offset_degrees", lambda latitude, zoom, viewport: float("nan"))

    command = compute_center(32.0, -102.0, 17, Viewport(32.0, -102.0, 17, 400, 800), drive_mode=True)

    assert not command.offset_applied
    assert command.latitude == 32.0
