from dataclasses import replace

import pytest

from inspectroute.services.routing.day_calculator import (
    add_minutes_to_time,
    calculate_day_route,
    parse_clock,
    recalculate_route_times,
)
from inspectroute.services.routing.models import DistanceMatrix, RouteStop


def _stop(fid: str, index: int, visit: int = 30) -> RouteStop:
    return RouteStop(facility_id=fid, name=f"Facility {fid}", latitude=32.0, longitude=-102.0, visit_duration=visit, index=index)


def _matrix() -> DistanceMatrix:
    return DistanceMatrix(
        distances=[
            [0, 10, 20],
            [10, 0, 5],
            [20, 5, 0],
        ],
        durations=[
            [0, 15, 30],
            [15, 0, 10],
            [30, 10, 0],
        ],
        source="test",
    )


def test_add_minutes_rolls_over_midnight():
    assert add_minutes_to_time("08:00", 90) == "09:30"
    assert add_minutes_to_time("23:30", 45) == "00:15"


@pytest.mark.parametrize("value", ["8am", "24:00", "12:60", "", "7"])
def test_parse_clock_rejects_malformed_times(value):
    with pytest.raises(ValueError):
        parse_clock(value)


def test_day_route_walks_home_to_stops_and_back():
    route = calculate_day_route([_stop("A", 1), _stop("B", 2)], _matrix(), start_time="08:00", day=1)

    assert [segment.to_id for segment in route.segments] == ["A", "B", None]
    assert route.segments[0].starts_at_home
    assert route.segments[-1].ends_at_home

    first = route.segments[0]
    assert first.arrival_time == "08:15"
    assert first.departure_time == "08:45"
    second = route.segments[1]
    assert second.arrival_time == "08:55"
    assert second.departure_time == "09:25"
    last = route.segments[-1]
    assert last.arrival_time == last.departure_time == "09:55"

    assert route.total_miles == 35
    assert route.total_drive_time == 55
    assert route.total_visit_time == 60
    assert route.total_time == 115
    assert route.last_departure_time == "09:25"
    assert route.end_time == "09:55"


def test_day_route_crossing_midnight_keeps_positive_totals():
    route = calculate_day_route([_stop("A", 1, visit=60)], _matrix(), start_time="23:30")

    assert route.segments[0].arrival_time == "23:45"
    assert route.segments[0].departure_time == "00:45"
    assert route.end_time == "01:00"
    assert route.total_time == 90


def test_empty_day_has_no_segments():
    route = calculate_day_route([], _matrix(), start_time="07:00", day=4)

    assert route.day == 4
    assert route.segments == []
    assert route.total_miles == 0
    assert route.end_time == "07:00"


def test_missing_matrix_value_is_rejected():
    matrix = _matrix()
    matrix.durations[0][1] = None
    with pytest.raises(ValueError):
        calculate_day_route([_stop("A", 1)], matrix, start_time="08:00")


def test_recalculate_applies_new_start_time_and_durations():
    route = calculate_day_route([_stop("A", 1), _stop("B", 2)], _matrix(), start_time="08:00")

    updated = recalculate_route_times(route, start_time="09:00", visit_durations={"B": 60})

    assert [stop.facility_id for stop in updated.stops] == ["A", "B"]
    assert updated.total_miles == route.total_miles
    assert updated.total_drive_time == route.total_drive_time
    assert updated.total_visit_time == 90
    assert updated.segments[1].arrival_time == "09:55"
    assert updated.segments[1].departure_time == "10:55"
    assert updated.end_time == "11:25"


def test_recalculate_is_idempotent():
    route = calculate_day_route([_stop("A", 1), _stop("B", 2)], _matrix(), start_time="08:00")

    once = recalculate_route_times(route)
    twice = recalculate_route_times(once)

    assert once == route
    assert twice == once


def test_recalculate_derives_day_totals_from_segments():
    route = calculate_day_route([_stop("A", 1), _stop("B", 2)], _matrix(), start_time="08:00")
    tampered = replace(route, total_miles=500.0, total_drive_time=999.0)

    updated = recalculate_route_times(tampered)

    assert updated.total_drive_time == 55
    assert updated.total_miles == 35
    assert updated.total_drive_time == sum(segment.duration_minutes for segment in updated.segments)
