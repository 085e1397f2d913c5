import math

from inspectroute.models.domain import Location
from inspectroute.services.routing.distance import HaversineDistanceProvider
from inspectroute.services.routing.models import DistanceMatrix, OptimizationConstraints, RouteStop
from inspectroute.services.routing.optimizer import (
    _build_split_day,
    add_empty_day,
    assign_days_to_teams,
    optimize_routes,
    refresh_route_times,
    reoptimize_days,
)
from inspectroute.services.routing.sequencing import nearest_neighbor_route, optimize_route_order, route_distance

HOME = Location(32.0, -102.0)


def _grid_stops(count: int) -> tuple[list[Location], list[RouteStop]]:
    locations = [HOME]
    stops = []
    for i in range(count):
        lat = HOME.latitude + 0.05 * (i % 5) + (0.4 if i >= count / 2 else 0.0)
        lon = HOME.longitude + 0.05 * (i // 5)
        stops.append(RouteStop(f"F{i}", f"Facility {i}", lat, lon, 30, len(locations)))
        locations.append(Location(lat, lon))
    return locations, stops


def _line_distances(points: list[float]) -> list[list[float]]:
    return [[abs(a - b) for b in points] for a in points]


def test_two_opt_never_lengthens_a_tour():
    distances = _line_distances([0, 5, 1, 4, 2, 3])
    tour = [1, 2, 3, 4, 5]

    improved = optimize_route_order(distances, tour)

    assert sorted(improved) == sorted(tour)
    assert route_distance(distances, improved) < route_distance(distances, tour)


def test_nearest_neighbor_starts_from_home():
    distances = _line_distances([0, 3, 1, 2])
    assert nearest_neighbor_route(distances, [1, 2, 3]) == [2, 3, 1]


def test_optimize_routes_visits_every_stop_once_within_ceiling():
    locations, stops = _grid_stops(20)
    matrix = HaversineDistanceProvider(speed_mph=45).get_distance_matrix(locations)
    constraints = OptimizationConstraints(max_facilities_per_day=6, use_hours_constraint=False)

    result = optimize_routes(stops, matrix, constraints, HOME)

    routed = [fid for route in result.routes for fid in route.facility_ids]
    assert sorted(routed) == sorted(stop.facility_id for stop in stops)
    assert all(len(route.stops) <= 6 for route in result.routes)
    assert [route.day for route in result.routes] == list(range(1, result.total_days + 1))
    assert result.total_facilities == 20
    assert result.metadata["distance_source"] == "haversine"


def test_optimize_routes_respects_hours_ceiling():
    positions = [0] + list(range(1, 11))
    distances = _line_distances(positions)
    matrix = DistanceMatrix(distances=distances, durations=[row[:] for row in distances], source="test")
    stops = [
        RouteStop(f"F{i}", f"Facility {i}", HOME.latitude + 0.0145 * i, HOME.longitude, 30, i) for i in range(1, 11)
    ]
    constraints = OptimizationConstraints(use_facilities_constraint=False, max_hours_per_day=2.0)

    result = optimize_routes(stops, matrix, constraints, HOME)

    assert result.total_facilities == 10
    assert result.total_days > 1
    assert all(route.total_time <= 120 for route in result.routes)


def test_plan_totals_equal_sum_of_days():
    locations, stops = _grid_stops(15)
    matrix = HaversineDistanceProvider(speed_mph=45).get_distance_matrix(locations)

    result = optimize_routes(stops, matrix, OptimizationConstraints(max_facilities_per_day=5), HOME)

    assert math.isclose(result.total_miles, sum(route.total_miles for route in result.routes))
    assert math.isclose(result.total_drive_time, sum(route.total_drive_time for route in result.routes))
    assert math.isclose(result.total_time, result.total_drive_time + result.total_visit_time)


def test_optimize_routes_with_no_stops_returns_empty_plan():
    matrix = HaversineDistanceProvider().get_distance_matrix([HOME])
    result = optimize_routes([], matrix, OptimizationConstraints(), HOME)

    assert result.routes == []
    assert result.total_days == 0
    assert result.total_miles == 0


def test_reoptimize_keeps_day_membership():
    locations, stops = _grid_stops(6)
    matrix = HaversineDistanceProvider().get_distance_matrix(locations)
    days = {2: stops[:3], 5: stops[3:]}

    result = reoptimize_days(days, matrix, OptimizationConstraints())

    assert [route.day for route in result.routes] == [2, 5]
    assert sorted(result.route_for_day(2).facility_ids) == ["F0", "F1", "F2"]
    assert sorted(result.route_for_day(5).facility_ids) == ["F3", "F4", "F5"]


def test_refresh_route_times_only_moves_the_clock():
    locations, stops = _grid_stops(8)
    matrix = HaversineDistanceProvider().get_distance_matrix(locations)
    result = optimize_routes(stops, matrix, OptimizationConstraints(max_facilities_per_day=4), HOME)

    refreshed = refresh_route_times(result, start_time="10:00")

    assert [r.facility_ids for r in refreshed.routes] == [r.facility_ids for r in result.routes]
    assert refreshed.total_miles == result.total_miles
    assert all(route.start_time == "10:00" for route in refreshed.routes)
    again = refresh_route_times(refreshed, start_time="10:00")
    assert [r.end_time for r in again.routes] == [r.end_time for r in refreshed.routes]


def test_add_empty_day_appends_after_highest_day():
    locations, stops = _grid_stops(4)
    matrix = HaversineDistanceProvider().get_distance_matrix(locations)
    result = reoptimize_days({1: stops[:2], 2: stops[2:]}, matrix, OptimizationConstraints())

    extended = add_empty_day(result, "08:00")

    new_day = extended.routes[-1]
    assert new_day.day == 3
    assert new_day.stops == []
    assert new_day.start_time == new_day.end_time == "08:00"
    assert extended.total_facilities == result.total_facilities


def test_assign_days_to_teams_uses_contiguous_blocks():
    assert assign_days_to_teams(5, 2) == {1: 1, 2: 1, 3: 1, 4: 2, 5: 2}
    assert assign_days_to_teams(3, 1) == {1: 1, 2: 1, 3: 1}
    assert assign_days_to_teams(0, 3) == {}


def test_split_day_keeps_greedy_order_when_two_opt_breaks_hours():
    distances = [
        [0, 1, 1, 10],
        [1, 0, 10, 1],
        [1, 10, 0, 1],
        [10, 1, 1, 0],
    ]
    # Only home -> 1 -> 2 -> 3 -> home is fast; every other leg is slow.
    durations = [[0 if i == j else 1000 for j in range(4)] for i in range(4)]
    for origin, destination in [(0, 1), (1, 2), (2, 3), (3, 0)]:
        durations[origin][destination] = 10
    matrix = DistanceMatrix(distances=distances, durations=durations, source="test")
    stops = [RouteStop(f"F{i}", f"Facility {i}", HOME.latitude, HOME.longitude, 0, i) for i in range(1, 4)]
    constraints = OptimizationConstraints(use_facilities_constraint=False, max_hours_per_day=2.0)
    assert optimize_route_order(distances, [1, 2, 3]) != [1, 2, 3]

    route = _build_split_day(stops, [1, 2, 3], matrix, constraints, day=1)

    assert route.facility_ids == ["F1", "F2", "F3"]
    assert route.total_drive_time == 40
    assert route.total_time <= 120
