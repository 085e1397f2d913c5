"""Multi-day route optimization over a precomputed distance matrix."""

from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Sequence

from ...models.domain import Location
from .clustering import DayClusterer
from .day_calculator import calculate_day_route, empty_day_route, recalculate_route_times
from .models import DayRoute, DistanceMatrix, OptimizationConstraints, OptimizationResult, RouteStop
from .sequencing import nearest_neighbor_route, optimize_route_order, order_day

HOME_INDEX = 0


def _exceeds(route: DayRoute, stop_count: int, constraints: OptimizationConstraints) -> bool:
    ceiling = constraints.facility_ceiling
    if ceiling is not None and stop_count > ceiling:
        return True
    minutes = constraints.minutes_ceiling
    return minutes is not None and route.total_time > minutes


def _build_day(
    stops: Sequence[RouteStop],
    order: Sequence[int],
    matrix: DistanceMatrix,
    constraints: OptimizationConstraints,
    day: int,
) -> DayRoute:
    by_index = {stop.index: stop for stop in stops}
    return calculate_day_route(
        [by_index[i] for i in order],
        matrix,
        start_time=constraints.start_time,
        day=day,
        home_index=HOME_INDEX,
    )


def _split_cluster(
    stops: Sequence[RouteStop],
    matrix: DistanceMatrix,
    constraints: OptimizationConstraints,
) -> list[list[int]]:
    """Greedily fill days along the nearest-neighbour tour of one cluster."""

    by_index = {stop.index: stop for stop in stops}
    remaining = nearest_neighbor_route(matrix.distances, list(by_index), HOME_INDEX)
    days: list[list[int]] = []
    while remaining:
        day = [remaining[0]]
        for candidate in remaining[1:]:
            trial = day + [candidate]
            route = calculate_day_route(
                [by_index[i] for i in trial], matrix, start_time=constraints.start_time, home_index=HOME_INDEX
            )
            if _exceeds(route, len(trial), constraints):
                break
            day.append(candidate)
        days.append(day)
        remaining = [i for i in remaining if i not in day]
    return days


def _build_split_day(
    stops: Sequence[RouteStop],
    day_indices: Sequence[int],
    matrix: DistanceMatrix,
    constraints: OptimizationConstraints,
    day: int,
) -> DayRoute:
    """2-opt a split day, keeping the greedy order when the shorter loop runs over the limits."""

    optimized = optimize_route_order(matrix.distances, day_indices, HOME_INDEX)
    route = _build_day(stops, optimized, matrix, constraints, day)
    if _exceeds(route, len(optimized), constraints):
        return _build_day(stops, day_indices, matrix, constraints, day)
    return route


def optimize_routes(
    stops: Sequence[RouteStop],
    matrix: DistanceMatrix,
    constraints: OptimizationConstraints,
    home: Location,
    *,
    default_visit_duration: int = 30,
) -> OptimizationResult:
    """Cluster stops into days, order each day and compute its schedule.

    ``stops`` must carry matrix indices >= 1; index 0 is the home base.
    """

    if not stops:
        return OptimizationResult(routes=[], metadata={"distance_source": matrix.source})

    clusterer = DayClusterer(
        constraints, home.as_tuple(), default_visit_duration=default_visit_duration
    )
    clusters = clusterer.cluster(stops)

    routes: list[DayRoute] = []
    for cluster in clusters:
        if not cluster.members:
            continue
        ordered = order_day(matrix.distances, [s.index for s in cluster.members], HOME_INDEX)
        candidate = _build_day(cluster.members, ordered, matrix, constraints, len(routes) + 1)
        if not _exceeds(candidate, len(ordered), constraints):
            routes.append(candidate)
            continue

        logging.info(f"Cluster of {len(ordered)} stops exceeds daily limits, splitting across days")
        for day_indices in _split_cluster(cluster.members, matrix, constraints):
            routes.append(_build_split_day(cluster.members, day_indices, matrix, constraints, len(routes) + 1))

    routed = {stop.facility_id for route in routes for stop in route.stops}
    missing = [stop for stop in stops if stop.facility_id not in routed]
    if missing:
        logging.warning(f"Found {len(missing)} unrouted facilities after clustering, adding them now")
        for day_indices in _split_cluster(missing, matrix, constraints):
            routes.append(_build_split_day(missing, day_indices, matrix, constraints, len(routes) + 1))

    return OptimizationResult(routes=routes, metadata={"distance_source": matrix.source})


def reoptimize_days(
    days: Mapping[int, Sequence[RouteStop]],
    matrix: DistanceMatrix,
    constraints: OptimizationConstraints,
) -> OptimizationResult:
    """Keep existing day assignments; reorder and reschedule each day."""

    routes: list[DayRoute] = []
    for day in sorted(days):
        stops = days[day]
        if not stops:
            routes.append(empty_day_route(day, constraints.start_time))
            continue
        ordered = order_day(matrix.distances, [s.index for s in stops], HOME_INDEX)
        routes.append(_build_day(stops, ordered, matrix, constraints, day))
    return OptimizationResult(routes=routes, metadata={"distance_source": matrix.source, "mode": "reoptimize"})


def refresh_route_times(
    result: OptimizationResult,
    *,
    start_time: Optional[str] = None,
    visit_durations: Optional[Mapping[str, int]] = None,
) -> OptimizationResult:
    """Replay every day's schedule without touching assignment, order or distances."""

    routes = [
        recalculate_route_times(route, start_time=start_time, visit_durations=visit_durations)
        for route in result.routes
    ]
    return OptimizationResult(routes=routes, metadata={**result.metadata, "mode": "refresh_times"})


def add_empty_day(result: OptimizationResult, start_time: str) -> OptimizationResult:
    next_day = max((route.day for route in result.routes), default=0) + 1
    routes = [*result.routes, empty_day_route(next_day, start_time)]
    return OptimizationResult(routes=routes, metadata=dict(result.metadata))


def assign_days_to_teams(total_days: int, team_count: int) -> dict[int, int]:
    """Give each team a contiguous block of days."""

    if total_days <= 0:
        return {}
    teams = max(1, team_count)
    per_team = math.ceil(total_days / teams)
    return {day: min(teams, (day - 1) // per_team + 1) for day in range(1, total_days + 1)}
