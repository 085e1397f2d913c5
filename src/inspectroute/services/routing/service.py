"""Route planning orchestration between the store, distance provider and optimizer."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from ...models.domain import DAY_EXCLUDED, DAY_REMOVED, Facility, HomeBase, Inspection, Location, UserSettings
from ...persistence.database import (
    get_facilities,
    get_home_base,
    get_inspections,
    get_user_settings,
    save_route_plan,
    update_day_assignment,
)
from ..compliance.inspections import CompletionStatus, completion_status, is_inspection_valid, latest_inspections
from ..compliance.spcc import spcc_plan_status
from .distance import DistanceProvider, HaversineDistanceProvider, build_distance_matrix, build_distance_provider
from .models import OptimizationConstraints, OptimizationResult, RouteGeometry, RouteStop
from .optimizer import add_empty_day, assign_days_to_teams, optimize_routes, refresh_route_times, reoptimize_days
from .sunset import day_sunset_status


def _require_home_base(account_id: str, team_number: int | None) -> HomeBase:
    home = get_home_base(account_id, team_number)
    if home is None:
        raise ValueError(f"No home base configured for account '{account_id}' (team={team_number})")
    if not home.location.is_valid():
        raise ValueError(f"Home base '{home.id}' has invalid coordinates ({home.latitude}, {home.longitude})")
    return home


def build_route_stops(
    home: Location, facilities: Sequence[Facility], default_visit_duration: int = 30
) -> tuple[list[Location], list[RouteStop]]:
    """Return the matrix location list (home first) and stops indexed into it.

    Facilities with invalid coordinates are skipped so they never reach the
    distance provider or the optimizer.
    """

    locations = [home]
    stops: list[RouteStop] = []
    for facility in facilities:
        if not facility.location.is_valid():
            logging.warning(
                f"Skipping facility {facility.id} with invalid coordinates ({facility.latitude}, {facility.longitude})"
            )
            continue
        stops.append(
            RouteStop(
                facility_id=facility.id,
                name=facility.name,
                latitude=facility.latitude,
                longitude=facility.longitude,
                visit_duration=facility.visit_duration_minutes or default_visit_duration,
                index=len(locations),
            )
        )
        locations.append(facility.location)
    return locations, stops


def select_facilities_for_optimization(
    facilities: Iterable[Facility],
    user_settings: UserSettings,
    inspections_by_facility: Mapping[str, Inspection],
    now: Optional[datetime] = None,
) -> list[Facility]:
    """Active facilities, minus completed ones when the account excludes them."""

    selected: list[Facility] = []
    for facility in facilities:
        if not facility.is_active:
            continue
        status = completion_status(facility, inspections_by_facility.get(facility.id), now)
        if status is CompletionStatus.EXTERNAL and user_settings.exclude_externally_completed:
            continue
        if status in (CompletionStatus.INSPECTED, CompletionStatus.INTERNAL) and user_settings.exclude_completed_facilities:
            continue
        selected.append(facility)
    return selected


def persist_day_assignments(result: OptimizationResult, team_count: int = 1) -> None:
    """Write each routed facility's day and team back to the store."""

    teams = assign_days_to_teams(result.total_days, team_count)
    for route in result.routes:
        if route.stops:
            update_day_assignment(route.facility_ids, route.day, teams.get(route.day))


def generate_routes(
    account_id: str,
    team_number: int | None = None,
    *,
    provider: DistanceProvider | None = None,
    persist: bool = True,
    now: Optional[datetime] = None,
) -> OptimizationResult:
    """Full optimization: cluster all eligible facilities into days."""

    home = _require_home_base(account_id, team_number)
    user_settings = get_user_settings(account_id)
    facilities = get_facilities(account_id)
    inspections = latest_inspections(get_inspections(account_id))

    eligible = select_facilities_for_optimization(facilities, user_settings, inspections, now)
    locations, stops = build_route_stops(home.location, eligible, user_settings.default_visit_duration_minutes)
    logging.info(f"Optimizing {len(stops)} of {len(facilities)} facilities for account {account_id}")

    matrix = build_distance_matrix(locations, provider or build_distance_provider())
    result = optimize_routes(
        stops,
        matrix,
        OptimizationConstraints.from_settings(user_settings),
        home.location,
        default_visit_duration=user_settings.default_visit_duration_minutes,
    )
    if persist:
        persist_day_assignments(result, user_settings.team_count)
    return result


def reoptimize_existing_days(
    account_id: str,
    team_number: int | None = None,
    *,
    provider: DistanceProvider | None = None,
    now: Optional[datetime] = None,
) -> OptimizationResult:
    """Reorder stops within their stored days.

    Facilities with a valid completed inspection are left out of the routes but
    keep their stored day assignment.
    """

    home = _require_home_base(account_id, team_number)
    user_settings = get_user_settings(account_id)
    inspections = latest_inspections(get_inspections(account_id))

    by_day: dict[int, list[Facility]] = defaultdict(list)
    skipped = 0
    for facility in get_facilities(account_id):
        day = facility.day_assignment
        if day is None or day < 1:
            continue
        if team_number is not None and facility.team_assignment not in (None, team_number):
            continue
        if is_inspection_valid(inspections.get(facility.id), now):
            skipped += 1
            continue
        by_day[day].append(facility)
    if skipped:
        logging.info(f"Leaving {skipped} inspected facilities out of re-optimized routes")

    ordered_facilities = [facility for day in sorted(by_day) for facility in by_day[day]]
    locations, stops = build_route_stops(home.location, ordered_facilities, user_settings.default_visit_duration_minutes)
    day_of = {facility.id: facility.day_assignment for facility in ordered_facilities}
    stops_by_day: dict[int, list[RouteStop]] = defaultdict(list)
    for stop in stops:
        stops_by_day[day_of[stop.facility_id]].append(stop)

    matrix = build_distance_matrix(locations, provider or build_distance_provider())
    return reoptimize_days(stops_by_day, matrix, OptimizationConstraints.from_settings(user_settings))


def refresh_times(
    result: OptimizationResult,
    user_settings: UserSettings,
    facilities: Iterable[Facility] = (),
    start_time: Optional[str] = None,
) -> OptimizationResult:
    """Recompute timestamps only, picking up new start time and visit durations."""

    durations = {facility.id: facility.visit_duration_minutes for facility in facilities}
    return refresh_route_times(result, start_time=start_time or user_settings.start_time, visit_durations=durations)


def reassign_facility(facility_id: str, day: int) -> None:
    if day < 1:
        raise ValueError("Day must be 1 or greater")
    update_day_assignment([facility_id], day)


def bulk_reassign(facility_ids: Sequence[str], day: int) -> int:
    if day < 1:
        raise ValueError("Day must be 1 or greater")
    if not facility_ids:
        raise ValueError("No facilities selected")
    return update_day_assignment(facility_ids, day)


def remove_facility_from_route(facility_id: str) -> None:
    update_day_assignment([facility_id], DAY_REMOVED)


def exclude_facility(facility_id: str) -> None:
    update_day_assignment([facility_id], DAY_EXCLUDED)


def restore_facility(facility_id: str) -> None:
    update_day_assignment([facility_id], None)


def load_route_geometry(
    result: OptimizationResult,
    home: Location,
    provider: DistanceProvider | None = None,
) -> dict[int, RouteGeometry]:
    """Road geometry per day, falling back to straight lines between stops."""

    provider = provider or build_distance_provider()
    straight = HaversineDistanceProvider()
    geometries: dict[int, RouteGeometry] = {}
    for route in result.routes:
        if not route.stops:
            continue
        waypoints = [home, *(stop.location for stop in route.stops), home]
        geometry = provider.get_route_geometry(waypoints)
        if geometry is None:
            geometry = straight.get_route_geometry(waypoints)
        geometries[route.day] = geometry
    return geometries


def refresh_account_times(account_id: str, result: OptimizationResult, start_time: Optional[str] = None) -> OptimizationResult:
    """``refresh_times`` with the account's stored settings and visit durations."""

    return refresh_times(result, get_user_settings(account_id), get_facilities(account_id), start_time)


def add_day(account_id: str, result: OptimizationResult) -> OptimizationResult:
    return add_empty_day(result, get_user_settings(account_id).start_time)


def plan_geometry(
    account_id: str,
    result: OptimizationResult,
    team_number: int | None = None,
    provider: DistanceProvider | None = None,
) -> dict[int, RouteGeometry]:
    home = _require_home_base(account_id, team_number)
    return load_route_geometry(result, home.location, provider)


def plan_status(
    account_id: str,
    result: OptimizationResult,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Sunset status per day plus completion and SPCC status per routed facility."""

    user_settings = get_user_settings(account_id)
    facilities = {facility.id: facility for facility in get_facilities(account_id)}
    inspections = latest_inspections(get_inspections(account_id))
    today: date = (now or datetime.now()).date()

    days = [
        {
            "day": route.day,
            "end_time": route.last_departure_time,
            "sunset_status": day_sunset_status(route, user_settings.sunset_offset_minutes, today),
        }
        for route in result.routes
    ]
    statuses = []
    for route in result.routes:
        for stop in route.stops:
            facility = facilities.get(stop.facility_id)
            if facility is None:
                logging.warning(f"Facility {stop.facility_id} in plan no longer exists")
                continue
            spcc = spcc_plan_status(facility, today)
            statuses.append(
                {
                    "facility_id": facility.id,
                    "day": route.day,
                    "completion_status": completion_status(facility, inspections.get(facility.id), now).value,
                    "spcc_status": spcc.status.value,
                    "spcc_message": spcc.message,
                    "spcc_urgent": spcc.is_urgent,
                }
            )
    return {"days": days, "facilities": statuses}


def save_plan(account_id: str, name: str, result: OptimizationResult, plan_data: Mapping[str, Any]) -> str:
    """Store a named snapshot of the plan together with the settings it was built with."""

    if not name.strip():
        raise ValueError("Plan name must not be empty")
    user_settings = get_user_settings(account_id)
    data = {
        **plan_data,
        "total_days": result.total_days,
        "total_miles": round(result.total_miles, 2),
        "total_facilities": result.total_facilities,
    }
    return save_route_plan(account_id, name.strip(), data, settings_data=asdict(user_settings))
