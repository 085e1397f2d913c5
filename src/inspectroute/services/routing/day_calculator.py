"""Day route calculator: timestamps, legs and totals for one ordered day."""

from __future__ import annotations

import re
from typing import Mapping, Optional, Sequence

from .models import HOME_BASE_NAME, DayRoute, DistanceMatrix, RouteSegment, RouteStop

MINUTES_PER_DAY = 24 * 60
_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_clock(value: str) -> int:
    """Return minutes since midnight for an ``HH:MM`` string."""

    match = _CLOCK_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return hours * 60 + minutes


def format_clock(total_minutes: float) -> str:
    minutes = int(round(total_minutes)) % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes_to_time(time: str, minutes: float) -> str:
    """Advance an ``HH:MM`` clock, rolling over midnight."""

    return format_clock(parse_clock(time) + minutes)


def _leg_cost(matrix: DistanceMatrix, origin: int, destination: int) -> tuple[float, float]:
    distance = matrix.distances[origin][destination]
    duration = matrix.durations[origin][destination]
    if distance is None or duration is None:
        raise ValueError(f"Distance matrix has no value for leg {origin} -> {destination}")
    if distance < 0 or duration < 0:
        raise ValueError(f"Negative travel cost for leg {origin} -> {destination}")
    return float(distance), float(duration)


def empty_day_route(day: int, start_time: str) -> DayRoute:
    parse_clock(start_time)
    return DayRoute(
        day=day,
        stops=[],
        segments=[],
        total_miles=0.0,
        total_drive_time=0.0,
        total_visit_time=0.0,
        start_time=start_time,
        end_time=start_time,
        last_departure_time=start_time,
    )


def calculate_day_route(
    stops: Sequence[RouteStop],
    matrix: DistanceMatrix,
    *,
    start_time: str,
    day: int = 1,
    home_index: int = 0,
) -> DayRoute:
    """Walk ``[home, *stops, home]`` and materialize every leg.

    The running clock is kept in absolute minutes so that rounding happens once
    per printed timestamp and midnight rollover never produces a negative span.
    """

    if not stops:
        return empty_day_route(day, start_time)

    clock = parse_clock(start_time)
    segments: list[RouteSegment] = []
    total_miles = 0.0
    total_drive = 0.0
    total_visit = 0.0

    previous_index = home_index
    previous_id: Optional[str] = None
    previous_name = HOME_BASE_NAME
    for stop in stops:
        distance, duration = _leg_cost(matrix, previous_index, stop.index)
        clock += duration
        arrival = clock
        clock += stop.visit_duration
        segments.append(
            RouteSegment(
                from_id=previous_id,
                from_name=previous_name,
                to_id=stop.facility_id,
                to_name=stop.name,
                distance_miles=distance,
                duration_minutes=duration,
                arrival_time=format_clock(arrival),
                departure_time=format_clock(clock),
            )
        )
        total_miles += distance
        total_drive += duration
        total_visit += stop.visit_duration
        previous_index, previous_id, previous_name = stop.index, stop.facility_id, stop.name

    last_departure = format_clock(clock)
    distance, duration = _leg_cost(matrix, previous_index, home_index)
    clock += duration
    segments.append(
        RouteSegment(
            from_id=previous_id,
            from_name=previous_name,
            to_id=None,
            to_name=HOME_BASE_NAME,
            distance_miles=distance,
            duration_minutes=duration,
            arrival_time=format_clock(clock),
            departure_time=format_clock(clock),
        )
    )
    total_miles += distance
    total_drive += duration

    return DayRoute(
        day=day,
        stops=list(stops),
        segments=segments,
        total_miles=total_miles,
        total_drive_time=total_drive,
        total_visit_time=total_visit,
        start_time=start_time,
        end_time=format_clock(clock),
        last_departure_time=last_departure,
    )


def recalculate_route_times(
    route: DayRoute,
    *,
    start_time: Optional[str] = None,
    visit_durations: Optional[Mapping[str, int]] = None,
) -> DayRoute:
    """Replay a day with a new start time and/or visit durations.

    Stop order and leg distances/durations are kept as computed; no distance
    lookup happens here.
    """

    start = start_time or route.start_time
    durations = visit_durations or {}
    if not route.stops:
        return empty_day_route(route.day, start)

    stops = [
        RouteStop(
            facility_id=stop.facility_id,
            name=stop.name,
            latitude=stop.latitude,
            longitude=stop.longitude,
            visit_duration=int(durations.get(stop.facility_id, stop.visit_duration)),
            index=stop.index,
        )
        for stop in route.stops
    ]
    visit_by_id = {stop.facility_id: stop.visit_duration for stop in stops}

    clock = parse_clock(start)
    segments: list[RouteSegment] = []
    total_visit = 0.0
    last_departure = clock
    for segment in route.segments:
        clock += segment.duration_minutes
        arrival = clock
        if segment.to_id is not None:
            visit = visit_by_id.get(segment.to_id, 0)
            clock += visit
            total_visit += visit
            last_departure = clock
        segments.append(
            RouteSegment(
                from_id=segment.from_id,
                from_name=segment.from_name,
                to_id=segment.to_id,
                to_name=segment.to_name,
                distance_miles=segment.distance_miles,
                duration_minutes=segment.duration_minutes,
                arrival_time=format_clock(arrival),
                departure_time=format_clock(clock),
            )
        )

    return DayRoute(
        day=route.day,
        stops=stops,
        segments=segments,
        total_miles=sum(segment.distance_miles for segment in segments),
        total_drive_time=sum(segment.duration_minutes for segment in segments),
        total_visit_time=total_visit,
        start_time=start,
        end_time=format_clock(clock),
        last_departure_time=format_clock(last_departure),
    )
