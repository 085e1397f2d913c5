"""Routing request/response schemas."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ..services.routing.models import DayRoute, OptimizationResult, RouteGeometry, RouteSegment, RouteStop


class RouteStopModel(BaseModel):
    facility_id: str
    name: str
    latitude: float
    longitude: float
    visit_duration: int = Field(..., ge=0)
    index: int = Field(..., ge=1, description="Row of the facility in the distance matrix; 0 is the home base.")


class RouteSegmentModel(BaseModel):
    from_id: Optional[str] = Field(default=None, description="None when the leg starts at the home base.")
    from_name: str
    to_id: Optional[str] = Field(default=None, description="None when the leg ends at the home base.")
    to_name: str
    distance_miles: float = Field(..., ge=0)
    duration_minutes: float = Field(..., ge=0)
    arrival_time: str
    departure_time: str


class DayRouteModel(BaseModel):
    day: int = Field(..., ge=1)
    stops: List[RouteStopModel]
    segments: List[RouteSegmentModel]
    total_miles: float
    total_drive_time: float
    total_visit_time: float
    total_time: float = 0.0
    start_time: str
    end_time: str
    last_departure_time: str


class RoutePlanModel(BaseModel):
    routes: List[DayRouteModel]
    metadata: dict = Field(default_factory=dict)
    total_days: int = 0
    total_facilities: int = 0
    total_miles: float = 0.0
    total_drive_time: float = 0.0
    total_visit_time: float = 0.0
    total_time: float = 0.0


class OptimizeRequest(BaseModel):
    account_id: str
    team_number: Optional[int] = Field(default=None, ge=1)
    persist: bool = True
    include_geometry: bool = False


class ReoptimizeRequest(BaseModel):
    account_id: str
    team_number: Optional[int] = Field(default=None, ge=1)
    include_geometry: bool = False


class PlanRequest(BaseModel):
    account_id: str
    plan: RoutePlanModel
    start_time: Optional[str] = Field(default=None, description="HH:MM; defaults to the account's start time.")


class SavePlanRequest(BaseModel):
    account_id: str
    name: str = Field(..., min_length=1, max_length=120)
    plan: RoutePlanModel


class ReassignRequest(BaseModel):
    facility_id: str
    day: int = Field(..., ge=1)


class BulkReassignRequest(BaseModel):
    facility_ids: List[str] = Field(..., min_length=1)
    day: int = Field(..., ge=1)


class FacilityRequest(BaseModel):
    facility_id: str


class RoutingResponse(BaseModel):
    account_id: str
    plan: RoutePlanModel
    geometry: Optional[Dict[int, List[List[float]]]] = None
    geometry_source: Optional[Dict[int, Literal["osrm", "straight"]]] = None


def plan_to_model(result: OptimizationResult) -> RoutePlanModel:
    return RoutePlanModel(
        routes=[
            DayRouteModel(
                day=route.day,
                stops=[RouteStopModel(**_stop_fields(stop)) for stop in route.stops],
                segments=[RouteSegmentModel(**_segment_fields(segment)) for segment in route.segments],
                total_miles=route.total_miles,
                total_drive_time=route.total_drive_time,
                total_visit_time=route.total_visit_time,
                total_time=route.total_time,
                start_time=route.start_time,
                end_time=route.end_time,
                last_departure_time=route.last_departure_time,
            )
            for route in result.routes
        ],
        metadata=dict(result.metadata),
        total_days=result.total_days,
        total_facilities=result.total_facilities,
        total_miles=result.total_miles,
        total_drive_time=result.total_drive_time,
        total_visit_time=result.total_visit_time,
        total_time=result.total_time,
    )


def plan_from_model(model: RoutePlanModel) -> OptimizationResult:
    """Rebuild the domain plan; plan totals are always derived from the days."""

    routes = [
        DayRoute(
            day=route.day,
            stops=[RouteStop(**stop.model_dump()) for stop in route.stops],
            segments=[RouteSegment(**segment.model_dump()) for segment in route.segments],
            total_miles=route.total_miles,
            total_drive_time=route.total_drive_time,
            total_visit_time=route.total_visit_time,
            start_time=route.start_time,
            end_time=route.end_time,
            last_departure_time=route.last_departure_time,
        )
        for route in model.routes
    ]
    return OptimizationResult(routes=routes, metadata=dict(model.metadata))


def geometry_to_payload(
    geometries: Dict[int, RouteGeometry],
) -> tuple[Dict[int, List[List[float]]], Dict[int, str]]:
    coordinates = {day: [[lat, lon] for lat, lon in geometry.coordinates] for day, geometry in geometries.items()}
    sources = {day: geometry.source for day, geometry in geometries.items()}
    return coordinates, sources


def _stop_fields(stop: RouteStop) -> dict:
    return {
        "facility_id": stop.facility_id,
        "name": stop.name,
        "latitude": stop.latitude,
        "longitude": stop.longitude,
        "visit_duration": stop.visit_duration,
        "index": stop.index,
    }


def _segment_fields(segment: RouteSegment) -> dict:
    return {
        "from_id": segment.from_id,
        "from_name": segment.from_name,
        "to_id": segment.to_id,
        "to_name": segment.to_name,
        "distance_miles": segment.distance_miles,
        "duration_minutes": segment.duration_minutes,
        "arrival_time": segment.arrival_time,
        "departure_time": segment.departure_time,
    }
