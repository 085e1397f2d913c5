"""Routing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...persistence.database import PersistenceError
from ...schemas.routing import (
    BulkReassignRequest,
    FacilityRequest,
    OptimizeRequest,
    PlanRequest,
    ReassignRequest,
    ReoptimizeRequest,
    RoutingResponse,
    SavePlanRequest,
    geometry_to_payload,
    plan_from_model,
    plan_to_model,
)
from ...services.routing import service
from ...services.routing.models import OptimizationResult

router = APIRouter(prefix="/routes", tags=["routes"])


def _http_error(exc: Exception, action: str) -> HTTPException:
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, PersistenceError):
        logging.error(f"Store unavailable while trying to {action}: {exc}")
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    logging.exception(f"Error trying to {action}: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}",
    )


def _response(
    account_id: str, result: OptimizationResult, include_geometry: bool = False, team_number: int | None = None
) -> RoutingResponse:
    response = RoutingResponse(account_id=account_id, plan=plan_to_model(result))
    if include_geometry:
        geometry, sources = geometry_to_payload(service.plan_geometry(account_id, result, team_number))
        response.geometry = geometry
        response.geometry_source = sources
    return response


@router.post("/optimize", response_model=RoutingResponse, status_code=status.HTTP_200_OK)
def optimize(payload: OptimizeRequest) -> RoutingResponse:
    try:
        result = service.generate_routes(payload.account_id, payload.team_number, persist=payload.persist)
        return _response(payload.account_id, result, payload.include_geometry, payload.team_number)
    except Exception as exc:
        raise _http_error(exc, "optimize routes") from exc


@router.post("/reoptimize-days", response_model=RoutingResponse, status_code=status.HTTP_200_OK)
def reoptimize(payload: ReoptimizeRequest) -> RoutingResponse:
    """Reorder stops within the stored day assignments."""
    try:
        result = service.reoptimize_existing_days(payload.account_id, payload.team_number)
        return _response(payload.account_id, result, payload.include_geometry, payload.team_number)
    except Exception as exc:
        raise _http_error(exc, "re-optimize days") from exc


@router.post("/refresh-times", response_model=RoutingResponse, status_code=status.HTTP_200_OK)
def refresh_times(payload: PlanRequest) -> RoutingResponse:
    """Recompute arrival and departure times only."""
    try:
        result = service.refresh_account_times(payload.account_id, plan_from_model(payload.plan), payload.start_time)
        return _response(payload.account_id, result)
    except Exception as exc:
        raise _http_error(exc, "refresh route times") from exc


@router.post("/add-day", response_model=RoutingResponse, status_code=status.HTTP_200_OK)
def add_day(payload: PlanRequest) -> RoutingResponse:
    try:
        result = service.add_day(payload.account_id, plan_from_model(payload.plan))
        return _response(payload.account_id, result)
    except Exception as exc:
        raise _http_error(exc, "add a day") from exc


@router.post("/plan-status", status_code=status.HTTP_200_OK)
def plan_status(payload: PlanRequest) -> dict:
    """Sunset warnings per day and compliance status per routed facility."""
    try:
        return service.plan_status(payload.account_id, plan_from_model(payload.plan))
    except Exception as exc:
        raise _http_error(exc, "load plan status") from exc


@router.post("/save-plan", status_code=status.HTTP_201_CREATED)
def save_plan(payload: SavePlanRequest) -> dict:
    try:
        plan_id = service.save_plan(
            payload.account_id, payload.name, plan_from_model(payload.plan), payload.plan.model_dump()
        )
    except Exception as exc:
        raise _http_error(exc, "save route plan") from exc
    return {"success": True, "plan_id": plan_id}


@router.post("/reassign", status_code=status.HTTP_200_OK)
def reassign(payload: ReassignRequest) -> dict:
    try:
        service.reassign_facility(payload.facility_id, payload.day)
    except Exception as exc:
        raise _http_error(exc, "reassign facility") from exc
    return {"success": True, "message": f"Facility {payload.facility_id} moved to day {payload.day}"}


@router.post("/bulk-reassign", status_code=status.HTTP_200_OK)
def bulk_reassign(payload: BulkReassignRequest) -> dict:
    try:
        updated = service.bulk_reassign(payload.facility_ids, payload.day)
    except Exception as exc:
        raise _http_error(exc, "reassign facilities") from exc
    return {"success": True, "updated": updated, "message": f"{updated} facilities moved to day {payload.day}"}


@router.post("/remove-facility", status_code=status.HTTP_200_OK)
def remove_facility(payload: FacilityRequest) -> dict:
    """Keep the facility on the map but out of every route."""
    try:
        service.remove_facility_from_route(payload.facility_id)
    except Exception as exc:
        raise _http_error(exc, "remove facility from route") from exc
    return {"success": True, "message": f"Facility {payload.facility_id} removed from route"}


@router.post("/exclude-facility", status_code=status.HTTP_200_OK)
def exclude_facility(payload: FacilityRequest) -> dict:
    try:
        service.exclude_facility(payload.facility_id)
    except Exception as exc:
        raise _http_error(exc, "exclude facility") from exc
    return {"success": True, "message": f"Facility {payload.facility_id} excluded from optimization"}


@router.post("/restore-facility", status_code=status.HTTP_200_OK)
def restore_facility(payload: FacilityRequest) -> dict:
    try:
        service.restore_facility(payload.facility_id)
    except Exception as exc:
        raise _http_error(exc, "restore facility") from exc
    return {"success": True, "message": f"Facility {payload.facility_id} restored"}
