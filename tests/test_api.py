import pytest
from fastapi.testclient import TestClient

from inspectroute.main import create_app
from inspectroute.persistence.database import PersistenceError
from inspectroute.schemas.routing import plan_to_model
from inspectroute.services.routing import service as routing_service
from inspectroute.services.routing.day_calculator import calculate_day_route
from inspectroute.services.routing.models import DistanceMatrix, OptimizationResult, RouteStop


def _result() -> OptimizationResult:
    stops = [
        RouteStop("F1", "Tank Battery 1", 32.01, -102.0, 30, 1),
        RouteStop("F2", "Tank Battery 2", 32.02, -102.0, 45, 2),
    ]
    matrix = DistanceMatrix(
        distances=[[0, 5, 8], [5, 0, 3], [8, 3, 0]],
        durations=[[0, 10, 16], [10, 0, 6], [16, 6, 0]],
    )
    return OptimizationResult(routes=[calculate_day_route(stops, matrix, start_time="08:00")])


@pytest.fixture
def api_client() -> TestClient:
    return TestClient(create_app())


def test_health(api_client: TestClient):
    response = api_client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_optimize_returns_plan(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    calls = {}

    def fake_generate(account_id, team_number=None, persist=True):
        calls.update(account_id=account_id, team_number=team_number, persist=persist)
        return _result()

    monkeypatch.setattr(routing_service, "generate_routes", fake_generate)

    response = api_client.post("/api/routes/optimize", json={"account_id": "acct-1", "persist": False})

    assert response.status_code == 200
    payload = response.json()
    assert calls == {"account_id": "acct-1", "team_number": None, "persist": False}
    assert payload["plan"]["total_days"] == 1
    assert [stop["facility_id"] for stop in payload["plan"]["routes"][0]["stops"]] == ["F1", "F2"]
    assert payload["geometry"] is None


def test_optimize_maps_errors_to_status_codes(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    def no_home(*args, **kwargs):
        raise ValueError("No home base configured for this account")

    monkeypatch.setattr(routing_service, "generate_routes", no_home)
    response = api_client.post("/api/routes/optimize", json={"account_id": "acct-1"})
    assert response.status_code == 400
    assert "home base" in response.json()["detail"]

    def store_down(*args, **kwargs):
        raise PersistenceError("Facility store unavailable")

    monkeypatch.setattr(routing_service, "generate_routes", store_down)
    response = api_client.post("/api/routes/optimize", json={"account_id": "acct-1"})
    assert response.status_code == 503


def test_bulk_reassign_validates_payload(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(routing_service, "bulk_reassign", lambda ids, day: len(ids))

    assert api_client.post("/api/routes/bulk-reassign", json={"facility_ids": [], "day": 2}).status_code == 422
    assert api_client.post("/api/routes/bulk-reassign", json={"facility_ids": ["F1"], "day": 0}).status_code == 422

    response = api_client.post("/api/routes/bulk-reassign", json={"facility_ids": ["F1", "F2"], "day": 2})
    assert response.status_code == 200
    assert response.json()["updated"] == 2


def test_save_plan_created(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    saved = {}

    def fake_save(account_id, name, result, plan_data):
        saved.update(account_id=account_id, name=name, days=result.total_days, plan_data=plan_data)
        return "plan-1"

    monkeypatch.setattr(routing_service, "save_plan", fake_save)
    plan = plan_to_model(_result()).model_dump()

    response = api_client.post("/api/routes/save-plan", json={"account_id": "acct-1", "name": "Week 12", "plan": plan})

    assert response.status_code == 201
    assert response.json() == {"success": True, "plan_id": "plan-1"}
    assert saved["name"] == "Week 12"
    assert saved["days"] == 1
    assert saved["plan_data"]["routes"][0]["day"] == 1


def test_dependency_health_checks(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from inspectroute.db import supabase as supabase_module
    from inspectroute.services.routing import osrm_client

    monkeypatch.setattr(osrm_client, "check_health", lambda: False)
    monkeypatch.setattr(supabase_module, "get_supabase_client", lambda: None)

    osrm = api_client.get("/api/health/osrm").json()
    database = api_client.get("/api/health/database").json()

    assert osrm["service"] == "osrm"
    assert osrm["healthy"] is False
    assert database["configured"] is False
