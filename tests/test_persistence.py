import pytest

from inspectroute.models.domain import DAY_REMOVED, UserSettings
from inspectroute.persistence import database


class FakeResponse:
    def __init__(self, data):
        self.data = data
        self.count = len(data)


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.filters = []
        self.payload = None

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def in_(self, column, values):
        self.filters.append((column, list(values)))
        return self

    def order(self, *args, **kwargs):
        return self

    def limit(self, *args):
        return self

    def update(self, payload):
        self.payload = payload
        return self

    def insert(self, payload):
        self.payload = payload
        return self

    def execute(self):
        if self.client.fail:
            raise RuntimeError("connection reset")
        self.client.executed.append((self.table, self.payload, self.filters))
        return FakeResponse(self.client.rows.get(self.table, []))


class FakeSupabase:
    def __init__(self, rows=None, fail=False):
        self.rows = rows or {}
        self.fail = fail
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


def test_get_facilities_parses_rows_and_skips_malformed(monkeypatch):
    client = FakeSupabase(
        {
            "facilities": [
                {"id": 1, "name": "Well 1", "latitude": "32.1", "longitude": "-102.2", "day_assignment": 2, "first_prod_date": "2023-05-01T00:00:00"},
                {"id": 2, "name": "Broken", "latitude": None, "longitude": "-102.2"},
            ]
        }
    )
    monkeypatch.setattr(database, "get_supabase_client", lambda: client)

    facilities = database.get_facilities("acct")

    assert len(facilities) == 1
    facility = facilities[0]
    assert facility.id == "1"
    assert facility.latitude == 32.1
    assert facility.day_assignment == 2
    assert facility.first_prod_date.isoformat() == "2023-05-01"


def test_reads_degrade_when_not_configured(monkeypatch):
    monkeypatch.setattr(database, "get_supabase_client", lambda: None)

    assert database.get_facilities("acct") == []
    assert database.get_inspections("acct") == []
    assert database.get_home_base("acct") is None
    assert database.get_user_settings("acct") == UserSettings()


def test_facility_read_failure_raises_persistence_error(monkeypatch):
    monkeypatch.setattr(database, "get_supabase_client", lambda: FakeSupabase(fail=True))

    with pytest.raises(database.PersistenceError):
        database.get_facilities("acct")


def test_user_settings_ignore_unknown_columns(monkeypatch):
    client = FakeSupabase({"user_settings": [{"account_id": "acct", "max_facilities_per_day": 5, "start_time": "07:00", "theme": "dark"}]})
    monkeypatch.setattr(database, "get_supabase_client", lambda: client)

    settings = database.get_user_settings("acct")

    assert settings.max_facilities_per_day == 5
    assert settings.start_time == "07:00"


def test_update_day_assignment_sends_one_update(monkeypatch):
    client = FakeSupabase()
    monkeypatch.setattr(database, "get_supabase_client", lambda: client)

    count = database.update_day_assignment(["A", "B"], DAY_REMOVED)

    assert count == 2
    table, payload, filters = client.executed[0]
    assert table == "facilities"
    assert payload == {"day_assignment": DAY_REMOVED}
    assert filters == [("id", ["A", "B"])]


def test_update_day_assignment_errors(monkeypatch):
    monkeypatch.setattr(database, "get_supabase_client", lambda: None)
    with pytest.raises(database.PersistenceError):
        database.update_day_assignment(["A"], 1)
    with pytest.raises(ValueError):
        database.update_day_assignment(["A"], -5)

    monkeypatch.setattr(database, "get_supabase_client", lambda: FakeSupabase(fail=True))
    with pytest.raises(database.PersistenceError) as exc_info:
        database.update_day_assignment(["A"], 3, team=2)
    assert "Check your connection" in str(exc_info.value)


def test_save_route_plan_marks_last_viewed(monkeypatch):
    client = FakeSupabase({"route_plans": [{"id": "plan-1"}]})
    monkeypatch.setattr(database, "get_supabase_client", lambda: client)

    plan_id = database.save_route_plan("acct", "Week 1", {"total_days": 2, "total_miles": 40.5, "total_facilities": 9})

    assert plan_id == "plan-1"
    assert client.executed[0][1] == {"is_last_viewed": False}
    assert client.executed[1][1]["is_last_viewed"] is True
    assert client.executed[1][1]["total_days"] == 2
