"""Persistent store operations backed by Supabase tables."""

from __future__ import annotations

import logging
from dataclasses import fields
from datetime import date, datetime
from typing import Any, Iterable, Optional

from ..db.supabase import get_supabase_client
from ..models.domain import DAY_EXCLUDED, DAY_REMOVED, Facility, HomeBase, Inspection, UserSettings

FACILITIES_TABLE = "facilities"
HOME_BASE_TABLE = "home_base"
INSPECTIONS_TABLE = "inspections"
SETTINGS_TABLE = "user_settings"
ROUTE_PLANS_TABLE = "route_plans"

NOT_CONFIGURED_MESSAGE = (
    "Database not configured. Set INSPECTROUTE_SUPABASE_URL and INSPECTROUTE_SUPABASE_KEY."
)


class PersistenceError(RuntimeError):
    """A store read or write failed; the message is safe to show to the user."""


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _facility_from_row(row: dict[str, Any]) -> Facility:
    return Facility(
        id=str(row["id"]),
        name=row.get("name") or "",
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        visit_duration_minutes=int(row.get("visit_duration_minutes") or 30),
        day_assignment=row.get("day_assignment"),
        team_assignment=row.get("team_assignment"),
        address=row.get("address"),
        spcc_completion_type=row.get("spcc_completion_type"),
        spcc_completed_date=_parse_date(row.get("spcc_completed_date")),
        first_prod_date=_parse_date(row.get("first_prod_date")),
        spcc_pe_stamp_date=_parse_date(row.get("spcc_pe_stamp_date")),
        spcc_plan_url=row.get("spcc_plan_url"),
    )


def _home_base_from_row(row: dict[str, Any]) -> HomeBase:
    return HomeBase(
        id=str(row["id"]),
        address=row.get("address") or "",
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        team_number=int(row.get("team_number") or 1),
        team_label=row.get("team_label"),
    )


def _settings_from_row(row: dict[str, Any]) -> UserSettings:
    known = {field.name for field in fields(UserSettings)}
    values = {key: value for key, value in row.items() if key in known and value is not None}
    return UserSettings(**values)


def get_facilities(account_id: str) -> list[Facility]:
    """Return every facility of an account, skipping rows that cannot be parsed."""
    supabase = get_supabase_client()
    if not supabase:
        logging.warning(NOT_CONFIGURED_MESSAGE)
        return []

    try:
        response = supabase.table(FACILITIES_TABLE).select("*").eq("account_id", account_id).order("name").execute()
    except Exception as e:
        logging.error(f"Failed to load facilities for account {account_id}: {e}")
        raise PersistenceError("Could not load facilities. Check your connection and try again.") from e
    facilities: list[Facility] = []
    for row in response.data or []:
        try:
            facilities.append(_facility_from_row(row))
        except (KeyError, TypeError, ValueError) as e:
            logging.warning(f"Skipping malformed facility row {row.get('id')}: {e}")
    logging.info(f"Retrieved {len(facilities)} facilities for account {account_id}")
    return facilities


def get_home_base(account_id: str, team_number: int | None = None) -> HomeBase | None:
    supabase = get_supabase_client()
    if not supabase:
        logging.warning(NOT_CONFIGURED_MESSAGE)
        return None

    query = supabase.table(HOME_BASE_TABLE).select("*").eq("account_id", account_id)
    if team_number is not None:
        query = query.eq("team_number", team_number)
    try:
        response = query.order("team_number").limit(1).execute()
    except Exception as e:
        logging.error(f"Failed to load home base for account {account_id}: {e}")
        raise PersistenceError("Could not load the home base. Check your connection and try again.") from e
    rows = response.data or []
    return _home_base_from_row(rows[0]) if rows else None


def get_inspections(account_id: str) -> list[Inspection]:
    supabase = get_supabase_client()
    if not supabase:
        logging.warning(NOT_CONFIGURED_MESSAGE)
        return []

    try:
        response = (
            supabase.table(INSPECTIONS_TABLE)
            .select("id, facility_id, conducted_at, status")
            .eq("account_id", account_id)
            .order("conducted_at", desc=True)
            .execute()
        )
    except Exception as e:
        logging.warning(f"Failed to retrieve inspections for account {account_id}: {e}")
        return []
    return [
        Inspection(
            id=str(row["id"]),
            facility_id=str(row["facility_id"]),
            conducted_at=_parse_datetime(row["conducted_at"]),
            status=row.get("status") or "",
        )
        for row in response.data or []
    ]


def get_user_settings(account_id: str) -> UserSettings:
    """Return stored settings, or defaults when none exist."""
    supabase = get_supabase_client()
    if not supabase:
        logging.warning(NOT_CONFIGURED_MESSAGE)
        return UserSettings()

    try:
        response = supabase.table(SETTINGS_TABLE).select("*").eq("account_id", account_id).limit(1).execute()
    except Exception as e:
        logging.warning(f"Failed to retrieve settings for account {account_id}, using defaults: {e}")
        return UserSettings()
    rows = response.data or []
    return _settings_from_row(rows[0]) if rows else UserSettings()


def update_day_assignment(facility_ids: Iterable[str], day: int | None, team: int | None = None) -> int:
    """Set ``day_assignment`` (and optionally ``team_assignment``) for facilities.

    Raises:
        PersistenceError: when the store is not configured or the update fails.
    """
    ids = [str(fid) for fid in facility_ids]
    if not ids:
        return 0
    if day is not None and day < 1 and day not in (DAY_EXCLUDED, DAY_REMOVED):
        raise ValueError(f"Invalid day assignment {day}")

    supabase = get_supabase_client()
    if not supabase:
        logging.error(NOT_CONFIGURED_MESSAGE)
        raise PersistenceError(NOT_CONFIGURED_MESSAGE)

    payload: dict[str, Any] = {"day_assignment": day}
    if team is not None:
        payload["team_assignment"] = team
    try:
        supabase.table(FACILITIES_TABLE).update(payload).in_("id", ids).execute()
    except Exception as e:
        logging.error(f"Failed to update day assignment for {len(ids)} facilities: {e}")
        raise PersistenceError(
            f"Could not save the day change for {len(ids)} facilities. Check your connection and try again."
        ) from e
    logging.info(f"Updated day_assignment={day} for {len(ids)} facilities")
    return len(ids)


def save_route_plan(account_id: str, name: str, plan_data: dict[str, Any], *, settings_data: dict | None = None) -> str:
    """Store a named route snapshot and mark it as the last viewed plan."""
    supabase = get_supabase_client()
    if not supabase:
        logging.error(NOT_CONFIGURED_MESSAGE)
        raise PersistenceError(NOT_CONFIGURED_MESSAGE)

    try:
        supabase.table(ROUTE_PLANS_TABLE).update({"is_last_viewed": False}).eq("account_id", account_id).eq(
            "is_last_viewed", True
        ).execute()
        response = (
            supabase.table(ROUTE_PLANS_TABLE)
            .insert(
                {
                    "account_id": account_id,
                    "name": name,
                    "plan_data": plan_data,
                    "total_days": plan_data.get("total_days"),
                    "total_miles": plan_data.get("total_miles"),
                    "total_facilities": plan_data.get("total_facilities"),
                    "settings": settings_data,
                    "is_last_viewed": True,
                }
            )
            .execute()
        )
    except Exception as e:
        logging.error(f"Failed to save route plan '{name}': {e}")
        raise PersistenceError(f"Could not save route plan '{name}'. Try again.") from e
    rows = response.data or []
    return str(rows[0]["id"]) if rows else ""
