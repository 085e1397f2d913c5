"""Declarative marker popups and the single action dispatcher behind them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Literal, Mapping, Optional
from urllib.parse import urlencode

from ...models.domain import Facility
from ..compliance.inspections import CompletionStatus

logger = logging.getLogger(__name__)

GOOGLE_MAPS_URL = "https://maps.google.com/"
APPLE_MAPS_URL = "http://maps.apple.com/"


class ActionType(str, Enum):
    NAVIGATE = "navigate"
    SURVEY = "survey"
    REASSIGN_DAY = "reassign_day"
    REMOVE = "remove"


@dataclass(slots=True, frozen=True)
class PopupAction:
    action: ActionType
    facility_id: str
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PopupContent:
    facility_id: str
    title: str
    address: Optional[str]
    day: Optional[int]
    position: Optional[int]
    status: CompletionStatus
    day_options: list[int]
    actions: list[PopupAction]


def navigation_url(latitude: float, longitude: float, preference: Literal["google", "apple"] = "google") -> str:
    """External turn-by-turn link for a destination."""

    destination = f"{latitude},{longitude}"
    if preference == "apple":
        return APPLE_MAPS_URL + "?" + urlencode({"daddr": destination}, safe=",")
    return GOOGLE_MAPS_URL + "?" + urlencode({"q": destination}, safe=",")


def build_popup(
    facility: Facility,
    *,
    day: Optional[int],
    position: Optional[int],
    status: CompletionStatus,
    total_days: int,
    map_preference: Literal["google", "apple"] = "google",
) -> PopupContent:
    actions = [
        PopupAction(
            ActionType.NAVIGATE,
            facility.id,
            {"url": navigation_url(facility.latitude, facility.longitude, map_preference)},
        ),
        PopupAction(ActionType.SURVEY, facility.id),
    ]
    if not facility.is_removed:
        actions.append(PopupAction(ActionType.REMOVE, facility.id))
    return PopupContent(
        facility_id=facility.id,
        title=facility.name,
        address=facility.address,
        day=day,
        position=position,
        status=status,
        day_options=list(range(1, max(total_days, 1) + 1)),
        actions=actions,
    )


ActionHandler = Callable[[PopupAction], Any]


class ActionDispatcher:
    """Routes popup actions to the handler registered for their type."""

    def __init__(self) -> None:
        self._handlers: dict[ActionType, ActionHandler] = {}

    def register(self, action: ActionType | str, handler: ActionHandler) -> None:
        self._handlers[ActionType(action)] = handler

    def dispatch(self, action: PopupAction | Mapping[str, Any]) -> Any:
        if not isinstance(action, PopupAction):
            action = _action_from_mapping(action)
        handler = self._handlers.get(action.action)
        if handler is None:
            raise ValueError(f"No handler registered for popup action '{action.action.value}'")
        logger.debug("Dispatching %s for facility %s", action.action.value, action.facility_id)
        return handler(action)


def _action_from_mapping(data: Mapping[str, Any]) -> PopupAction:
    raw = data.get("action")
    try:
        action = ActionType(raw)
    except ValueError:
        raise ValueError(f"Unknown popup action '{raw}'") from None
    facility_id = data.get("facility_id")
    if not facility_id:
        raise ValueError("Popup action is missing facility_id")
    return PopupAction(action, str(facility_id), dict(data.get("payload") or {}))
