"""Map rendering and live navigation controller."""

from .geolocation import GeolocationError, GeolocationErrorKind, GeolocationSource, PositionFix
from .guidance import NearbyFacility, find_nearby_facilities, next_facility
from .popups import ActionDispatcher, ActionType, PopupAction, PopupContent, navigation_url
from .session import MapSession, SessionCallbacks
from .state import SessionState, TrackingEvent, TrackingMode, next_state
from .surface import LineStyle, MapSurface, MarkerStyle, PolygonStyle
from .viewport import Viewport
from .zoom import convert_speed, zoom_for_speed

__all__ = [
    "ActionDispatcher",
    "ActionType",
    "GeolocationError",
    "GeolocationErrorKind",
    "GeolocationSource",
    "LineStyle",
    "MapSession",
    "MapSurface",
    "MarkerStyle",
    "NearbyFacility",
    "PolygonStyle",
    "PopupAction",
    "PopupContent",
    "PositionFix",
    "SessionCallbacks",
    "SessionState",
    "TrackingEvent",
    "TrackingMode",
    "Viewport",
    "convert_speed",
    "find_nearby_facilities",
    "navigation_url",
    "next_facility",
    "zoom_for_speed",
]
