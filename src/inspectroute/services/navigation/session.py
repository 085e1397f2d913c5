"""Headless map controller: markers, route lines, camera tracking and drive mode."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Collection, Hashable, Iterable, Literal, Mapping, Optional

from ...config import settings
from ...models.domain import Facility, Location
from ..compliance.inspections import CompletionStatus
from ..compliance.spcc import SPCCPlanStatus
from ..geospatial import bearing_degrees, haversine_meters
from ..routing.models import OptimizationResult, RouteGeometry
from .centering import compute_center
from .geolocation import GeolocationError, GeolocationSource, PositionFix
from .guidance import NearbyFacility, find_nearby_facilities
from .heading import NORTH_RESET_DURATION_SECONDS, HeadingSmoother, RotationAnimation, normalize_degrees
from .markers import MarkerEntry, MarkerRegistry, day_color, marker_style
from .popups import ActionDispatcher, ActionType, PopupAction, PopupContent, build_popup, navigation_url
from .spiderfy import Spiderfier
from .state import SessionState, TrackingEvent, TrackingMode, auto_centers, is_drive_mode, is_tracking
from .surface import LayerHandle, LineStyle, MapSurface, MarkerStyle
from .zoom import DRIVE_ENTRY_ZOOM, LOCATE_ZOOM, format_speed, mps_to_mph, zoom_for_speed

logger = logging.getLogger(__name__)

MIN_RECENTER_METERS = 5.0
ANIMATE_RECENTER_METERS = 50.0
MIN_HEADING_MOVE_METERS = 1.0
FOCUS_ZOOM = 16

USER_MARKER_STYLE = MarkerStyle(fill_color="#2563EB", ring_color="#FFFFFF", glyph="", size=18)
USER_MARKER_Z_OFFSET = 1000
HOME_MARKER_STYLE = MarkerStyle(fill_color="#111827", ring_color="#FFFFFF", glyph="H", size=36)


@dataclass(slots=True)
class SessionCallbacks:
    on_message: Optional[Callable[[str], None]] = None
    on_open_url: Optional[Callable[[str], None]] = None
    on_survey: Optional[Callable[[str], None]] = None
    on_reassign: Optional[Callable[[str, int], None]] = None
    on_bulk_reassign: Optional[Callable[[list[str], int], None]] = None
    on_remove: Optional[Callable[[str], None]] = None


class MapSession:
    """Owns every layer it draws and the camera tracking state for one map."""

    def __init__(
        self,
        surface: MapSurface,
        geolocation: GeolocationSource,
        *,
        callbacks: SessionCallbacks | None = None,
        clock: Callable[[], float] = time.monotonic,
        speed_unit: Literal["mph", "kmh"] = "mph",
        map_preference: Literal["google", "apple"] = "google",
    ) -> None:
        self._surface = surface
        self._geolocation = geolocation
        self._callbacks = callbacks or SessionCallbacks()
        self._clock = clock
        self.speed_unit = speed_unit
        self.map_preference = map_preference

        self.state = SessionState()
        self.markers = MarkerRegistry()
        self.polylines: dict[int, LayerHandle] = {}
        self.popups: dict[str, PopupContent] = {}
        self.selected: set[str] = set()
        self.selection_mode = False

        self.last_fix: Optional[PositionFix] = None
        self.heading: Optional[float] = None
        self.speed_mph = 0.0

        self._marker_inputs: dict[str, dict[str, Any]] = {}
        self._home_marker: Optional[LayerHandle] = None
        self._user_marker: Optional[LayerHandle] = None
        self._watch: Optional[Hashable] = None
        self._rotation: Optional[RotationAnimation] = None
        self._last_drive_toggle: Optional[float] = None
        self._drive_request = 0
        self._closed = False

        self._smoother = HeadingSmoother()
        self.spiderfier = Spiderfier(surface, self.markers)
        self.dispatcher = ActionDispatcher()
        self.dispatcher.register(ActionType.NAVIGATE, self._on_navigate)
        self.dispatcher.register(ActionType.SURVEY, self._on_survey)
        self.dispatcher.register(ActionType.REASSIGN_DAY, self._on_reassign)
        self.dispatcher.register(ActionType.REMOVE, self._on_remove)

    @property
    def mode(self) -> TrackingMode:
        return self.state.mode

    @property
    def rotating(self) -> bool:
        return self._rotation is not None

    @property
    def speed_display(self) -> str:
        return format_speed(self.last_fix.speed if self.last_fix else None, self.speed_unit)

    def _message(self, text: str) -> None:
        if self._callbacks.on_message:
            self._callbacks.on_message(text)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def render(
        self,
        result: OptimizationResult | None,
        facilities: Iterable[Facility],
        *,
        completions: Mapping[str, CompletionStatus] | None = None,
        hide_completed: bool = False,
        home: Location | None = None,
        geometries: Mapping[int, RouteGeometry] | None = None,
        spcc_statuses: Mapping[str, SPCCPlanStatus] | None = None,
    ) -> None:
        """Redraw markers and route lines; every style is derived from the inputs."""

        completions = completions or {}
        geometries = geometries or {}
        self.spiderfier.unspiderfy()
        self._clear_layers()

        placement: dict[str, tuple[int, int]] = {}
        total_days = 0
        if result is not None:
            total_days = result.total_days
            for route in result.routes:
                for position, stop in enumerate(route.stops, start=1):
                    placement[stop.facility_id] = (route.day, position)

        if home is not None and home.is_valid():
            self._home_marker = self._surface.add_marker(home.latitude, home.longitude, HOME_MARKER_STYLE)

        for facility in facilities:
            if not facility.location.is_valid():
                logger.warning("Not rendering facility %s with invalid coordinates", facility.id)
                continue
            day, position = placement.get(facility.id, (facility.day_assignment, None))
            status = completions.get(facility.id, CompletionStatus.NONE)
            self._marker_inputs[facility.id] = {
                "day": day,
                "position": position,
                "status": status,
                "removed": facility.is_removed,
                "hide_completed": hide_completed,
                "spcc_status": (spcc_statuses or {}).get(facility.id),
            }
            style = marker_style(**self._marker_inputs[facility.id], selected=facility.id in self.selected)
            handle = self._surface.add_marker(facility.latitude, facility.longitude, style)
            self.markers.put(MarkerEntry(facility.id, handle, facility.latitude, facility.longitude, style, day))
            self.popups[facility.id] = build_popup(
                facility,
                day=day,
                position=position,
                status=status,
                total_days=total_days,
                map_preference=self.map_preference,
            )

        if result is not None:
            for route in result.routes:
                if not route.stops:
                    continue
                geometry = geometries.get(route.day)
                if geometry is not None:
                    coordinates = list(geometry.coordinates)
                else:
                    coordinates = [stop.location.as_tuple() for stop in route.stops]
                    if home is not None:
                        coordinates = [home.as_tuple(), *coordinates, home.as_tuple()]
                if len(coordinates) < 2:
                    continue
                self.polylines[route.day] = self._surface.add_polyline(coordinates, LineStyle(color=day_color(route.day)))

    def _clear_layers(self) -> None:
        for entry in self.markers.clear():
            self._surface.remove_layer(entry.handle)
        for handle in self.polylines.values():
            self._surface.remove_layer(handle)
        self.polylines.clear()
        self.popups.clear()
        self._marker_inputs.clear()
        if self._home_marker is not None:
            self._surface.remove_layer(self._home_marker)
            self._home_marker = None

    def _refresh_marker(self, facility_id: str) -> None:
        entry = self.markers.get(facility_id)
        inputs = self._marker_inputs.get(facility_id)
        if entry is None or inputs is None:
            return
        style = marker_style(**inputs, selected=facility_id in self.selected)
        self._surface.remove_layer(entry.handle)
        entry.handle = self._surface.add_marker(entry.latitude, entry.longitude, style)
        entry.style = style

    # ------------------------------------------------------------------
    # Position tracking
    # ------------------------------------------------------------------
    def start_tracking(self) -> None:
        if self._watch is None:
            self._watch = self._geolocation.watch_position(self.handle_position, self.handle_geolocation_error)

    def _stop_watch(self) -> None:
        if self._watch is not None:
            self._geolocation.clear_watch(self._watch)
            self._watch = None

    def stop_tracking(self) -> None:
        self.state.apply(TrackingEvent.TRACKING_STOPPED)
        self.state.interaction_cooldown_until = None
        self._rotation = None
        self._stop_watch()

    def _record_fix(self, fix: PositionFix) -> bool:
        if not Location(fix.latitude, fix.longitude).is_valid():
            logger.warning("Ignoring position fix with invalid coordinates (%s, %s)", fix.latitude, fix.longitude)
            return False

        previous = self.last_fix
        heading = fix.heading
        if heading is None and previous is not None:
            moved = haversine_meters(previous.latitude, previous.longitude, fix.latitude, fix.longitude)
            if moved >= MIN_HEADING_MOVE_METERS:
                heading = bearing_degrees(previous.latitude, previous.longitude, fix.latitude, fix.longitude)

        self.last_fix = fix
        self.speed_mph = mps_to_mph(fix.speed) if fix.speed is not None and fix.speed > 0 else 0.0
        if heading is not None:
            self.heading = self._smoother.push(heading)

        if self._user_marker is not None:
            self._surface.remove_layer(self._user_marker)
        self._user_marker = self._surface.add_marker(
            fix.latitude, fix.longitude, USER_MARKER_STYLE, z_offset=USER_MARKER_Z_OFFSET
        )
        return True

    def _center_on(self, latitude: float, longitude: float, zoom: float, *, animate: bool) -> bool:
        command = compute_center(
            latitude,
            longitude,
            zoom,
            self._surface.viewport(),
            drive_mode=is_drive_mode(self.state.mode),
            animate=animate,
        )
        if command is None:
            return False
        self._surface.set_view(command.latitude, command.longitude, command.zoom, animate=command.animate, duration=command.duration)
        self.state.last_centered_position = (latitude, longitude)
        return True

    def _follow(self, fix: PositionFix) -> None:
        if not auto_centers(self.state.mode):
            return
        if is_drive_mode(self.state.mode):
            zoom = zoom_for_speed(self.speed_mph)
        else:
            zoom = self._surface.viewport().zoom

        last = self.state.last_centered_position
        if last is None:
            self._center_on(fix.latitude, fix.longitude, zoom, animate=True)
            return
        distance = haversine_meters(last[0], last[1], fix.latitude, fix.longitude)
        if distance < MIN_RECENTER_METERS:
            return
        self._center_on(fix.latitude, fix.longitude, zoom, animate=distance > ANIMATE_RECENTER_METERS)

    def _rotate_to_heading(self) -> None:
        if not is_drive_mode(self.state.mode) or self.heading is None:
            return
        if self.speed_mph < settings.rotation_min_speed_mph:
            return
        # The map turns opposite to the direction of travel so it points up.
        target = normalize_degrees(-self.heading)
        self._rotation = RotationAnimation.towards(self._surface.get_bearing(), target, self._clock())

    def handle_position(self, fix: PositionFix) -> None:
        """Shared path for watch callbacks and polled fixes; duplicate fixes are harmless."""

        if self._closed or not self._record_fix(fix):
            return
        self._rotate_to_heading()
        self._follow(fix)

    def handle_geolocation_error(self, error: GeolocationError) -> None:
        logger.warning("Geolocation error %s: %s", error.kind.name, error)
        self._message(error.user_message)

    def poll_position(self) -> None:
        if is_tracking(self.state.mode) and not self._closed:
            self._geolocation.get_current_position(self.handle_position, self.handle_geolocation_error)

    async def run_position_poll(self, interval: float | None = None) -> None:
        """Poll the position source at a fixed interval until tracking stops."""

        interval = settings.position_poll_interval_seconds if interval is None else interval
        while not self._closed and is_tracking(self.state.mode):
            self.poll_position()
            self.tick()
            await asyncio.sleep(interval)

    # ------------------------------------------------------------------
    # User interaction
    # ------------------------------------------------------------------
    def begin_gesture(self) -> None:
        """A drag or zoom by the user suppresses automatic camera moves for a while."""

        if self.state.mode in (TrackingMode.IDLE, TrackingMode.FACILITY_FOCUS, TrackingMode.DRIVE_FOCUS):
            return
        self.state.apply(TrackingEvent.GESTURE)
        self.state.interaction_cooldown_until = self._clock() + settings.interaction_cooldown_seconds

    def tick(self, now: float | None = None) -> None:
        """Advance rotation animations and expire the interaction cooldown."""

        now = self._clock() if now is None else now
        if self._rotation is not None:
            self._surface.set_bearing(self._rotation.bearing_at(now))
            if self._rotation.finished(now):
                self._rotation = None

        until = self.state.interaction_cooldown_until
        if until is not None and now >= until:
            self.state.interaction_cooldown_until = None
            self.state.apply(TrackingEvent.COOLDOWN_EXPIRED)
            if self.last_fix is not None and auto_centers(self.state.mode):
                self.state.last_centered_position = None
                self._follow(self.last_fix)

    def locate_me(self) -> None:
        self.state.apply(TrackingEvent.LOCATE_REQUESTED)
        self.state.interaction_cooldown_until = None
        self.start_tracking()

        def on_fix(fix: PositionFix) -> None:
            if self._closed or not self._record_fix(fix):
                return
            if auto_centers(self.state.mode):
                zoom = zoom_for_speed(self.speed_mph) if is_drive_mode(self.state.mode) else LOCATE_ZOOM
                self._center_on(fix.latitude, fix.longitude, zoom, animate=True)

        self._geolocation.get_current_position(on_fix, self.handle_geolocation_error)

    def toggle_drive_mode(self, now: float | None = None) -> bool:
        """Switch drive mode; returns False when the toggle was debounced."""

        now = self._clock() if now is None else now
        if self._last_drive_toggle is not None and now - self._last_drive_toggle < settings.drive_toggle_debounce_seconds:
            logger.debug("Ignoring drive mode toggle within debounce window")
            return False
        self._last_drive_toggle = now

        if is_drive_mode(self.state.mode):
            self.state.apply(TrackingEvent.DRIVE_OFF)
            self.state.interaction_cooldown_until = None
            self._smoother.reset()
            self._rotation = RotationAnimation.towards(
                self._surface.get_bearing(), 0.0, now, NORTH_RESET_DURATION_SECONDS
            )
            self._stop_watch()
            return True

        self.state.apply(TrackingEvent.DRIVE_ON)
        self.state.interaction_cooldown_until = None
        self.start_tracking()
        self._drive_request += 1
        request = self._drive_request

        def current() -> bool:
            return not self._closed and request == self._drive_request and is_drive_mode(self.state.mode)

        def on_fix(fix: PositionFix) -> None:
            if self._closed or not self._record_fix(fix):
                return
            # A focus or gesture made while the fix was pending keeps the camera.
            if current() and auto_centers(self.state.mode):
                self._center_on(fix.latitude, fix.longitude, DRIVE_ENTRY_ZOOM, animate=True)

        def on_error(error: GeolocationError) -> None:
            if not current():
                logger.debug("Ignoring location error from an earlier drive mode request: %s", error)
                return
            if self.last_fix is not None:
                logger.info("Fresh fix unavailable (%s); entering drive mode at last known position", error.kind.name)
                if auto_centers(self.state.mode):
                    self._center_on(self.last_fix.latitude, self.last_fix.longitude, DRIVE_ENTRY_ZOOM, animate=True)
                return
            logger.warning("Drive mode needs a location: %s", error)
            self.state.apply(TrackingEvent.DRIVE_LOCATION_FAILED)
            self._stop_watch()
            self._message(f"Unable to start drive mode. {error.user_message}")

        self._geolocation.get_current_position(on_fix, on_error)
        return True

    def focus_facility(self, facility_id: str, zoom: float = FOCUS_ZOOM) -> Optional[PopupContent]:
        """Center on a facility; GPS updates no longer move the camera until the user resumes tracking."""

        entry = self.markers.get(facility_id)
        if entry is None:
            raise ValueError(f"Unknown facility '{facility_id}'")
        self.spiderfier.unspiderfy()
        self.state.apply(TrackingEvent.FACILITY_FOCUSED)
        self.state.interaction_cooldown_until = None
        command = compute_center(entry.latitude, entry.longitude, zoom, self._surface.viewport(), animate=True)
        if command is not None:
            self._surface.set_view(command.latitude, command.longitude, command.zoom, animate=True, duration=command.duration)
        return self.popups.get(facility_id)

    def click_marker(self, handle: LayerHandle) -> Optional[PopupContent]:
        """Open a popup, fan out overlapping markers, or toggle selection."""

        facility_id = self.spiderfier.facility_for_handle(handle)
        if facility_id is not None:
            return self.popups.get(facility_id)

        entry = self.markers.find_by_handle(handle)
        if entry is None:
            return None
        if self.selection_mode:
            self.toggle_selection(entry.facility_id)
            return None

        viewport = self._surface.viewport()
        overlapping = self.spiderfier.find_overlapping(entry.facility_id, viewport)
        if len(overlapping) > 1:
            self.spiderfier.spiderfy(overlapping, entry.position, viewport)
            return None
        return self.popups.get(entry.facility_id)

    def click_map(self) -> None:
        self.spiderfier.unspiderfy()

    def toggle_selection(self, facility_id: str) -> bool:
        if facility_id not in self.markers:
            raise ValueError(f"Unknown facility '{facility_id}'")
        if facility_id in self.selected:
            self.selected.discard(facility_id)
        else:
            self.selected.add(facility_id)
        self._refresh_marker(facility_id)
        return facility_id in self.selected

    def clear_selection(self) -> None:
        cleared = list(self.selected)
        self.selected.clear()
        for facility_id in cleared:
            self._refresh_marker(facility_id)

    def bulk_reassign(self, day: int) -> list[str]:
        """Hand every selected facility to the reassign callback in one call."""

        if day < 1:
            raise ValueError("Day must be 1 or greater")
        if not self.selected:
            raise ValueError("No facilities selected")
        facility_ids = sorted(self.selected)
        if self._callbacks.on_bulk_reassign:
            self._callbacks.on_bulk_reassign(facility_ids, day)
        self.clear_selection()
        return facility_ids

    def nearby_facilities(self, facilities: Iterable[Facility], completed_ids: Collection[str] = ()) -> list[NearbyFacility]:
        if self.last_fix is None:
            return []
        return find_nearby_facilities(self.last_fix.latitude, self.last_fix.longitude, facilities, completed_ids)

    # ------------------------------------------------------------------
    # Popup actions
    # ------------------------------------------------------------------
    def dispatch(self, action: PopupAction | Mapping[str, Any]) -> Any:
        return self.dispatcher.dispatch(action)

    def _on_navigate(self, action: PopupAction) -> str:
        url = action.payload.get("url")
        if not url:
            entry = self.markers.get(action.facility_id)
            if entry is None:
                raise ValueError(f"Unknown facility '{action.facility_id}'")
            url = navigation_url(entry.latitude, entry.longitude, self.map_preference)
        if self._callbacks.on_open_url:
            self._callbacks.on_open_url(url)
        return url

    def _on_survey(self, action: PopupAction) -> None:
        if self._callbacks.on_survey:
            self._callbacks.on_survey(action.facility_id)

    def _on_reassign(self, action: PopupAction) -> int:
        try:
            day = int(action.payload["day"])
        except (KeyError, TypeError, ValueError):
            raise ValueError("reassign_day requires a numeric 'day' payload") from None
        if day < 1:
            raise ValueError("Day must be 1 or greater")
        if self._callbacks.on_reassign:
            self._callbacks.on_reassign(action.facility_id, day)
        return day

    def _on_remove(self, action: PopupAction) -> None:
        if self._callbacks.on_remove:
            self._callbacks.on_remove(action.facility_id)

    def close(self) -> None:
        """Cancel animations and release the position watch."""

        self._closed = True
        self._rotation = None
        self.state.interaction_cooldown_until = None
        self._stop_watch()
        self.spiderfier.unspiderfy()

