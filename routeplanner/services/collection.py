"""Owner of the in-progress route and the list of saved routes.

WHAT: Every mutation the user can make (set or move an endpoint, bend the path
through a snap point, save, edit a saved endpoint, remove, pick an
alternative) goes through ``RouteCollectionManager``.
WHEN: Called from UI/HTTP handlers. Each call runs to completion synchronously
and schedules any network work as background tasks.
WHY: Centralising the state makes the change rules explicit: an address lookup
when an address is unknown, a directions call when both endpoints are known.
HOW: Background results are tagged with sequence numbers. A result is applied
only if no newer request for the same route/endpoint was issued after it, so a
slow response can never overwrite newer input.
"""


from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Coroutine, Dict, List, Optional, Set, Tuple, Union

from ..core.errors import RouteNotFound, RouteUnavailable
from ..schemas.events import RouteEvent, RouteEventKind
from ..schemas.route import (
    UNKNOWN_LOCATION,
    AlternativeRouteSet,
    Coordinate,
    CurrentRoute,
    Endpoint,
    MarkerTag,
    RouteGeometry,
    SavedRoute,
    Waypoint,
)
from .address import AddressResolver
from .directions import RouteFetcher
from .events import EventBus

logger = logging.getLogger(__name__)

AnyRoute = Union[CurrentRoute, SavedRoute]


def _as_coordinate(value: Coordinate) -> Coordinate:
    lng, lat = value
    return (float(lng), float(lat))


class RouteCollectionManager:
    def __init__(
        self,
        resolver: AddressResolver,
        fetcher: RouteFetcher,
        *,
        events: Optional[EventBus] = None,
        alternatives_count: int = 3,
    ) -> None:
        self._resolver = resolver
        self._fetcher = fetcher
        self.events = events or EventBus()
        self.alternatives_count = alternatives_count

        # One counter for every route id; ids are never reused.
        self._ids = itertools.count(1)
        self._last_id = 0
        self._current = CurrentRoute(id=self._next_id())
        self._saved: List[SavedRoute] = []
        self._alternatives: Optional[AlternativeRouteSet] = None

        self._tasks: Set[asyncio.Task] = set()
        self._fetch_seq = itertools.count(1)
        self._latest_fetch: Dict[int, int] = {}
        self._address_seq = itertools.count(1)
        self._latest_address: Dict[Tuple[int, Endpoint], int] = {}

    # ---- read side

    @property
    def current(self) -> CurrentRoute:
        return self._current

    @property
    def saved(self) -> List[SavedRoute]:
        return list(self._saved)

    @property
    def alternatives(self) -> Optional[AlternativeRouteSet]:
        return self._alternatives

    @property
    def last_assigned_id(self) -> int:
        return self._last_id

    def get_saved(self, route_id: int) -> SavedRoute:
        for route in self._saved:
            if route.id == route_id:
                return route
        raise RouteNotFound(route_id)

    def markers(self) -> List[MarkerTag]:
        """Endpoint markers for every route, tagged by endpoint and route id."""

        tags: List[MarkerTag] = []
        routes: List[AnyRoute] = [self._current, *self._saved]
        for route in routes:
            saved = isinstance(route, SavedRoute)
            for endpoint in Endpoint:
                waypoint = getattr(route, endpoint.value)
                if waypoint is None:
                    continue
                tags.append(
                    MarkerTag(
                        endpoint=endpoint,
                        route_id=route.id,
                        coordinates=waypoint.coordinates,
                        saved=saved,
                    )
                )
        return tags

    # ---- current route

    def set_endpoint(
        self,
        target: Endpoint,
        coordinates: Coordinate,
        address: Optional[str] = None,
    ) -> Waypoint:
        """Place the current route's origin or destination.

        Without ``address`` the waypoint starts with a placeholder label and a
        reverse lookup is scheduled; the latest edit wins if the user moves
        the endpoint again before the lookup returns.
        """

        target = Endpoint(target)
        route = self._current
        waypoint = self._write_waypoint(route, target, _as_coordinate(coordinates), address)
        self._current_inputs_changed()
        return waypoint

    def set_reroute_snap_point(self, route_id: int, point: Coordinate) -> bool:
        """Bend the current route through ``point``.

        Only the current route supports drag-reroute; a snap point proposed
        for any other id is ignored and ``False`` is returned.
        """

        if route_id != self._current.id:
            logger.debug("Ignoring snap point for inactive route %s", route_id)
            return False
        point = _as_coordinate(point)
        if self._current.reroute_snap_point == point:
            return True
        self._current.reroute_snap_point = point
        self._current_inputs_changed()
        return True

    def clear_reroute_snap_point(self) -> None:
        if self._current.reroute_snap_point is None:
            return
        self._current.reroute_snap_point = None
        self._current_inputs_changed()

    def promote_current_to_saved(self) -> Optional[int]:
        """Move a complete current route into the saved list.

        Returns the saved route's id, or ``None`` when origin, destination or
        geometry is still missing.
        """

        route = self._current
        if not route.is_complete:
            logger.info(
                "Current route %s is incomplete; nothing to save",
                route.id,
                extra={"extra_data": {"route_id": route.id}},
            )
            return None

        saved = SavedRoute(
            id=route.id,
            origin=route.origin,
            destination=route.destination,
            geometry=route.geometry,
        )
        self._saved.append(saved)
        self._current = CurrentRoute(id=self._next_id())
        self._alternatives = None
        logger.info(
            "Saved route %s; new current route %s",
            saved.id,
            self._current.id,
            extra={"extra_data": {"route_id": saved.id, "current_route_id": self._current.id}},
        )
        self.events.publish(RouteEvent(kind=RouteEventKind.ROUTE_SAVED, route_id=saved.id))
        return saved.id

    # ---- saved routes

    def edit_saved_endpoint(
        self,
        route_id: int,
        target: Endpoint,
        coordinates: Coordinate,
        address: Optional[str] = None,
    ) -> Waypoint:
        """Move one endpoint of a saved route and refetch only that route."""

        target = Endpoint(target)
        route = self.get_saved(route_id)
        waypoint = self._write_waypoint(route, target, _as_coordinate(coordinates), address)
        self._schedule_fetch(
            route.id,
            route.origin.coordinates,
            route.destination.coordinates,
            None,
        )
        return waypoint

    def remove_saved(self, route_id: int) -> None:
        route = self.get_saved(route_id)
        self._saved.remove(route)
        self._latest_fetch.pop(route_id, None)
        for endpoint in Endpoint:
            self._latest_address.pop((route_id, endpoint), None)
        logger.info("Removed saved route %s", route_id, extra={"extra_data": {"route_id": route_id}})
        self.events.publish(RouteEvent(kind=RouteEventKind.ROUTE_REMOVED, route_id=route_id))

    # ---- alternatives

    async def load_alternatives(self, desired_count: Optional[int] = None) -> AlternativeRouteSet:
        """Fetch candidate paths between the current route's endpoints."""

        route = self._current
        if not route.has_endpoints:
            raise RouteUnavailable("Both endpoints are required for alternatives")

        count = desired_count or self.alternatives_count
        origin = route.origin.coordinates
        destination = route.destination.coordinates
        try:
            candidates = await self._fetcher.fetch_alternatives(origin, destination, count)
        except RouteUnavailable as exc:
            self._notify_unavailable(route.id, exc)
            raise

        result = AlternativeRouteSet(route_id=route.id, candidates=candidates)
        current = self._current
        if (
            current.id == route.id
            and current.has_endpoints
            and current.origin.coordinates == origin
            and current.destination.coordinates == destination
        ):
            self._alternatives = result
            self.events.publish(
                RouteEvent(
                    kind=RouteEventKind.ALTERNATIVES_UPDATED,
                    route_id=route.id,
                    data={"count": len(candidates)},
                )
            )
        else:
            logger.debug("Endpoints changed while alternatives loaded; not keeping them")
        return result

    def select_alternative(self, index: int) -> RouteGeometry:
        """Make candidate ``index`` the current route's geometry."""

        alternatives = self._alternatives
        if alternatives is None or alternatives.route_id != self._current.id:
            raise IndexError("No alternatives loaded for the current route")
        if not 0 <= index < len(alternatives.candidates):
            raise IndexError(f"Alternative {index} out of range")

        alternatives.selected = index
        geometry = alternatives.candidates[index].geometry
        route = self._current
        # Supersede any directions call still in flight for this route.
        self._latest_fetch[route.id] = next(self._fetch_seq)
        route.geometry = geometry
        route.geometry_stale = False
        self.events.publish(
            RouteEvent(
                kind=RouteEventKind.GEOMETRY_UPDATED,
                route_id=route.id,
                data={"alternative": index},
            )
        )
        return geometry

    # ---- background work

    async def settle(self) -> None:
        """Wait until every scheduled lookup and fetch has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _next_id(self) -> int:
        self._last_id = next(self._ids)
        return self._last_id

    def _route_by_id(self, route_id: int) -> Optional[AnyRoute]:
        if self._current.id == route_id:
            return self._current
        for route in self._saved:
            if route.id == route_id:
                return route
        return None

    def _write_waypoint(
        self,
        route: AnyRoute,
        target: Endpoint,
        coordinates: Coordinate,
        address: Optional[str],
    ) -> Waypoint:
        waypoint = Waypoint(coordinates=coordinates, address=address or UNKNOWN_LOCATION)
        setattr(route, target.value, waypoint)
        key = (route.id, target)
        seq = next(self._address_seq)
        self._latest_address[key] = seq
        if not address:
            self._spawn(self._resolve_address(key, seq, coordinates))
        return waypoint

    def _current_inputs_changed(self) -> None:
        route = self._current
        if route.geometry is not None:
            route.geometry_stale = True
        if self._alternatives is not None:
            self._alternatives = None
        if not route.has_endpoints:
            return
        self._schedule_fetch(
            route.id,
            route.origin.coordinates,
            route.destination.coordinates,
            route.reroute_snap_point,
        )

    def _schedule_fetch(
        self,
        route_id: int,
        origin: Coordinate,
        destination: Coordinate,
        via: Optional[Coordinate],
    ) -> None:
        seq = next(self._fetch_seq)
        self._latest_fetch[route_id] = seq
        self._spawn(self._refresh_geometry(route_id, seq, origin, destination, via))

    async def _refresh_geometry(
        self,
        route_id: int,
        seq: int,
        origin: Coordinate,
        destination: Coordinate,
        via: Optional[Coordinate],
    ) -> None:
        try:
            geometry = await self._fetcher.fetch_primary(origin, destination, via)
        except RouteUnavailable as exc:
            if self._latest_fetch.get(route_id) == seq:
                self._notify_unavailable(route_id, exc)
            return

        if self._latest_fetch.get(route_id) != seq:
            logger.debug("Discarding superseded route %s response (seq %s)", route_id, seq)
            return
        route = self._route_by_id(route_id)
        if route is None:
            return
        route.geometry = geometry
        if isinstance(route, CurrentRoute):
            route.geometry_stale = False
        self.events.publish(RouteEvent(kind=RouteEventKind.GEOMETRY_UPDATED, route_id=route_id))

    async def _resolve_address(
        self, key: Tuple[int, Endpoint], seq: int, coordinates: Coordinate
    ) -> None:
        address = await self._resolver.resolve_address(coordinates)
        if self._latest_address.get(key) != seq:
            return
        route_id, target = key
        route = self._route_by_id(route_id)
        waypoint = getattr(route, target.value) if route is not None else None
        if waypoint is None or waypoint.coordinates != coordinates:
            return
        waypoint.address = address
        self.events.publish(
            RouteEvent(
                kind=RouteEventKind.ADDRESS_RESOLVED,
                route_id=route_id,
                data={"endpoint": target.value, "address": address},
            )
        )

    def _notify_unavailable(self, route_id: int, exc: RouteUnavailable) -> None:
        logger.warning(
            "Route %s unavailable: %s",
            route_id,
            exc,
            extra={"extra_data": {"route_id": route_id}},
        )
        self.events.publish(
            RouteEvent(
                kind=RouteEventKind.ROUTE_UNAVAILABLE,
                route_id=route_id,
                message=str(exc),
            )
        )

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background route task failed", exc_info=exc)
