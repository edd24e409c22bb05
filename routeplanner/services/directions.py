"""Directions client used to draw and reshape routes.

WHAT: Fetches the primary path for an origin/destination pair (optionally bent
through a via point) and, on request, a set of distinct alternative paths.
WHEN: Called by the route collection whenever an endpoint or the reroute snap
point changes, and when the user asks for alternatives.
WHY: Keeps every Mapbox directions detail (URL shape, query flags, response
parsing) out of the state engine.
HOW: ``continue_straight=true`` is always sent so a via point inserted by a
drag does not produce a path that doubles back on itself. When the service
returns fewer alternatives than wanted, extra candidates are synthesised by
routing through a randomly perturbed point near the midpoint.
"""


from __future__ import annotations

import logging
import math
import random
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import httpx

from ..core.errors import RouteUnavailable
from ..schemas.route import Coordinate, RouteCandidate, RouteGeometry
from .mapbox import format_coordinates, get_json

logger = logging.getLogger(__name__)

METERS_PER_DEGREE = 111_320.0


def _parse_geometry(route: Dict[str, Any]) -> RouteGeometry:
    geometry = route.get("geometry") or {}
    coordinates = geometry.get("coordinates") or []
    if len(coordinates) < 2:
        raise RouteUnavailable("Route without a usable geometry")
    return RouteGeometry(coordinates=[(float(c[0]), float(c[1])) for c in coordinates])


def _parse_candidate(route: Dict[str, Any]) -> RouteCandidate:
    return RouteCandidate(
        geometry=_parse_geometry(route),
        distance=float(route.get("distance") or 0.0),
        duration=float(route.get("duration") or 0.0),
    )


def perturbed_via_point(
    origin: Coordinate,
    destination: Coordinate,
    index: int,
    rng: random.Random,
    *,
    step_m: float = 100.0,
    max_offset_m: float = 400.0,
) -> Coordinate:
    """Return a point near the midpoint of ``origin``/``destination``.

    The direction is uniform; the distance grows with ``index`` and never
    exceeds ``max_offset_m``.
    """

    mid_lng = (origin[0] + destination[0]) / 2
    mid_lat = (origin[1] + destination[1]) / 2
    offset_m = min(step_m * max(index, 1), max_offset_m)
    angle = rng.uniform(0.0, 2 * math.pi)

    d_lat = offset_m * math.sin(angle) / METERS_PER_DEGREE
    lng_scale = METERS_PER_DEGREE * max(math.cos(math.radians(mid_lat)), 1e-6)
    d_lng = offset_m * math.cos(angle) / lng_scale
    return (mid_lng + d_lng, mid_lat + d_lat)


class RouteFetcher:
    """Wraps the directions service for primary and alternative routes."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        access_token: str,
        base_url: str,
        max_attempts: int = 10,
        via_step_m: float = 100.0,
        via_max_offset_m: float = 400.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._client = client
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.via_step_m = via_step_m
        self.via_max_offset_m = via_max_offset_m
        self._rng = rng or random.Random()

    async def _request_routes(
        self, coordinates: Sequence[Coordinate], *, alternatives: bool
    ) -> List[Dict[str, Any]]:
        url = f"{self._base_url}/{format_coordinates(coordinates)}"
        params = {
            "geometries": "geojson",
            "continue_straight": "true",
            "alternatives": "true" if alternatives else "false",
        }
        try:
            data = await get_json(
                self._client,
                url,
                params=params,
                access_token=self._access_token,
                context="directions",
            )
        except (httpx.HTTPError, ValueError) as exc:
            raise RouteUnavailable(f"Directions request failed: {exc}") from exc

        code = data.get("code")
        if code and code != "Ok":
            raise RouteUnavailable(f"Directions error: {code} ({data.get('message')})")
        routes = data.get("routes") or []
        if not routes:
            raise RouteUnavailable("No route found")
        return routes

    async def fetch_primary(
        self,
        origin: Coordinate,
        destination: Coordinate,
        via: Optional[Coordinate] = None,
    ) -> RouteGeometry:
        """Return the first route through ``[origin, via?, destination]``."""

        coordinates = [origin, *([via] if via is not None else []), destination]
        routes = await self._request_routes(coordinates, alternatives=False)
        return _parse_geometry(routes[0])

    async def _fetch_via(
        self, origin: Coordinate, destination: Coordinate, via: Coordinate
    ) -> RouteCandidate:
        routes = await self._request_routes([origin, via, destination], alternatives=False)
        return _parse_candidate(routes[0])

    async def fetch_alternatives(
        self, origin: Coordinate, destination: Coordinate, desired_count: int
    ) -> List[RouteCandidate]:
        """Return up to ``desired_count`` distinct paths, shortest first."""

        if desired_count <= 0:
            return []

        accepted: List[RouteCandidate] = []
        seen: Set[Tuple[Coordinate, ...]] = set()

        def accept(candidate: RouteCandidate) -> bool:
            key = candidate.geometry.path_key()
            if key in seen:
                return False
            seen.add(key)
            accepted.append(candidate)
            return True

        routes = await self._request_routes([origin, destination], alternatives=True)
        native: List[RouteCandidate] = []
        for route in routes:
            try:
                native.append(_parse_candidate(route))
            except RouteUnavailable:
                logger.debug("Skipping alternative without geometry")
        # sorted() is stable, so equal distances keep the service's order.
        for candidate in sorted(native, key=lambda c: c.distance):
            accept(candidate)

        attempts = 0
        while len(accepted) < desired_count and attempts < self.max_attempts:
            attempts += 1
            via = perturbed_via_point(
                origin,
                destination,
                len(accepted),
                self._rng,
                step_m=self.via_step_m,
                max_offset_m=self.via_max_offset_m,
            )
            try:
                candidate = await self._fetch_via(origin, destination, via)
            except RouteUnavailable as exc:
                logger.debug("Synthetic alternative %s failed: %s", attempts, exc)
                continue
            if not accept(candidate):
                logger.debug("Synthetic alternative %s duplicated an existing path", attempts)

        if len(accepted) < desired_count:
            logger.info(
                "Found %s of %s alternative routes after %s attempts",
                len(accepted),
                desired_count,
                attempts,
            )

        accepted.sort(key=lambda c: c.distance)
        return accepted[:desired_count]
