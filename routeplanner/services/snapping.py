from __future__ import annotations

import logging

import httpx

from ..core.errors import SnapFailed
from ..schemas.route import Coordinate
from .mapbox import format_coordinate, get_json

logger = logging.getLogger(__name__)


class SnapToRoadService:
    """Project a point onto the nearest routable road via map matching.

    ``snap`` never fails the caller: when matching is impossible the input
    point comes back unchanged.
    """

    def __init__(self, client: httpx.AsyncClient, *, access_token: str, base_url: str) -> None:
        self._client = client
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")

    async def _match(self, point: Coordinate) -> Coordinate:
        url = f"{self._base_url}/{format_coordinate(point)}"
        try:
            data = await get_json(
                self._client,
                url,
                params={"geometries": "geojson"},
                access_token=self._access_token,
                context="map matching",
            )
        except (httpx.HTTPError, ValueError) as exc:
            raise SnapFailed(f"Map matching failed for {point}: {exc}") from exc

        matchings = data.get("matchings") or []
        if not matchings:
            raise SnapFailed(f"No road match for {point}")
        coordinates = (matchings[0].get("geometry") or {}).get("coordinates") or []
        if not coordinates or len(coordinates[0]) < 2:
            raise SnapFailed(f"Matching without coordinates for {point}")
        lng, lat = coordinates[0][0], coordinates[0][1]
        return (float(lng), float(lat))

    async def snap(self, point: Coordinate) -> Coordinate:
        try:
            return await self._match(point)
        except SnapFailed as exc:
            logger.debug("%s", exc)
            return point
