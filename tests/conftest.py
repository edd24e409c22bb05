import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("MAPBOX_ACCESS_TOKEN", "test-token")
os.environ.setdefault("METRICS_ENABLED", "false")

from routeplanner.core.config import AppSettings

GEOCODING_URL = "https://api.mapbox.test/geocoding"
DIRECTIONS_URL = "https://api.mapbox.test/directions"
MATCHING_URL = "https://api.mapbox.test/matching"

Coord = Tuple[float, float]


def parse_coords(segment: str) -> List[Coord]:
    coords: List[Coord] = []
    for pair in unquote(segment).split(";"):
        lng, lat = pair.split(",")
        coords.append((float(lng), float(lat)))
    return coords


def straight_route(coords: List[Coord], distance: Optional[float] = None) -> Dict[str, Any]:
    return {
        "geometry": {"type": "LineString", "coordinates": [list(c) for c in coords]},
        "distance": 1000.0 if distance is None else distance,
        "duration": 120.0,
    }


class FakeMapbox:
    """Canned Mapbox geocoding, directions and matching responses.

    Every request is recorded in ``calls`` as ``(kind, request)``. Handlers
    can be swapped per test; ``delays`` adds latency per kind and ``fail``
    turns a kind into HTTP 500 responses.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, httpx.Request]] = []
        self.places: Dict[Coord, str] = {}
        self.search_results: List[Dict[str, Any]] = []
        self.directions: Callable[[List[Coord], httpx.Request], Dict[str, Any]] = self._default_directions
        self.matching: Callable[[Coord], Dict[str, Any]] = self._default_matching
        self.delays: Dict[str, float] = {}
        self.fail: set = set()
        self.transport = httpx.MockTransport(self._handle)

    def count(self, kind: str) -> int:
        return sum(1 for recorded, _ in self.calls if recorded == kind)

    def requests(self, kind: str) -> List[httpx.Request]:
        return [request for recorded, request in self.calls if recorded == kind]

    def _default_directions(self, coords: List[Coord], request: httpx.Request) -> Dict[str, Any]:
        return {"code": "Ok", "routes": [straight_route(coords)]}

    def _default_matching(self, point: Coord) -> Dict[str, Any]:
        snapped = [round(point[0], 3), round(point[1], 3)]
        return {"code": "Ok", "matchings": [{"geometry": {"coordinates": [snapped]}}]}

    def _kind(self, request: httpx.Request) -> str:
        url = str(request.url)
        if url.startswith(GEOCODING_URL):
            segment = request.url.path.split("/geocoding/", 1)[1]
            try:
                parse_coords(segment[: -len(".json")])
            except ValueError:
                return "search"
            return "reverse"
        if url.startswith(DIRECTIONS_URL):
            return "directions"
        if url.startswith(MATCHING_URL):
            return "matching"
        raise AssertionError(f"unexpected request {url}")

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        kind = self._kind(request)
        self.calls.append((kind, request))
        delay = self.delays.get(kind)
        if delay:
            await asyncio.sleep(delay)
        if kind in self.fail:
            return httpx.Response(500, json={"message": "boom"})

        path = request.url.path
        if kind == "reverse":
            coord = parse_coords(path.split("/geocoding/", 1)[1][: -len(".json")])[0]
            name = self.places.get(coord)
            features = [{"place_name": name, "center": list(coord)}] if name else []
            return httpx.Response(200, json={"features": features})
        if kind == "search":
            return httpx.Response(200, json={"features": self.search_results})
        if kind == "directions":
            coords = parse_coords(path.split("/directions/", 1)[1])
            return httpx.Response(200, json=self.directions(coords, request))
        point = parse_coords(path.split("/matching/", 1)[1])[0]
        return httpx.Response(200, json=self.matching(point))


def make_settings(**overrides: Any) -> AppSettings:
    values: Dict[str, Any] = {
        "MAPBOX_ACCESS_TOKEN": "test-token",
        "MAPBOX_GEOCODING_URL": GEOCODING_URL,
        "MAPBOX_DIRECTIONS_URL": DIRECTIONS_URL,
        "MAPBOX_MATCHING_URL": MATCHING_URL,
        "SNAP_DEBOUNCE_SECONDS": 0.05,
        "SEARCH_DEBOUNCE_SECONDS": 0.05,
        "METRICS_ENABLED": False,
        "API_KEY": "",
    }
    values.update(overrides)
    return AppSettings(**values)


@pytest.fixture()
def fake_mapbox() -> FakeMapbox:
    return FakeMapbox()


@pytest.fixture()
def settings() -> AppSettings:
    return make_settings()
