from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..core.errors import GeocodeUnavailable
from ..schemas.route import UNKNOWN_LOCATION, AddressCandidate, Coordinate
from .debounce import Debouncer
from .geocode_cache import CacheKey, GeocodeCache
from .mapbox import format_coordinate, get_json

logger = logging.getLogger(__name__)


def _feature_center(feature: Dict[str, Any]) -> Optional[Coordinate]:
    center = feature.get("center") or []
    if len(center) < 2:
        return None
    lng, lat = center[0], center[1]
    if not isinstance(lng, (int, float)) or not isinstance(lat, (int, float)):
        return None
    return (float(lng), float(lat))


def _map_candidate(feature: Dict[str, Any]) -> Optional[AddressCandidate]:
    label = feature.get("place_name")
    center = _feature_center(feature)
    if not label or center is None:
        return None
    return AddressCandidate(label=str(label), coordinates=center)


class AddressResolver:
    """Forward and reverse geocoding on top of the Mapbox places API.

    Reverse lookups go through the ``GeocodeCache`` handed in at construction;
    only successful lookups are cached, so a coordinate that failed once is
    retried the next time it is asked for. Concurrent requests for the same
    cache key share one upstream call.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        access_token: str,
        base_url: str,
        cache: GeocodeCache,
        search_min_chars: int = 3,
        search_limit: int = 5,
    ) -> None:
        self._client = client
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self.cache = cache
        self.search_min_chars = search_min_chars
        self.search_limit = search_limit
        self._pending: Dict[CacheKey, asyncio.Future] = {}

    async def _reverse_geocode(self, coord: Coordinate) -> str:
        url = f"{self._base_url}/{format_coordinate(coord)}.json"
        try:
            data = await get_json(
                self._client,
                url,
                params={},
                access_token=self._access_token,
                context="reverse geocode",
            )
        except (httpx.HTTPError, ValueError) as exc:
            raise GeocodeUnavailable(f"Reverse geocode failed for {coord}: {exc}") from exc

        features = data.get("features") or []
        if not features:
            raise GeocodeUnavailable(f"No address found for {coord}")
        label = features[0].get("place_name")
        if not label:
            raise GeocodeUnavailable(f"Feature without place_name for {coord}")
        return str(label)

    async def resolve_address(self, coord: Coordinate) -> str:
        """Return the best address for ``coord`` or ``UNKNOWN_LOCATION``."""

        cached = self.cache.get(coord)
        if cached is not None:
            return cached

        key = self.cache.key_for(coord)
        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._lookup(coord))
            self._pending[key] = pending
            pending.add_done_callback(lambda done, key=key: self._lookup_finished(key, done))
        else:
            logger.debug("Joining in-flight reverse geocode for %s", key)
        # One waiter being cancelled must not cancel the shared lookup.
        return await asyncio.shield(pending)

    async def _lookup(self, coord: Coordinate) -> str:
        try:
            address = await self._reverse_geocode(coord)
        except GeocodeUnavailable as exc:
            logger.info("%s", exc)
            return UNKNOWN_LOCATION

        self.cache.put(coord, address)
        return address

    def _lookup_finished(self, key: CacheKey, done: asyncio.Future) -> None:
        if self._pending.get(key) is done:
            del self._pending[key]

    async def search_address(self, text: str) -> List[AddressCandidate]:
        """Return up to ``search_limit`` ranked candidates for ``text``."""

        query = (text or "").strip()
        if len(query) < self.search_min_chars:
            return []

        url = f"{self._base_url}/{quote(query, safe='')}.json"
        params = {"autocomplete": "true", "limit": str(self.search_limit)}
        try:
            data = await get_json(
                self._client,
                url,
                params=params,
                access_token=self._access_token,
                context="address search",
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Address search failed for %r: %s", query, exc)
            return []

        candidates: List[AddressCandidate] = []
        for feature in data.get("features") or []:
            candidate = _map_candidate(feature)
            if candidate is not None:
                candidates.append(candidate)
            if len(candidates) >= self.search_limit:
                break
        return candidates


class AddressSuggester:
    """Autocomplete state for one address input box.

    ``update`` is called on every keystroke; the search itself only runs once
    typing has paused for ``delay`` seconds, using the latest text.
    """

    def __init__(
        self,
        resolver: AddressResolver,
        on_results: Optional[Callable[[List[AddressCandidate]], None]] = None,
        *,
        delay: float = 0.3,
    ) -> None:
        self._resolver = resolver
        self._on_results = on_results
        self.text = ""
        self.suggestions: List[AddressCandidate] = []
        self._debouncer = Debouncer(self._search, delay)

    def update(self, text: str) -> None:
        self.text = text
        self._debouncer(text)

    async def _search(self, text: str) -> None:
        results = await self._resolver.search_address(text)
        if text != self.text:
            # The user kept typing while this search was in flight.
            return
        self.suggestions = results
        if self._on_results is not None:
            self._on_results(results)

    def select_first(self) -> Optional[AddressCandidate]:
        """Pick the top suggestion, as the Enter key does in the input box."""

        if not self.suggestions:
            return None
        chosen = self.suggestions[0]
        self.text = chosen.label
        self.suggestions = []
        self._debouncer.cancel()
        return chosen

    async def wait(self) -> None:
        await self._debouncer.wait()
