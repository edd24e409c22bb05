from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

import httpx

from ..core.config import AppSettings
from .address import AddressResolver, AddressSuggester
from .collection import RouteCollectionManager
from .directions import RouteFetcher
from .drag import DragRerouteController
from .events import EventBus
from .geocode_cache import GeocodeCache
from .snapping import SnapToRoadService


@dataclass
class RoutePlanner:
    """Every engine component, built once per process and shared by handle."""

    settings: AppSettings
    client: httpx.AsyncClient
    cache: GeocodeCache
    resolver: AddressResolver
    fetcher: RouteFetcher
    snapper: SnapToRoadService
    events: EventBus
    routes: RouteCollectionManager
    drag: DragRerouteController

    def address_suggester(self, on_results=None) -> AddressSuggester:
        return AddressSuggester(
            self.resolver,
            on_results,
            delay=self.settings.SEARCH_DEBOUNCE_SECONDS,
        )

    async def aclose(self) -> None:
        await self.drag.wait()
        await self.routes.settle()
        await self.client.aclose()


def build_planner(
    settings: AppSettings,
    client: httpx.AsyncClient,
    *,
    rng: Optional[random.Random] = None,
) -> RoutePlanner:
    token = settings.MAPBOX_ACCESS_TOKEN
    cache = GeocodeCache(precision=settings.GEOCODE_PRECISION)
    resolver = AddressResolver(
        client,
        access_token=token,
        base_url=settings.MAPBOX_GEOCODING_URL,
        cache=cache,
        search_min_chars=settings.SEARCH_MIN_CHARS,
        search_limit=settings.SEARCH_LIMIT,
    )
    fetcher = RouteFetcher(
        client,
        access_token=token,
        base_url=settings.MAPBOX_DIRECTIONS_URL,
        max_attempts=settings.ALTERNATIVES_MAX_ATTEMPTS,
        via_step_m=settings.VIA_POINT_STEP_METERS,
        via_max_offset_m=settings.VIA_POINT_MAX_OFFSET_METERS,
        rng=rng,
    )
    snapper = SnapToRoadService(client, access_token=token, base_url=settings.MAPBOX_MATCHING_URL)
    events = EventBus()
    routes = RouteCollectionManager(
        resolver,
        fetcher,
        events=events,
        alternatives_count=settings.ALTERNATIVES_COUNT,
    )
    drag = DragRerouteController(
        snapper,
        routes.set_reroute_snap_point,
        lambda: routes.current.id,
        debounce_seconds=settings.SNAP_DEBOUNCE_SECONDS,
        enabled=settings.SNAP_ENABLED,
    )
    return RoutePlanner(
        settings=settings,
        client=client,
        cache=cache,
        resolver=resolver,
        fetcher=fetcher,
        snapper=snapper,
        events=events,
        routes=routes,
        drag=drag,
    )
