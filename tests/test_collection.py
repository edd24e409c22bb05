import asyncio
import random

import pytest

from conftest import make_settings, parse_coords

from routeplanner.core.errors import RouteNotFound, RouteUnavailable
from routeplanner.schemas.events import RouteEventKind
from routeplanner.schemas.route import UNKNOWN_LOCATION, Endpoint
from routeplanner.services.mapbox import build_http_client
from routeplanner.services.planner import build_planner

ORIGIN = (-122.42, 37.77)
DESTINATION = (-122.41, 37.78)


def make_planner(fake_mapbox, **overrides):
    settings = make_settings(**overrides)
    client = build_http_client(settings, fake_mapbox.transport)
    return build_planner(settings, client, rng=random.Random(3))


def record_events(planner):
    events = []
    planner.events.add_listener(events.append)
    return events


def kinds(events, kind):
    return [event for event in events if event.kind is kind]


def directions_coords(fake_mapbox):
    return [
        parse_coords(request.url.path.split("/directions/", 1)[1])
        for request in fake_mapbox.requests("directions")
    ]


def test_plan_and_save_route_end_to_end(fake_mapbox):
    fake_mapbox.places[ORIGIN] = "Origin Ave"
    fake_mapbox.places[DESTINATION] = "Destination Blvd"
    planner = make_planner(fake_mapbox)
    routes = planner.routes

    async def scenario():
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN)
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION)
        await routes.settle()
        current = routes.current
        assert current.geometry is not None
        assert not current.geometry_stale
        assert current.origin.address == "Origin Ave"
        assert current.destination.address == "Destination Blvd"
        return routes.promote_current_to_saved()

    saved_id = asyncio.run(scenario())
    assert fake_mapbox.count("directions") == 1
    assert fake_mapbox.count("reverse") == 2
    assert saved_id == 1
    assert routes.current.id == 2
    assert routes.current.origin is None
    assert routes.current.geometry is None
    saved = routes.get_saved(1)
    assert saved.geometry.coordinates == [ORIGIN, DESTINATION]
    assert saved.layer_id == "route-line-1"


def test_unroutable_endpoints_notify_once_and_leave_no_geometry(fake_mapbox):
    fake_mapbox.directions = lambda coords, request: {"code": "Ok", "routes": []}
    planner = make_planner(fake_mapbox)
    events = record_events(planner)

    async def scenario():
        planner.routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        planner.routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await planner.routes.settle()

    asyncio.run(scenario())
    assert planner.routes.current.geometry is None
    assert len(kinds(events, RouteEventKind.ROUTE_UNAVAILABLE)) == 1
    assert kinds(events, RouteEventKind.ROUTE_UNAVAILABLE)[0].route_id == 1
    assert planner.routes.promote_current_to_saved() is None


def test_promotion_requires_both_endpoints_and_geometry(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes

    async def scenario():
        assert routes.promote_current_to_saved() is None
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        assert routes.promote_current_to_saved() is None
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        # Geometry has not arrived yet.
        assert routes.promote_current_to_saved() is None
        await routes.settle()
        assert routes.promote_current_to_saved() == 1

    asyncio.run(scenario())
    assert routes.last_assigned_id == 2
    assert [route.id for route in routes.saved] == [1]


def test_route_ids_are_never_reused(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes

    async def save_one(offset):
        routes.set_endpoint(Endpoint.ORIGIN, (ORIGIN[0] + offset, ORIGIN[1]), "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await routes.settle()
        return routes.promote_current_to_saved()

    async def scenario():
        first = await save_one(0.0)
        second = await save_one(0.001)
        routes.remove_saved(first)
        third = await save_one(0.002)
        return first, second, third

    ids = asyncio.run(scenario())
    assert ids == (1, 2, 3)
    assert routes.current.id == 4
    assert [route.id for route in routes.saved] == [2, 3]
    with pytest.raises(RouteNotFound):
        routes.get_saved(1)


def test_editing_saved_endpoint_refetches_only_that_route(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes
    events = record_events(planner)
    moved = (-122.40, 37.79)

    async def scenario():
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await routes.settle()
        routes.promote_current_to_saved()
        routes.set_endpoint(Endpoint.ORIGIN, (0.0, 0.0), "Other")
        events.clear()
        routes.edit_saved_endpoint(1, Endpoint.DESTINATION, moved, "Moved")
        await routes.settle()

    asyncio.run(scenario())
    assert fake_mapbox.count("directions") == 2
    assert directions_coords(fake_mapbox)[-1] == [ORIGIN, moved]
    assert routes.get_saved(1).geometry.coordinates == [ORIGIN, moved]
    assert routes.get_saved(1).destination.address == "Moved"
    assert routes.current.geometry is None
    assert [event.route_id for event in kinds(events, RouteEventKind.GEOMETRY_UPDATED)] == [1]


def test_editing_unknown_saved_route_raises(fake_mapbox):
    planner = make_planner(fake_mapbox)

    with pytest.raises(RouteNotFound):
        planner.routes.edit_saved_endpoint(42, Endpoint.ORIGIN, ORIGIN, "A")
    with pytest.raises(RouteNotFound):
        planner.routes.remove_saved(42)


def test_removing_saved_route_publishes_event(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes
    events = record_events(planner)

    async def scenario():
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await routes.settle()
        routes.promote_current_to_saved()
        routes.remove_saved(1)

    asyncio.run(scenario())
    assert routes.saved == []
    assert [event.route_id for event in kinds(events, RouteEventKind.ROUTE_REMOVED)] == [1]
    assert [event.route_id for event in kinds(events, RouteEventKind.ROUTE_SAVED)] == [1]


def test_latest_endpoint_edit_wins_address_lookup(fake_mapbox):
    first = (-122.43, 37.76)
    fake_mapbox.places[first] = "First St"
    fake_mapbox.places[ORIGIN] = "Second St"
    fake_mapbox.delays["reverse"] = 0.05
    planner = make_planner(fake_mapbox)
    events = record_events(planner)

    async def scenario():
        planner.routes.set_endpoint(Endpoint.ORIGIN, first)
        assert planner.routes.current.origin.address == UNKNOWN_LOCATION
        planner.routes.set_endpoint(Endpoint.ORIGIN, ORIGIN)
        await planner.routes.settle()

    asyncio.run(scenario())
    assert fake_mapbox.count("reverse") == 2
    assert planner.routes.current.origin.address == "Second St"
    resolved = kinds(events, RouteEventKind.ADDRESS_RESOLVED)
    assert [event.data["address"] for event in resolved] == ["Second St"]


def test_endpoints_on_same_spot_share_one_address_lookup(fake_mapbox):
    fake_mapbox.places[ORIGIN] = "Same Spot Sq"
    fake_mapbox.delays["reverse"] = 0.05
    planner = make_planner(fake_mapbox)

    async def scenario():
        planner.routes.set_endpoint(Endpoint.ORIGIN, ORIGIN)
        planner.routes.set_endpoint(Endpoint.DESTINATION, ORIGIN)
        await planner.routes.settle()

    asyncio.run(scenario())
    assert fake_mapbox.count("reverse") == 1
    assert planner.routes.current.origin.address == "Same Spot Sq"
    assert planner.routes.current.destination.address == "Same Spot Sq"


def test_explicit_address_skips_reverse_lookup(fake_mapbox):
    planner = make_planner(fake_mapbox)

    async def scenario():
        planner.routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "Picked from search")
        await planner.routes.settle()

    asyncio.run(scenario())
    assert fake_mapbox.count("reverse") == 0
    assert planner.routes.current.origin.address == "Picked from search"


def test_superseded_directions_response_is_discarded(fake_mapbox):
    fake_mapbox.delays["directions"] = 0.05
    planner = make_planner(fake_mapbox)
    routes = planner.routes
    events = record_events(planner)
    later = (-122.40, 37.79)

    async def scenario():
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        routes.set_endpoint(Endpoint.DESTINATION, later, "C")
        await routes.settle()

    asyncio.run(scenario())
    assert fake_mapbox.count("directions") == 2
    assert routes.current.geometry.coordinates == [ORIGIN, later]
    assert len(kinds(events, RouteEventKind.GEOMETRY_UPDATED)) == 1


def test_moving_endpoint_marks_geometry_stale_until_refetched(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes

    async def scenario():
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await routes.settle()
        routes.set_endpoint(Endpoint.ORIGIN, (-122.43, 37.76), "C")
        assert routes.current.geometry_stale
        assert routes.current.geometry.coordinates == [ORIGIN, DESTINATION]
        await routes.settle()

    asyncio.run(scenario())
    assert not routes.current.geometry_stale
    assert routes.current.geometry.coordinates == [(-122.43, 37.76), DESTINATION]


def test_snap_point_bends_current_route(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes
    via = (-122.415, 37.776)

    async def scenario():
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await routes.settle()
        assert not routes.set_reroute_snap_point(99, via)
        assert routes.set_reroute_snap_point(routes.current.id, via)
        await routes.settle()
        assert routes.current.geometry.coordinates == [ORIGIN, via, DESTINATION]
        # Same point again is not a change.
        assert routes.set_reroute_snap_point(routes.current.id, via)
        await routes.settle()
        routes.clear_reroute_snap_point()
        await routes.settle()

    asyncio.run(scenario())
    assert directions_coords(fake_mapbox) == [
        [ORIGIN, DESTINATION],
        [ORIGIN, via, DESTINATION],
        [ORIGIN, DESTINATION],
    ]
    assert routes.current.reroute_snap_point is None


def test_alternatives_load_and_select(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes
    events = record_events(planner)

    async def scenario():
        with pytest.raises(RouteUnavailable):
            await routes.load_alternatives()
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await routes.settle()
        return await routes.load_alternatives()

    alternatives = asyncio.run(scenario())
    assert alternatives.route_id == routes.current.id
    assert len(alternatives.candidates) == 3
    assert routes.alternatives is alternatives
    assert len(kinds(events, RouteEventKind.ALTERNATIVES_UPDATED)) == 1

    geometry = routes.select_alternative(2)
    assert geometry == alternatives.candidates[2].geometry
    assert routes.current.geometry == geometry
    assert routes.alternatives.selected == 2
    with pytest.raises(IndexError):
        routes.select_alternative(3)


def test_endpoint_change_clears_alternatives(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes

    async def scenario():
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await routes.settle()
        await routes.load_alternatives(2)
        routes.set_endpoint(Endpoint.DESTINATION, (-122.40, 37.79), "C")
        await routes.settle()

    asyncio.run(scenario())
    assert routes.alternatives is None
    with pytest.raises(IndexError):
        routes.select_alternative(0)


def test_markers_tag_endpoint_and_route(fake_mapbox):
    planner = make_planner(fake_mapbox)
    routes = planner.routes

    async def scenario():
        routes.set_endpoint(Endpoint.ORIGIN, ORIGIN, "A")
        routes.set_endpoint(Endpoint.DESTINATION, DESTINATION, "B")
        await routes.settle()
        routes.promote_current_to_saved()
        routes.set_endpoint(Endpoint.ORIGIN, (0.0, 1.0), "C")
        await routes.settle()

    asyncio.run(scenario())
    tags = [(tag.endpoint, tag.route_id, tag.saved) for tag in routes.markers()]
    assert tags == [
        (Endpoint.ORIGIN, 2, False),
        (Endpoint.ORIGIN, 1, True),
        (Endpoint.DESTINATION, 1, True),
    ]
