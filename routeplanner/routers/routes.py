"""HTTP surface over the route collection.

WHAT: Exposes the current route, saved routes and alternative selection.
WHEN: Mounted by ``routeplanner.main.create_app``.
WHY: Lets a map front end drive the engine without touching its internals.
HOW: Mutations return immediately; pass ``wait=true`` to block until the
resulting address lookups and directions calls have finished.
"""


from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..core.errors import RouteUnavailable
from ..deps.auth import require_api_key
from ..deps.planner import get_planner
from ..schemas.route import (
    AlternativeRouteSet,
    CurrentRoute,
    Endpoint,
    EndpointUpdate,
    MarkerTag,
    RouteGeometry,
    SavedRoute,
    Waypoint,
)
from ..services.planner import RoutePlanner

router = APIRouter(
    prefix="/api/v1/routes",
    tags=["routes"],
    dependencies=[Depends(require_api_key)],
)


async def _maybe_settle(planner: RoutePlanner, wait: bool) -> None:
    if wait:
        await planner.routes.settle()


@router.get("/current", response_model=CurrentRoute)
async def get_current_route(planner: RoutePlanner = Depends(get_planner)):
    return planner.routes.current


@router.put("/current/{endpoint}", response_model=CurrentRoute)
async def set_current_endpoint(
    endpoint: Endpoint,
    payload: EndpointUpdate,
    wait: bool = Query(default=False),
    planner: RoutePlanner = Depends(get_planner),
):
    planner.routes.set_endpoint(endpoint, payload.as_coordinate(), payload.address)
    await _maybe_settle(planner, wait)
    return planner.routes.current


@router.delete("/current/snap-point", response_model=CurrentRoute)
async def clear_snap_point(
    wait: bool = Query(default=False),
    planner: RoutePlanner = Depends(get_planner),
):
    planner.routes.clear_reroute_snap_point()
    await _maybe_settle(planner, wait)
    return planner.routes.current


@router.post("/current/save")
async def save_current_route(planner: RoutePlanner = Depends(get_planner)):
    route_id = planner.routes.promote_current_to_saved()
    if route_id is None:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            "Origin, destination and a computed route are required before saving",
        )
    return {"id": route_id, "current": planner.routes.current}


@router.get("/current/markers", response_model=list[MarkerTag])
async def list_markers(planner: RoutePlanner = Depends(get_planner)):
    return planner.routes.markers()


@router.post("/current/alternatives", response_model=AlternativeRouteSet)
async def load_alternatives(
    count: int | None = Query(default=None, ge=1, le=10),
    planner: RoutePlanner = Depends(get_planner),
):
    try:
        return await planner.routes.load_alternatives(count)
    except RouteUnavailable as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, str(exc)) from exc


@router.post("/current/alternatives/{index}/select", response_model=RouteGeometry)
async def select_alternative(index: int, planner: RoutePlanner = Depends(get_planner)):
    try:
        return planner.routes.select_alternative(index)
    except IndexError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc)) from exc


@router.get("/saved", response_model=list[SavedRoute])
async def list_saved_routes(planner: RoutePlanner = Depends(get_planner)):
    return planner.routes.saved


@router.get("/saved/{route_id}", response_model=SavedRoute)
async def get_saved_route(route_id: int, planner: RoutePlanner = Depends(get_planner)):
    return planner.routes.get_saved(route_id)


@router.put("/saved/{route_id}/{endpoint}", response_model=Waypoint)
async def edit_saved_endpoint(
    route_id: int,
    endpoint: Endpoint,
    payload: EndpointUpdate,
    wait: bool = Query(default=False),
    planner: RoutePlanner = Depends(get_planner),
):
    waypoint = planner.routes.edit_saved_endpoint(
        route_id, endpoint, payload.as_coordinate(), payload.address
    )
    await _maybe_settle(planner, wait)
    return waypoint


@router.delete("/saved/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_saved_route(route_id: int, planner: RoutePlanner = Depends(get_planner)):
    planner.routes.remove_saved(route_id)
