from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..deps.auth import require_api_key
from ..deps.planner import get_planner
from ..schemas.route import LngLat
from ..services.planner import RoutePlanner

router = APIRouter(
    prefix="/api/v1/drag",
    tags=["drag"],
    dependencies=[Depends(require_api_key)],
)


class LayerEvent(BaseModel):
    layer_id: str


class HoverEvent(BaseModel):
    layer_id: str
    entering: bool = True


def _drag_status(planner: RoutePlanner) -> dict:
    return {
        "state": planner.drag.state.value,
        "route_id": planner.drag.dragging_route_id,
        "enabled": planner.drag.enabled,
    }


@router.post("/start")
async def drag_start(payload: LayerEvent, planner: RoutePlanner = Depends(get_planner)):
    started = planner.drag.pointer_down(payload.layer_id)
    return {"started": started, **_drag_status(planner)}


@router.post("/move")
async def drag_move(payload: LngLat, planner: RoutePlanner = Depends(get_planner)):
    planner.drag.pointer_move(payload.as_coordinate())
    return _drag_status(planner)


@router.post("/end")
async def drag_end(
    payload: LngLat,
    wait: bool = Query(default=False),
    planner: RoutePlanner = Depends(get_planner),
):
    snapped = await planner.drag.pointer_up(payload.as_coordinate())
    if wait:
        await planner.routes.settle()
    return {"snapped": snapped, "current": planner.routes.current, **_drag_status(planner)}


@router.post("/hover")
async def drag_hover(payload: HoverEvent, planner: RoutePlanner = Depends(get_planner)):
    planner.drag.hover(payload.layer_id, payload.entering)
    return _drag_status(planner)
