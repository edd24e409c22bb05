from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..deps.auth import require_api_key
from ..deps.planner import get_planner
from ..schemas.route import LngLat
from ..services.planner import RoutePlanner

router = APIRouter(
    prefix="/api/v1/address",
    tags=["address"],
    dependencies=[Depends(require_api_key)],
)


@router.get("/search")
async def search_address(
    q: str = Query(..., alias="query"),
    planner: RoutePlanner = Depends(get_planner),
):
    # Short queries come back empty without an upstream call, so the
    # widget can forward every keystroke once its own debounce settles.
    candidates = await planner.resolver.search_address(q)
    return {"candidates": candidates}


@router.get("/reverse")
async def reverse_geocode(
    lng: float = Query(..., ge=-180, le=180),
    lat: float = Query(..., ge=-90, le=90),
    planner: RoutePlanner = Depends(get_planner),
):
    point = LngLat(lng=lng, lat=lat)
    address = await planner.resolver.resolve_address(point.as_coordinate())
    return {"address": address, "coordinates": point.as_coordinate()}
