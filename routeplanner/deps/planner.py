from __future__ import annotations

from fastapi import HTTPException, Request, status
from starlette.requests import HTTPConnection

from ..services.planner import RoutePlanner


def planner_from(connection: HTTPConnection) -> RoutePlanner:
    """Return the planner built at startup for HTTP and websocket handlers."""

    planner = getattr(connection.app.state, "planner", None)
    if planner is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Planner not started")
    return planner


def get_planner(request: Request) -> RoutePlanner:
    return planner_from(request)
