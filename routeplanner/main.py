"""Application factory and top-level wiring for the route planner.

This module brings together configuration, logging, the planning engine, the
HTTP routers and error handling. The engine components are built once, when
the application starts, and shared by every request through ``app.state``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import AppSettings, get_settings
from .core.errors import (
    RouteNotFound,
    http_exception_handler,
    route_not_found_handler,
    validation_exception_handler,
)
from .core.logging import configure_logging
from .middlewares import RequestIdMiddleware
from .routers import address as address_router
from .routers import drag as drag_router
from .routers import events as events_router
from .routers import routes as routes_router
from .services.mapbox import build_http_client
from .services.planner import build_planner


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the FastAPI app.

    ``transport`` replaces the network layer of the shared Mapbox client,
    which is how tests feed canned upstream responses.
    """

    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = build_http_client(settings, transport)
        planner = build_planner(settings, client)
        app.state.planner = planner
        try:
            yield
        finally:
            app.state.planner = None
            await planner.aclose()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(routes_router.router)
    app.include_router(drag_router.router)
    app.include_router(address_router.router)
    app.include_router(events_router.router)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RouteNotFound, route_not_found_handler)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    if settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app)

    return app


app = create_app()

__all__ = ["app", "create_app"]
