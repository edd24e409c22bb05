from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException


class RoutePlannerError(Exception):
    """Base class for every failure raised by the planning engine."""


class GeocodeUnavailable(RoutePlannerError):
    """Reverse or forward geocoding produced no usable result."""


class RouteUnavailable(RoutePlannerError):
    """The directions service returned no route or could not be reached."""


class SnapFailed(RoutePlannerError):
    """Map matching could not place the point on the road network."""


class RouteNotFound(RoutePlannerError, LookupError):
    """No saved route carries the requested id."""

    def __init__(self, route_id: int) -> None:
        super().__init__(f"Route {route_id} not found")
        self.route_id = route_id


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": jsonable_encoder(exc.errors())},
        )
    raise exc


async def route_not_found_handler(request: Request, exc: RouteNotFound):
    return ErrorEnvelope(
        status_code=status.HTTP_404_NOT_FOUND,
        code="route_not_found",
        message=str(exc),
        details={"route_id": exc.route_id},
    )
