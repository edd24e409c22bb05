from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from ..core.config import AppSettings
from ..schemas.route import Coordinate

logger = logging.getLogger(__name__)


def build_http_client(
    settings: AppSettings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """Create the shared client every Mapbox service talks through."""

    timeout = httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS)
    return httpx.AsyncClient(timeout=timeout, transport=transport)


def _format_degrees(value: float) -> str:
    # Fixed point; repr() switches to exponent notation below 1e-4.
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    return "0" if text in {"", "-0"} else text


def format_coordinate(coord: Coordinate) -> str:
    lng, lat = coord
    return f"{_format_degrees(lng)},{_format_degrees(lat)}"


def format_coordinates(coords: Iterable[Coordinate]) -> str:
    """Convert ``(lng, lat)`` pairs into the ``lng,lat;lng,lat`` path segment."""

    return ";".join(format_coordinate(coord) for coord in coords)


def _raise_for_status(response: httpx.Response, context: str) -> None:
    if response.status_code in {401, 403}:
        logger.warning("Mapbox authentication failed for %s", context)
    elif response.status_code == 429:
        logger.warning("Mapbox rate limit hit during %s", context)
    elif response.status_code >= 500:
        logger.error("Mapbox service error %s during %s", response.status_code, context)
    elif response.status_code >= 400:
        logger.error("Mapbox request error %s during %s", response.status_code, context)
    response.raise_for_status()


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Dict[str, Any],
    access_token: str,
    context: str,
) -> Dict[str, Any]:
    """GET ``url`` with the access token attached and return the decoded body.

    Raises ``httpx.HTTPError`` for transport and status failures and
    ``ValueError`` when the body is not a JSON object.
    """

    query = dict(params)
    query["access_token"] = access_token
    response = await client.get(url, params=query)
    _raise_for_status(response, context)
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected {context} payload: {type(data).__name__}")
    return data
