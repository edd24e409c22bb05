"""Data model for the route-planning engine.

WHAT: Waypoints, the in-progress route, saved routes, candidate paths and the
structured marker tags handed to the presentation layer.
WHEN: Built and mutated by ``services.collection.RouteCollectionManager``;
serialised as-is by the HTTP routers.
WHY: One set of pydantic models keeps the engine state and the API payloads in
sync.
HOW: Coordinates are always ``(lng, lat)`` tuples, matching the Mapbox wire
format, so nothing has to be swapped on the way in or out.
"""


from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, computed_field, field_validator

Coordinate = Tuple[float, float]  # (lng, lat)

UNKNOWN_LOCATION = "Unknown Location"


def route_layer_id(route_id: int) -> str:
    """Identifier of the interactive line layer drawn for ``route_id``."""

    return f"route-line-{route_id}"


class Endpoint(str, Enum):
    ORIGIN = "origin"
    DESTINATION = "destination"


class LngLat(BaseModel):
    """Longitude/latitude pair accepted from API clients."""

    lng: float = Field(..., description="Longitude in decimal degrees")
    lat: float = Field(..., description="Latitude in decimal degrees")

    @field_validator("lng")
    def _validate_lng(cls, value: float) -> float:
        if not -180 <= value <= 180:
            raise ValueError("lng must be between -180 and 180 degrees")
        return value

    @field_validator("lat")
    def _validate_lat(cls, value: float) -> float:
        if not -90 <= value <= 90:
            raise ValueError("lat must be between -90 and 90 degrees")
        return value

    def as_coordinate(self) -> Coordinate:
        return (self.lng, self.lat)


class Waypoint(BaseModel):
    """A map location with the address shown for it in the side panel."""

    coordinates: Coordinate
    address: str = UNKNOWN_LOCATION


class RouteGeometry(BaseModel):
    """GeoJSON LineString as returned by the directions service."""

    type: Literal["LineString"] = "LineString"
    coordinates: List[Coordinate] = Field(default_factory=list)

    def path_key(self) -> Tuple[Coordinate, ...]:
        return tuple(self.coordinates)


class CurrentRoute(BaseModel):
    """The single route under construction."""

    id: int
    origin: Optional[Waypoint] = None
    destination: Optional[Waypoint] = None
    reroute_snap_point: Optional[Coordinate] = None
    geometry: Optional[RouteGeometry] = None
    # True once an input changed and no fresh geometry has arrived yet.
    geometry_stale: bool = False

    @property
    def has_endpoints(self) -> bool:
        return self.origin is not None and self.destination is not None

    @property
    def is_complete(self) -> bool:
        return self.has_endpoints and self.geometry is not None

    @computed_field
    @property
    def layer_id(self) -> str:
        return route_layer_id(self.id)


class SavedRoute(BaseModel):
    """A finished route; both endpoints are mandatory."""

    id: int
    origin: Waypoint
    destination: Waypoint
    geometry: RouteGeometry

    @computed_field
    @property
    def layer_id(self) -> str:
        return route_layer_id(self.id)


class RouteCandidate(BaseModel):
    """One candidate path between two fixed endpoints."""

    geometry: RouteGeometry
    distance: float = Field(0.0, ge=0, description="Distance in meters")
    duration: float = Field(0.0, ge=0, description="Duration in seconds")


class AlternativeRouteSet(BaseModel):
    """Candidate paths for the current route, one of them selected."""

    route_id: int
    candidates: List[RouteCandidate] = Field(default_factory=list)
    selected: int = 0

    @property
    def selected_candidate(self) -> Optional[RouteCandidate]:
        if 0 <= self.selected < len(self.candidates):
            return self.candidates[self.selected]
        return None


class AddressCandidate(BaseModel):
    """Forward-geocoding suggestion."""

    label: str
    coordinates: Coordinate


class MarkerTag(BaseModel):
    """Structured description of one endpoint marker to draw."""

    endpoint: Endpoint
    route_id: int
    coordinates: Coordinate
    saved: bool = False


class EndpointUpdate(BaseModel):
    """Payload used to move an endpoint of the current or a saved route."""

    lng: float
    lat: float
    address: Optional[str] = None

    @field_validator("lng")
    def _validate_lng(cls, value: float) -> float:
        if not -180 <= value <= 180:
            raise ValueError("lng must be between -180 and 180 degrees")
        return value

    @field_validator("lat")
    def _validate_lat(cls, value: float) -> float:
        if not -90 <= value <= 90:
            raise ValueError("lat must be between -90 and 90 degrees")
        return value

    @field_validator("address", mode="before")
    def _strip_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def as_coordinate(self) -> Coordinate:
        return (self.lng, self.lat)
