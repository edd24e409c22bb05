from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class RouteEventKind(str, Enum):
    GEOMETRY_UPDATED = "geometry_updated"
    ROUTE_UNAVAILABLE = "route_unavailable"
    ADDRESS_RESOLVED = "address_resolved"
    ROUTE_SAVED = "route_saved"
    ROUTE_REMOVED = "route_removed"
    ALTERNATIVES_UPDATED = "alternatives_updated"


class RouteEvent(BaseModel):
    """Notification pushed to the presentation layer."""

    kind: RouteEventKind
    route_id: Optional[int] = None
    message: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
