from __future__ import annotations

import itertools
import logging
from enum import Enum
from typing import Callable, Optional

from ..schemas.route import Coordinate, route_layer_id
from .debounce import Debouncer
from .snapping import SnapToRoadService

logger = logging.getLogger(__name__)

SnapSink = Callable[[int, Coordinate], object]
CursorCallback = Callable[[str], None]

CURSOR_GRAB = "grab"
CURSOR_GRABBING = "grabbing"
CURSOR_DEFAULT = ""


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RELEASED = "released"


class DragRerouteController:
    """Turn pointer motion on a route line into reroute snap points.

    The controller owns no route data. It snaps the pointer position onto the
    road network and hands the result to ``sink(route_id, point)``; whoever
    owns the route decides what to refetch.

    Move events are debounced so a burst of motion produces a single snap
    request for its last position. Each request carries a sequence number and
    a response older than one already applied is dropped.
    """

    def __init__(
        self,
        snapper: SnapToRoadService,
        sink: SnapSink,
        active_route_id: Callable[[], int],
        *,
        debounce_seconds: float = 0.5,
        enabled: bool = True,
        on_cursor: Optional[CursorCallback] = None,
    ) -> None:
        self._snapper = snapper
        self._sink = sink
        self._active_route_id = active_route_id
        self.enabled = enabled
        self._on_cursor = on_cursor
        self.state = DragState.IDLE
        self._route_id: Optional[int] = None
        self._seq = itertools.count(1)
        self._applied_seq = 0
        self._debouncer = Debouncer(self._snap_and_apply, debounce_seconds)

    @property
    def dragging_route_id(self) -> Optional[int]:
        return self._route_id if self.state is DragState.DRAGGING else None

    def _set_cursor(self, cursor: str) -> None:
        if self._on_cursor is not None:
            self._on_cursor(cursor)

    def hover(self, layer_id: str, entering: bool) -> None:
        """Cursor feedback when the pointer crosses the active route line."""

        if not self.enabled or self.state is not DragState.IDLE:
            return
        if layer_id != route_layer_id(self._active_route_id()):
            return
        self._set_cursor(CURSOR_GRAB if entering else CURSOR_DEFAULT)

    def pointer_down(self, layer_id: str) -> bool:
        """Start a drag if ``layer_id`` is the active route's line."""

        if not self.enabled:
            return False
        if self.state is not DragState.IDLE:
            return False
        route_id = self._active_route_id()
        if layer_id != route_layer_id(route_id):
            return False
        self.state = DragState.DRAGGING
        self._route_id = route_id
        self._set_cursor(CURSOR_GRABBING)
        logger.debug("Drag started on route %s", route_id)
        return True

    def pointer_move(self, point: Coordinate) -> None:
        if self.state is not DragState.DRAGGING:
            return
        self._debouncer(self._route_id, next(self._seq), point)

    async def pointer_up(self, point: Coordinate) -> Optional[Coordinate]:
        """Finish the drag with one immediate snap for the release position."""

        if self.state is not DragState.DRAGGING:
            return None
        self.state = DragState.RELEASED
        self._debouncer.cancel()
        route_id = self._route_id
        seq = next(self._seq)
        snapped = await self._snapper.snap(point)
        self._apply(route_id, seq, snapped)

        self.state = DragState.IDLE
        self._route_id = None
        self._set_cursor(CURSOR_DEFAULT)
        logger.debug("Drag ended on route %s at %s", route_id, snapped)
        return snapped

    async def wait(self) -> None:
        """Wait for debounced snap requests that are already in flight."""

        await self._debouncer.wait()

    async def _snap_and_apply(self, route_id: int, seq: int, point: Coordinate) -> None:
        snapped = await self._snapper.snap(point)
        if self.state is not DragState.DRAGGING or self._route_id != route_id:
            logger.debug("Dropping snap %s; drag no longer active", seq)
            return
        self._apply(route_id, seq, snapped)

    def _apply(self, route_id: Optional[int], seq: int, point: Coordinate) -> None:
        if route_id is None:
            return
        if seq <= self._applied_seq:
            logger.debug("Dropping stale snap %s (applied %s)", seq, self._applied_seq)
            return
        self._applied_seq = seq
        self._sink(route_id, point)
