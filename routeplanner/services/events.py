from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Set

from ..schemas.events import RouteEvent

logger = logging.getLogger(__name__)

Listener = Callable[[RouteEvent], None]


class EventBus:
    """Fan out route events to in-process listeners and streaming subscribers.

    Subscriber queues are bounded; when one is full the oldest event is
    dropped so a slow client only ever misses history, never the latest state.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._queues: Set[asyncio.Queue] = set()

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def subscribe(self, maxsize: int = 100) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    def publish(self, event: RouteEvent) -> None:
        logger.debug("event %s route=%s", event.kind.value, event.route_id)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover - log and keep publishing
                logger.exception("Event listener failed for %s", event.kind.value)

        for queue in list(self._queues):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(event)
