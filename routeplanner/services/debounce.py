from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class Debouncer:
    """Collapse a burst of calls into one call with the latest arguments.

    Every call restarts the quiet-period timer and replaces the pending
    arguments; interim arguments are discarded, not queued. Once the timer
    fires the wrapped coroutine function runs as its own task, and a later
    call never cancels an execution that has already started.

    Must be called from inside a running event loop.
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], delay: float) -> None:
        self._func = func
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: Tuple[Any, ...] = ()
        self._kwargs: Dict[str, Any] = {}
        self._tasks: Set[asyncio.Task] = set()

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._args = args
        self._kwargs = kwargs
        self._handle = loop.call_later(self.delay, self._fire)

    @property
    def pending(self) -> bool:
        """True while a call is waiting for its quiet period to elapse."""

        return self._handle is not None

    @property
    def running(self) -> int:
        return len(self._tasks)

    def cancel(self) -> None:
        """Drop the pending call, if any. In-flight executions keep going."""

        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._args = ()
        self._kwargs = {}

    async def flush(self) -> None:
        """Run the pending call immediately and wait for everything in flight."""

        if self._handle is not None:
            self._handle.cancel()
            self._fire()
        await self.wait()

    async def wait(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self) -> None:
        self._handle = None
        args, kwargs = self._args, self._kwargs
        self._args = ()
        self._kwargs = {}
        task = asyncio.get_running_loop().create_task(self._func(*args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Debounced call failed", exc_info=exc)
