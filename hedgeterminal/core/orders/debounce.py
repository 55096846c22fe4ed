from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, Callable, Optional

from loguru import logger

DebouncedCall = Callable[[], Awaitable[None] | None]


class Debouncer:
    """Coalesces rapid calls into one, fired after ``delay`` seconds of quiet.

    Each ``call`` cancels the pending timer handle and schedules a new one, so
    only the last call in a burst runs. ``cancel`` drops a pending call.
    """

    def __init__(self, delay: float) -> None:
        self._delay = max(0.0, delay)
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Future] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def call(self, func: DebouncedCall) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire, func)

    def cancel(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self, func: DebouncedCall) -> None:
        self._handle = None
        result = func()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Debounced call failed")
