from __future__ import annotations

import asyncio
import inspect
from typing import Callable

from loguru import logger

from hedgeterminal.core.orders.ports import EventHandler, EventT


class InProcessEventBus:
    """Type-routed publish/subscribe on the running event loop.

    With a running loop, handlers are queued with ``call_soon`` so a publisher
    never re-enters its own subscribers; without one they run inline. A failing
    handler is logged and never reaches the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[type, EventHandler]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: object) -> None:
        if not self._subscribers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for event_type, handler in list(self._subscribers):
            if not isinstance(event, event_type):
                continue
            if loop and loop.is_running():
                loop.call_soon(self._dispatch, handler, event)
            else:
                self._dispatch(handler, event)

    def subscribe(self, event_type: type[EventT], handler: EventHandler[EventT]) -> Callable[[], None]:
        entry = (event_type, handler)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return _unsubscribe

    @staticmethod
    def _dispatch(handler: EventHandler, event: object) -> None:
        try:
            result = handler(event)
        except Exception as exc:
            logger.opt(exception=exc).error(
                "Event handler error (event={}, handler={})",
                type(event).__name__,
                _handler_name(handler),
            )
            return

        if inspect.isawaitable(result):
            try:
                task = asyncio.create_task(result)  # type: ignore[arg-type]
            except RuntimeError:
                asyncio.run(result)  # type: ignore[arg-type]
            else:
                task.add_done_callback(_log_task_error)


def _log_task_error(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.opt(exception=exc).error("Event handler task error")


def _handler_name(handler: EventHandler) -> str:
    name = getattr(handler, "__name__", None)
    if name:
        return name
    return handler.__class__.__name__
