from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, TypeVar

EventT = TypeVar("EventT")
EventHandler = Callable[[EventT], Awaitable[None] | None]


class OrderChannelPort(Protocol):
    async def verify_order(self, payload: dict[str, Any]) -> None:
        """Send a verify request; the result arrives later as a push event."""
        raise NotImplementedError

    async def place_order(self, payload: dict[str, Any]) -> None:
        """Send a placement request; the result arrives later as a push event."""
        raise NotImplementedError


class EventBus(Protocol):
    def publish(self, event: object) -> None:
        """Publish an event to subscribers."""
        raise NotImplementedError

    def subscribe(self, event_type: type[EventT], handler: EventHandler[EventT]) -> Callable[[], None]:
        """Subscribe a handler to events of a given type."""
        raise NotImplementedError
