from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from hedgeterminal.core.accounts.models import AccountRef

StreamHandler = Callable[[object], None]


class StreamChannelPort(Protocol):
    @property
    def transport_id(self) -> str:
        """Transport id of the account this channel is bound to."""
        raise NotImplementedError

    @property
    def is_connected(self) -> bool:
        raise NotImplementedError

    async def open(self) -> None:
        """Connect and install inbound handlers."""
        raise NotImplementedError

    async def close(self) -> None:
        """Unsubscribe every handler, then disconnect."""
        raise NotImplementedError

    def subscribe(self, handler: StreamHandler) -> Callable[[], None]:
        """Receive decoded inbound events; returns an unsubscribe callable."""
        raise NotImplementedError

    async def emit(self, name: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError


ChannelFactory = Callable[[AccountRef, Optional[str]], StreamChannelPort]
