from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import socketio
from loguru import logger
from socketio.exceptions import SocketIOError

from hedgeterminal.core.accounts.models import AccountRef
from hedgeterminal.core.errors import TransportError
from hedgeterminal.core.stream.events import (
    INBOUND_EVENTS,
    STREAM_CONNECT,
    STREAM_DISCONNECT,
    decode_stream_event,
)
from hedgeterminal.core.stream.ports import ChannelFactory, StreamHandler


@dataclass(frozen=True)
class ChannelConfig:
    url: str
    connect_timeout: float = 10.0
    reconnection: bool = True

    @classmethod
    def from_env(cls) -> "ChannelConfig":
        api_url = os.getenv("HT_API_URL", "http://127.0.0.1:3000")
        return cls(
            url=os.getenv("HT_SOCKET_URL", api_url).rstrip("/"),
            connect_timeout=float(os.getenv("HT_CONNECT_TIMEOUT", "10")),
            reconnection=os.getenv("HT_SOCKET_RECONNECT", "1") == "1",
        )


class SocketIOChannel:
    """Socket.IO push channel bound to one account.

    Inbound messages are decoded and tagged with the account's transport id
    before reaching subscribers. Reconnection is left to the Socket.IO client;
    handlers are installed again on every (re)connect.
    """

    def __init__(
        self,
        config: ChannelConfig,
        account: AccountRef,
        credential: Optional[str] = None,
        *,
        client: Optional[Any] = None,
    ) -> None:
        self._config = config
        self._account = account
        self._credential = credential
        self._client = client or socketio.AsyncClient(reconnection=config.reconnection, logger=False)
        self._subscribers: list[StreamHandler] = []
        self._closed = False

    @property
    def transport_id(self) -> str:
        return self._account.transport_id

    @property
    def account(self) -> AccountRef:
        return self._account

    @property
    def is_connected(self) -> bool:
        return not self._closed and bool(self._client.connected)

    def subscribe(self, handler: StreamHandler) -> Callable[[], None]:
        self._subscribers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return _unsubscribe

    async def open(self) -> None:
        if self._closed:
            raise TransportError("channel already closed")
        self._install_handlers()
        auth = {
            "token": self._credential,
            "accountId": self._account.persistent_id,
            "timestamp": _timestamp(),
        }
        logger.info("Opening stream channel for account {}", self._account.transport_id)
        try:
            await self._client.connect(
                self._config.url,
                auth=auth,
                wait_timeout=self._config.connect_timeout,
            )
        except SocketIOError as exc:
            raise TransportError(f"stream connect failed: {exc}") from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._subscribers.clear()
        try:
            await self._client.disconnect()
        except SocketIOError as exc:
            logger.warning("Stream disconnect for {} failed: {}", self._account.transport_id, exc)

    async def emit(self, name: str, payload: dict[str, Any]) -> None:
        if not self.is_connected:
            raise TransportError("stream channel not connected")
        try:
            await self._client.emit(name, {**payload, "timestamp": _timestamp()})
        except SocketIOError as exc:
            raise TransportError(f"stream emit {name} failed: {exc}") from exc

    def _install_handlers(self) -> None:
        self._client.on(STREAM_CONNECT, self._on_connect)
        self._client.on(STREAM_DISCONNECT, self._handler(STREAM_DISCONNECT))
        for name in INBOUND_EVENTS:
            self._client.on(name, self._handler(name))

    def _on_connect(self) -> None:
        self._install_handlers()
        logger.info("Stream channel connected for account {}", self._account.transport_id)
        self._deliver(STREAM_CONNECT, None)

    def _handler(self, name: str) -> Callable[..., None]:
        def _handle(*args: Any) -> None:
            self._deliver(name, args[0] if args else None)

        _handle.__name__ = f"on_{name.replace('-', '_')}"
        return _handle

    def _deliver(self, name: str, data: Any) -> None:
        if self._closed:
            return
        event = decode_stream_event(name, data, channel_transport_id=self._account.transport_id)
        if event is None:
            return
        for handler in list(self._subscribers):
            handler(event)


def socketio_channel_factory(config: ChannelConfig) -> ChannelFactory:
    def _factory(account: AccountRef, credential: Optional[str]) -> SocketIOChannel:
        return SocketIOChannel(config, account, credential)

    return _factory


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
