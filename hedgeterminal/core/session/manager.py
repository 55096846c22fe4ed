from __future__ import annotations

from typing import Any, Callable, Optional

from loguru import logger

from hedgeterminal.core.accounts.events import (
    AccountConfigFailed,
    AccountConfigLoaded,
    AccountSelected,
    AccountsLoaded,
    AccountsLoadFailed,
)
from hedgeterminal.core.accounts.models import AccountConfig, AccountRef
from hedgeterminal.core.accounts.ports import AccountDirectoryPort
from hedgeterminal.core.errors import TransportError
from hedgeterminal.core.live_state.store import LiveStateStore
from hedgeterminal.core.ops.events import (
    ChannelClosed,
    ChannelConnected,
    ChannelDisconnected,
    ChannelOpenAttempt,
    ChannelOpenFailed,
    StreamEventDiscarded,
)
from hedgeterminal.core.orders.coordinator import SubmissionCoordinator, SubmissionSettings
from hedgeterminal.core.orders.models import OrderDraft
from hedgeterminal.core.orders.ports import EventBus
from hedgeterminal.core.session.context import DashboardContext
from hedgeterminal.core.stream.events import (
    STREAM_PLACE_ORDER,
    STREAM_VERIFY_ORDER,
    EquityBalanceReceived,
    LiveDataReceived,
    OrderResponse,
    StreamConnected,
    StreamDisconnected,
    VerifyOrderResponse,
)
from hedgeterminal.core.stream.ports import ChannelFactory, StreamChannelPort


class SessionManager:
    """Owns the active account and the one streaming channel bound to it.

    Every inbound channel event enters through ``_dispatch``, which drops
    anything not tagged with the active account's transport id before routing
    it to the live state store or the submission coordinator.
    """

    def __init__(
        self,
        directory: AccountDirectoryPort,
        channel_factory: ChannelFactory,
        *,
        credential: Optional[str] = None,
        context: Optional[DashboardContext] = None,
        event_bus: Optional[EventBus] = None,
        settings: Optional[SubmissionSettings] = None,
    ) -> None:
        self._directory = directory
        self._channel_factory = channel_factory
        self._credential = credential
        self._context = context or DashboardContext()
        self._event_bus = event_bus
        self._store = LiveStateStore(self._context.live, event_bus=event_bus)
        self._coordinator = SubmissionCoordinator(
            self._context,
            self,
            event_bus=event_bus,
            on_order_placed=self.refresh_account_config,
            settings=settings,
        )
        self._channel: Optional[StreamChannelPort] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def context(self) -> DashboardContext:
        return self._context

    @property
    def coordinator(self) -> SubmissionCoordinator:
        return self._coordinator

    @property
    def store(self) -> LiveStateStore:
        return self._store

    @property
    def channel(self) -> Optional[StreamChannelPort]:
        return self._channel

    def status(self) -> dict[str, object]:
        active = self._context.active
        return {
            "account": active.persistent_id if active else None,
            "transport_id": active.transport_id if active else None,
            "connected": bool(self._channel and self._channel.is_connected),
            "submission_state": self._context.submission_state.value,
        }

    # ── Account directory ────────────────────────────────────────────────

    async def load_accounts(self) -> list[AccountRef]:
        try:
            accounts = await self._directory.list_accounts()
        except TransportError as exc:
            self._context.last_error = exc
            self._publish(AccountsLoadFailed.now(error=str(exc)))
            raise
        self._context.accounts = list(accounts)
        self._publish(AccountsLoaded.now(count=len(accounts)))
        return self._context.accounts

    async def select_default_account(self) -> Optional[AccountRef]:
        if self._context.active is not None or not self._context.accounts:
            return self._context.active
        account = self._context.accounts[0]
        await self.select_account(account)
        return account

    async def select_account(self, account: AccountRef) -> None:
        """Switch the dashboard to ``account``.

        The old channel is fully torn down before the new one is opened and
        the live state is cleared before any snapshot for the new account can
        arrive. Neither a channel failure nor a config fetch failure blocks
        the switch.
        """
        self._context.generation += 1
        generation = self._context.generation
        previous = self._context.active
        await self._close_channel(reason="account-change")
        if generation != self._context.generation:
            return

        self._context.active = account
        self._context.config = None
        self._context.last_error = None
        self._coordinator.reset()
        self._store.clear(reason="account-change")
        self._context.draft = OrderDraft.empty()
        self._publish(
            AccountSelected.now(
                persistent_id=account.persistent_id,
                transport_id=account.transport_id,
                previous_persistent_id=previous.persistent_id if previous else None,
            )
        )
        logger.info("Selected account {} ({})", account.persistent_id, account.label)

        await self._open_channel(account, generation)
        if generation != self._context.generation:
            return
        await self._fetch_config(account, generation)

    async def refresh_account_config(self) -> Optional[AccountConfig]:
        account = self._context.active
        if account is None:
            return None
        return await self._fetch_config(account, self._context.generation)

    async def logout(self) -> None:
        self._context.generation += 1
        await self._close_channel(reason="logout")
        self._coordinator.reset()
        self._store.clear(reason="logout")
        self._context.accounts = []
        self._context.active = None
        self._context.config = None
        self._context.last_error = None
        self._context.draft = OrderDraft.empty()

    async def close(self) -> None:
        await self._close_channel(reason="shutdown")
        self._coordinator.reset()
        await self._coordinator.drain()

    # ── Order channel (used by the coordinator) ──────────────────────────

    async def verify_order(self, payload: dict[str, Any]) -> None:
        await self._emit(STREAM_VERIFY_ORDER, payload)

    async def place_order(self, payload: dict[str, Any]) -> None:
        await self._emit(STREAM_PLACE_ORDER, payload)

    async def _emit(self, name: str, payload: dict[str, Any]) -> None:
        channel = self._channel
        if channel is None or not channel.is_connected:
            raise TransportError("stream channel not connected")
        await channel.emit(name, payload)

    # ── Channel lifecycle ────────────────────────────────────────────────

    async def _open_channel(self, account: AccountRef, generation: int) -> None:
        channel = self._channel_factory(account, self._credential)
        self._channel = channel
        self._unsubscribe = channel.subscribe(self._dispatch)
        self._publish(
            ChannelOpenAttempt.now(
                persistent_id=account.persistent_id,
                transport_id=account.transport_id,
            )
        )
        try:
            await channel.open()
        except TransportError as exc:
            logger.warning("Channel open failed for {}: {}", account.transport_id, exc)
            if generation == self._context.generation:
                self._context.last_error = exc
            self._publish(
                ChannelOpenFailed.now(
                    transport_id=account.transport_id,
                    error_type=type(exc).__name__,
                    message=str(exc),
                )
            )
            return
        if generation != self._context.generation:
            # superseded while connecting
            await channel.close()

    async def _close_channel(self, *, reason: str) -> None:
        channel = self._channel
        unsubscribe = self._unsubscribe
        self._channel = None
        self._unsubscribe = None
        if unsubscribe:
            unsubscribe()
        if channel is None:
            return
        await channel.close()
        self._publish(ChannelClosed.now(transport_id=channel.transport_id, reason=reason))

    async def _fetch_config(self, account: AccountRef, generation: int) -> Optional[AccountConfig]:
        try:
            config = await self._directory.get_account_config(account.persistent_id)
        except TransportError as exc:
            logger.warning("Account config fetch failed for {}: {}", account.persistent_id, exc)
            if generation == self._context.generation:
                self._context.last_error = exc
            self._publish(AccountConfigFailed.now(persistent_id=account.persistent_id, error=str(exc)))
            return None
        if generation != self._context.generation:
            logger.debug("Dropping config for superseded account {}", account.persistent_id)
            return None
        self._context.config = config
        self._coordinator.resize_take_profits(config.take_profit_slots)
        self._publish(AccountConfigLoaded.now(persistent_id=account.persistent_id, config=config))
        return config

    # ── Dispatch ─────────────────────────────────────────────────────────

    def _dispatch(self, event: object) -> None:
        active = self._context.active
        transport_id = getattr(event, "transport_id", None)
        if active is None or transport_id != active.transport_id:
            logger.debug(
                "Discarding {} for {} (active {})",
                type(event).__name__,
                transport_id,
                active.transport_id if active else None,
            )
            self._publish(
                StreamEventDiscarded.now(
                    event_type=type(event).__name__,
                    event_transport_id=transport_id,
                    active_transport_id=active.transport_id if active else None,
                )
            )
            return

        if isinstance(event, LiveDataReceived):
            self._store.apply_snapshot(event)
        elif isinstance(event, EquityBalanceReceived):
            self._store.apply_equity_balance(event)
        elif isinstance(event, VerifyOrderResponse):
            self._coordinator.handle_verify_response(event)
        elif isinstance(event, OrderResponse):
            self._coordinator.handle_order_response(event)
        elif isinstance(event, StreamConnected):
            self._publish(ChannelConnected.now(transport_id=active.transport_id))
        elif isinstance(event, StreamDisconnected):
            self._publish(ChannelDisconnected.now(transport_id=active.transport_id, reason=event.reason))

    def _publish(self, event: object) -> None:
        if self._event_bus:
            self._event_bus.publish(event)
