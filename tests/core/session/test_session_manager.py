from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import pytest

from hedgeterminal.core.accounts.events import AccountConfigFailed, AccountConfigLoaded, AccountsLoadFailed
from hedgeterminal.core.accounts.models import AccountConfig, AccountRef
from hedgeterminal.core.errors import TransportError
from hedgeterminal.core.live_state.models import LiveAccountInfo, Position
from hedgeterminal.core.ops.events import ChannelClosed, ChannelConnected, ChannelOpenFailed, StreamEventDiscarded
from hedgeterminal.core.orders.coordinator import SubmissionSettings
from hedgeterminal.core.orders.events import SubmissionTransportFailed
from hedgeterminal.core.orders.models import SubmissionState
from hedgeterminal.core.session.manager import SessionManager
from hedgeterminal.core.stream.events import (
    EquityBalanceReceived,
    LiveDataReceived,
    StreamConnected,
    VerifyOrderResponse,
)

_A = AccountRef(persistent_id="pa", transport_id="TA", broker_name="Alpha")
_B = AccountRef(persistent_id="pb", transport_id="TB", broker_name="Beta")


class _RecordingBus:
    def __init__(self) -> None:
        self.events: list[object] = []

    def publish(self, event: object) -> None:
        self.events.append(event)

    def subscribe(self, event_type, handler):  # pragma: no cover - unused
        raise NotImplementedError

    def of(self, event_type: type) -> list[object]:
        return [event for event in self.events if isinstance(event, event_type)]


class _FakeDirectory:
    def __init__(
        self,
        accounts: list[AccountRef],
        configs: Optional[dict[str, AccountConfig]] = None,
        *,
        config_delays: Optional[dict[str, float]] = None,
        fail_list: bool = False,
        fail_config: bool = False,
    ) -> None:
        self.accounts = accounts
        self.configs = configs or {}
        self.config_delays = config_delays or {}
        self.fail_list = fail_list
        self.fail_config = fail_config
        self.config_calls: list[str] = []

    async def list_accounts(self) -> list[AccountRef]:
        if self.fail_list:
            raise TransportError("directory down")
        return list(self.accounts)

    async def get_account_config(self, persistent_id: str) -> AccountConfig:
        self.config_calls.append(persistent_id)
        await asyncio.sleep(self.config_delays.get(persistent_id, 0))
        if self.fail_config:
            raise TransportError("config down")
        return self.configs.get(persistent_id, AccountConfig())

    async def add_account(self, payload: dict[str, Any]) -> dict[str, Any]:  # pragma: no cover - unused
        return {}

    async def confirm_account(self, payload: dict[str, Any]) -> dict[str, Any]:  # pragma: no cover - unused
        return {}


class _FakeChannel:
    def __init__(self, account: AccountRef, log: list[str], *, open_delay: float = 0.0, fail_open: bool = False) -> None:
        self.account = account
        self.log = log
        self.open_delay = open_delay
        self.fail_open = fail_open
        self.handlers: list[Callable[[object], None]] = []
        self.connected = False
        self.emitted: list[tuple[str, dict[str, Any]]] = []
        self.emit_gate: Optional[asyncio.Event] = None
        self.emit_error: Optional[TransportError] = None

    @property
    def transport_id(self) -> str:
        return self.account.transport_id

    @property
    def is_connected(self) -> bool:
        return self.connected

    def subscribe(self, handler: Callable[[object], None]) -> Callable[[], None]:
        self.handlers.append(handler)
        self.log.append(f"subscribe:{self.transport_id}")

        def _unsubscribe() -> None:
            self.handlers.remove(handler)
            self.log.append(f"unsubscribe:{self.transport_id}")

        return _unsubscribe

    async def open(self) -> None:
        self.log.append(f"open:{self.transport_id}")
        await asyncio.sleep(self.open_delay)
        if self.fail_open:
            raise TransportError("connect refused")
        self.connected = True

    async def close(self) -> None:
        self.connected = False
        self.log.append(f"close:{self.transport_id}")

    async def emit(self, name: str, payload: dict[str, Any]) -> None:
        self.emitted.append((name, payload))
        if self.emit_gate is not None:
            await self.emit_gate.wait()
        if self.emit_error is not None:
            raise self.emit_error

    def push(self, event: object) -> None:
        for handler in list(self.handlers):
            handler(event)


class _ChannelFactory:
    def __init__(self, **options: Any) -> None:
        self.options = options
        self.log: list[str] = []
        self.channels: list[_FakeChannel] = []

    def __call__(self, account: AccountRef, credential: Optional[str]) -> _FakeChannel:
        per_account = self.options.get(account.transport_id, {})
        channel = _FakeChannel(account, self.log, **per_account)
        self.channels.append(channel)
        return channel


def _make(directory: _FakeDirectory, factory: _ChannelFactory) -> tuple[SessionManager, _RecordingBus]:
    bus = _RecordingBus()
    session = SessionManager(
        directory,
        factory,
        credential="token",
        event_bus=bus,
        settings=SubmissionSettings(debounce_secs=0.0, response_timeout_secs=None),
    )
    return session, bus


def _snapshot(transport_id: str, equity: float) -> LiveDataReceived:
    return LiveDataReceived(
        transport_id=transport_id,
        account_info=LiveAccountInfo(balance=equity, equity=equity),
        positions=(Position(position_id="1", symbol="EURUSD"),),
        pending_orders=(),
    )


def test_load_accounts_and_select_first_by_default() -> None:
    directory = _FakeDirectory([_A, _B], {"pa": AccountConfig(splitting_target=3)})
    factory = _ChannelFactory()
    session, bus = _make(directory, factory)

    async def _run() -> None:
        await session.load_accounts()
        await session.select_default_account()

    asyncio.run(_run())

    assert session.context.active == _A
    assert session.context.config == AccountConfig(splitting_target=3)
    assert len(session.context.draft.take_profit) == 3
    assert factory.log == ["subscribe:TA", "open:TA"]
    assert len(bus.of(AccountConfigLoaded)) == 1
    assert session.status() == {
        "account": "pa",
        "transport_id": "TA",
        "connected": True,
        "submission_state": "Idle",
    }


def test_load_accounts_failure_is_published_and_raised() -> None:
    session, bus = _make(_FakeDirectory([], fail_list=True), _ChannelFactory())

    with pytest.raises(TransportError):
        asyncio.run(session.load_accounts())

    assert len(bus.of(AccountsLoadFailed)) == 1
    assert isinstance(session.context.last_error, TransportError)


def test_switch_tears_down_old_channel_before_opening_new_one() -> None:
    factory = _ChannelFactory()
    session, bus = _make(_FakeDirectory([_A, _B]), factory)

    async def _run() -> None:
        await session.select_account(_A)
        factory.channels[0].push(_snapshot("TA", 1000.0))
        assert session.context.live.account_info is not None
        await session.select_account(_B)

    asyncio.run(_run())

    assert factory.log == [
        "subscribe:TA",
        "open:TA",
        "unsubscribe:TA",
        "close:TA",
        "subscribe:TB",
        "open:TB",
    ]
    assert session.context.live.is_empty
    assert [event.transport_id for event in bus.of(ChannelClosed)] == ["TA"]


def test_events_for_other_accounts_are_discarded() -> None:
    factory = _ChannelFactory()
    session, bus = _make(_FakeDirectory([_A, _B]), factory)

    async def _run() -> None:
        await session.select_account(_B)
        channel = factory.channels[0]
        channel.push(_snapshot("TB", 500.0))
        channel.push(EquityBalanceReceived(transport_id="TA", equity=1000.0, balance=1050.0))
        # the persistent id of the active account is not its transport id
        channel.push(EquityBalanceReceived(transport_id="pb", equity=2000.0, balance=2050.0))

    asyncio.run(_run())

    info = session.context.live.account_info
    assert info == LiveAccountInfo(balance=500.0, equity=500.0)
    discarded = bus.of(StreamEventDiscarded)
    assert [(event.event_type, event.event_transport_id) for event in discarded] == [
        ("EquityBalanceReceived", "TA"),
        ("EquityBalanceReceived", "pb"),
    ]


def test_equity_patch_for_active_account_merges_into_snapshot() -> None:
    factory = _ChannelFactory()
    session, _bus = _make(_FakeDirectory([_A]), factory)

    async def _run() -> None:
        await session.select_account(_A)
        channel = factory.channels[0]
        channel.push(EquityBalanceReceived(transport_id="TA", equity=1.0, balance=2.0))
        assert session.context.live.account_info is None
        channel.push(_snapshot("TA", 500.0))
        channel.push(EquityBalanceReceived(transport_id="TA", equity=510.0, balance=None))

    asyncio.run(_run())

    assert session.context.live.account_info == LiveAccountInfo(balance=500.0, equity=510.0)
    assert len(session.context.live.positions) == 1


def test_overlapping_selections_leave_only_the_last_account() -> None:
    factory = _ChannelFactory(TA={"open_delay": 0.03})
    directory = _FakeDirectory(
        [_A, _B],
        {"pa": AccountConfig(splitting_target=4), "pb": AccountConfig(splitting_target=2)},
    )
    session, _bus = _make(directory, factory)

    async def _run() -> None:
        first = asyncio.create_task(session.select_account(_A))
        await asyncio.sleep(0.005)
        await session.select_account(_B)
        await first
        # a straggling snapshot from the old channel never lands
        for handler_owner in factory.channels:
            handler_owner.push(_snapshot(handler_owner.transport_id, 1.0))

    asyncio.run(_run())

    assert session.context.active == _B
    assert session.context.config == AccountConfig(splitting_target=2)
    assert len(session.context.draft.take_profit) == 2
    assert session.context.live.account_info == LiveAccountInfo(balance=1.0, equity=1.0)
    assert factory.channels[0].connected is False
    assert session.channel is factory.channels[1]


def test_late_config_for_previous_account_is_dropped() -> None:
    factory = _ChannelFactory()
    directory = _FakeDirectory(
        [_A, _B],
        {"pa": AccountConfig(auto_lot_size_set=True), "pb": AccountConfig()},
        config_delays={"pa": 0.03},
    )
    session, _bus = _make(directory, factory)

    async def _run() -> None:
        first = asyncio.create_task(session.select_account(_A))
        await asyncio.sleep(0.005)
        await session.select_account(_B)
        await first

    asyncio.run(_run())

    assert directory.config_calls == ["pa", "pb"]
    assert session.context.active == _B
    assert session.context.config == AccountConfig()


def test_channel_and_config_failures_do_not_block_the_switch() -> None:
    factory = _ChannelFactory(TB={"fail_open": True})
    directory = _FakeDirectory([_A, _B], fail_config=True)
    session, bus = _make(directory, factory)

    asyncio.run(session.select_account(_B))

    assert session.context.active == _B
    assert session.context.config is None
    assert len(session.context.draft.take_profit) == 1
    assert [event.transport_id for event in bus.of(ChannelOpenFailed)] == ["TB"]
    assert len(bus.of(AccountConfigFailed)) == 1
    assert isinstance(session.context.last_error, TransportError)
    assert session.status()["connected"] is False


def test_switch_mid_submission_resets_and_drops_late_response() -> None:
    factory = _ChannelFactory()
    session, _bus = _make(_FakeDirectory([_A, _B]), factory)

    async def _run() -> None:
        await session.select_account(_A)
        session.coordinator.edit_draft(symbol="eurusd", lot_size="0.1", stop_loss="1.1", take_profit="1.2")
        session.coordinator.verify()
        await asyncio.sleep(0.01)
        await session.coordinator.drain()
        assert session.coordinator.state is SubmissionState.VERIFYING
        old_channel = factory.channels[0]
        await session.select_account(_B)
        old_channel.push(VerifyOrderResponse(transport_id="TA", verified=None, error=None))

    asyncio.run(_run())

    assert session.coordinator.state is SubmissionState.IDLE
    assert session.context.draft.symbol == ""
    assert session.context.verified_order is None
    name, payload = factory.channels[0].emitted[0]
    assert name == "verify-order"
    assert payload["accountId"] == "pa"


def test_send_failure_after_switch_is_not_pinned_on_new_account() -> None:
    factory = _ChannelFactory()
    session, bus = _make(_FakeDirectory([_A, _B]), factory)

    async def _run() -> None:
        await session.select_account(_A)
        old_channel = factory.channels[0]
        gate = asyncio.Event()
        old_channel.emit_gate = gate
        old_channel.emit_error = TransportError("emit on A failed")
        session.coordinator.edit_draft(symbol="eurusd", lot_size="0.1", stop_loss="1.1", take_profit="1.2")
        session.coordinator.verify()
        await asyncio.sleep(0.01)
        assert session.coordinator.state is SubmissionState.VERIFYING
        await session.select_account(_B)
        gate.set()
        await session.coordinator.drain()

    asyncio.run(_run())

    assert session.context.active == _B
    assert session.context.last_error is None
    assert bus.of(SubmissionTransportFailed) == []
    assert session.coordinator.state is SubmissionState.IDLE


def test_connect_events_are_published_for_active_channel() -> None:
    factory = _ChannelFactory()
    session, bus = _make(_FakeDirectory([_A]), factory)

    async def _run() -> None:
        await session.select_account(_A)
        factory.channels[0].push(StreamConnected(transport_id="TA"))

    asyncio.run(_run())

    assert [event.transport_id for event in bus.of(ChannelConnected)] == ["TA"]


def test_order_emit_without_connected_channel_fails() -> None:
    session, _bus = _make(_FakeDirectory([]), _ChannelFactory())

    with pytest.raises(TransportError, match="not connected"):
        asyncio.run(session.verify_order({"symbol": "EURUSD"}))


def test_logout_clears_everything() -> None:
    factory = _ChannelFactory()
    session, _bus = _make(_FakeDirectory([_A]), factory)

    async def _run() -> None:
        await session.load_accounts()
        await session.select_default_account()
        factory.channels[0].push(_snapshot("TA", 10.0))
        await session.logout()

    asyncio.run(_run())

    context = session.context
    assert context.accounts == []
    assert context.active is None
    assert context.config is None
    assert context.live.is_empty
    assert factory.log[-2:] == ["unsubscribe:TA", "close:TA"]
