from __future__ import annotations

from typing import Optional

from hedgeterminal.core.live_state.events import LiveStateCleared, LiveStateUpdated
from hedgeterminal.core.live_state.models import LiveState
from hedgeterminal.core.orders.ports import EventBus
from hedgeterminal.core.stream.events import EquityBalanceReceived, LiveDataReceived


class LiveStateStore:
    """Applies account-scoped push events to the shared live state.

    Callers are responsible for routing only events of the active account
    here; the store itself does not filter.
    """

    def __init__(self, state: LiveState, event_bus: Optional[EventBus] = None) -> None:
        self._state = state
        self._event_bus = event_bus

    @property
    def state(self) -> LiveState:
        return self._state

    def apply_snapshot(self, event: LiveDataReceived) -> None:
        self._state.account_info = event.account_info
        self._state.positions = list(event.positions)
        self._state.pending_orders = list(event.pending_orders)
        self._published("snapshot", event.transport_id)

    def apply_equity_balance(self, event: EquityBalanceReceived) -> bool:
        current = self._state.account_info
        if current is None:
            # a later snapshot supersedes the patch
            return False
        self._state.account_info = current.with_equity_balance(
            equity=event.equity,
            balance=event.balance,
        )
        self._published("equity-balance", event.transport_id)
        return True

    def clear(self, reason: str = "account-change") -> None:
        self._state.clear()
        if self._event_bus:
            self._event_bus.publish(LiveStateCleared.now(reason=reason))

    def _published(self, kind: str, transport_id: Optional[str]) -> None:
        if self._event_bus:
            self._event_bus.publish(
                LiveStateUpdated.now(
                    kind=kind,
                    transport_id=transport_id,
                    positions=len(self._state.positions),
                    pending_orders=len(self._state.pending_orders),
                )
            )
