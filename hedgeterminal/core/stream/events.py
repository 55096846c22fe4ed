from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from hedgeterminal.core.live_state.models import LiveAccountInfo, PendingOrder, Position
from hedgeterminal.core.orders.models import OrderResult, VerifiedOrder
from hedgeterminal.core.payload import opt_float, opt_str

STREAM_CONNECT = "connect"
STREAM_DISCONNECT = "disconnect"
STREAM_LIVE_DATA = "live-data"
STREAM_EQUITY_BALANCE = "equity-balance"
STREAM_VERIFY_RESPONSE = "verify-order-response"
STREAM_ORDER_RESPONSE = "order-response"
STREAM_VERIFY_ORDER = "verify-order"
STREAM_PLACE_ORDER = "place-order"

INBOUND_EVENTS = (
    STREAM_LIVE_DATA,
    STREAM_EQUITY_BALANCE,
    STREAM_VERIFY_RESPONSE,
    STREAM_ORDER_RESPONSE,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StreamConnected:
    transport_id: Optional[str]
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StreamDisconnected:
    transport_id: Optional[str]
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class LiveDataReceived:
    transport_id: Optional[str]
    account_info: Optional[LiveAccountInfo]
    positions: tuple[Position, ...]
    pending_orders: tuple[PendingOrder, ...]
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class EquityBalanceReceived:
    transport_id: Optional[str]
    equity: Optional[float]
    balance: Optional[float]
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class VerifyOrderResponse:
    transport_id: Optional[str]
    verified: Optional[VerifiedOrder]
    error: Optional[str]
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class OrderResponse:
    transport_id: Optional[str]
    result: Optional[OrderResult]
    error: Optional[str]
    timestamp: datetime = field(default_factory=_now)


def _items(value: Any) -> tuple[Any, ...]:
    return tuple(value) if isinstance(value, (list, tuple)) else ()


def decode_stream_event(name: str, data: Any, *, channel_transport_id: Optional[str]) -> Optional[object]:
    """Turn a raw channel message into a typed event tagged with its account.

    Snapshots and patches carry their own ``accountId``. Responses and
    connection events carry none, so they take the transport id of the
    channel that received them. Unknown names decode to ``None``.
    """
    payload: Mapping[str, Any] = data if isinstance(data, Mapping) else {}
    if name == STREAM_CONNECT:
        return StreamConnected(transport_id=channel_transport_id)
    if name == STREAM_DISCONNECT:
        return StreamDisconnected(transport_id=channel_transport_id, reason=opt_str(data))
    if name == STREAM_LIVE_DATA:
        position_data = payload.get("positionData")
        if not isinstance(position_data, Mapping):
            position_data = {}
        info = position_data.get("accountInformation")
        return LiveDataReceived(
            transport_id=opt_str(payload.get("accountId")),
            account_info=LiveAccountInfo.from_payload(info) if isinstance(info, Mapping) else None,
            positions=tuple(
                Position.from_payload(item)
                for item in _items(position_data.get("livePositions"))
                if isinstance(item, Mapping)
            ),
            pending_orders=tuple(
                PendingOrder.from_payload(item)
                for item in _items(position_data.get("pendingOrders"))
                if isinstance(item, Mapping)
            ),
        )
    if name == STREAM_EQUITY_BALANCE:
        return EquityBalanceReceived(
            transport_id=opt_str(payload.get("accountId")),
            equity=opt_float(payload.get("equity")),
            balance=opt_float(payload.get("balance")),
        )
    if name == STREAM_VERIFY_RESPONSE:
        error = opt_str(payload.get("error"))
        verified = payload.get("data")
        return VerifyOrderResponse(
            transport_id=channel_transport_id,
            verified=VerifiedOrder.from_payload(verified) if isinstance(verified, Mapping) and not error else None,
            error=error,
        )
    if name == STREAM_ORDER_RESPONSE:
        error = opt_str(payload.get("error"))
        return OrderResponse(
            transport_id=channel_transport_id,
            result=None if error else OrderResult.from_payload(payload),
            error=error,
        )
    return None
