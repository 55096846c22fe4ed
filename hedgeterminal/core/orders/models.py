from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union

from hedgeterminal.core.payload import first_of, opt_float, opt_str


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "Market"
    STOP = "Stop"
    LIMIT = "Limit"


class SubmissionState(str, Enum):
    IDLE = "Idle"
    VERIFYING = "Verifying"
    AWAITING_CONFIRMATION = "AwaitingConfirmation"
    CONFIRMING = "Confirming"


TakeProfit = Union[float, tuple[float, ...]]


@dataclass
class OrderDraft:
    """User-edited order fields, kept as entered text until normalization."""

    symbol: str = ""
    side: OrderSide = OrderSide.BUY
    lot_size: str = ""
    stop_loss: str = ""
    take_profit: list[str] = field(default_factory=lambda: [""])
    order_type: OrderType = OrderType.MARKET
    entry_price: str = ""
    comment: str = ""

    @classmethod
    def empty(cls, take_profit_slots: int = 1) -> "OrderDraft":
        return cls(take_profit=[""] * max(1, take_profit_slots))

    def resized(self, take_profit_slots: int) -> list[str]:
        slots = max(1, take_profit_slots)
        current = list(self.take_profit[:slots])
        return current + [""] * (slots - len(current))


@dataclass(frozen=True)
class OrderRequest:
    account_id: str
    symbol: str
    entry_type: OrderSide
    stop_loss: float
    take_profit: TakeProfit
    order_type: OrderType
    lot_size: Optional[float] = None
    entry_price: Optional[float] = None
    comment: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "accountId": self.account_id,
            "symbol": self.symbol,
            "entryType": self.entry_type.value,
            "stopLoss": self.stop_loss,
            "takeProfit": list(self.take_profit) if isinstance(self.take_profit, tuple) else self.take_profit,
            "orderType": self.order_type.value,
        }
        if self.lot_size is not None:
            payload["lotSize"] = self.lot_size
        if self.entry_price is not None:
            payload["entryPrice"] = self.entry_price
        if self.comment:
            payload["comment"] = self.comment
        return payload


@dataclass(frozen=True)
class VerifiedOrder:
    """Server-computed preview of a verified order."""

    symbol: Optional[str] = None
    side: Optional[str] = None
    order_type: Optional[str] = None
    quantity: Optional[float] = None
    max_loss: Optional[float] = None
    max_profit: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[TakeProfit] = None
    entry_price: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "VerifiedOrder":
        return cls(
            symbol=opt_str(payload.get("symbol")),
            side=opt_str(first_of(payload, "entryType", "side")),
            order_type=opt_str(payload.get("orderType")),
            quantity=opt_float(first_of(payload, "quantity", "lotSize")),
            max_loss=opt_float(payload.get("maxLoss")),
            max_profit=opt_float(payload.get("maxProfit")),
            stop_loss=opt_float(payload.get("stopLoss")),
            take_profit=_take_profit(payload.get("takeProfit")),
            entry_price=opt_float(payload.get("entryPrice")),
        )


@dataclass(frozen=True)
class OrderResult:
    message: Optional[str] = None
    position_ids: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "OrderResult":
        ids = payload.get("positionIds") or ()
        return cls(
            message=opt_str(payload.get("message")),
            position_ids=tuple(str(item) for item in ids),
        )


def _take_profit(value: Any) -> Optional[TakeProfit]:
    if isinstance(value, (list, tuple)):
        levels = tuple(level for level in (opt_float(item) for item in value) if level is not None)
        return levels or None
    return opt_float(value)
