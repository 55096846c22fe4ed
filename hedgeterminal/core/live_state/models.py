from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from hedgeterminal.core.payload import first_of, opt_float, opt_str


@dataclass(frozen=True)
class LiveAccountInfo:
    balance: Optional[float] = None
    equity: Optional[float] = None
    margin: Optional[float] = None
    free_margin: Optional[float] = None
    credit: Optional[float] = None
    leverage: Optional[float] = None
    broker: Optional[str] = None
    server: Optional[str] = None
    platform: Optional[str] = None
    name: Optional[str] = None
    login: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LiveAccountInfo":
        return cls(
            balance=opt_float(payload.get("balance")),
            equity=opt_float(payload.get("equity")),
            margin=opt_float(payload.get("margin")),
            free_margin=opt_float(first_of(payload, "freeMargin", "free_margin")),
            credit=opt_float(payload.get("credit")),
            leverage=opt_float(payload.get("leverage")),
            broker=opt_str(payload.get("broker")),
            server=opt_str(payload.get("server")),
            platform=opt_str(payload.get("platform")),
            name=opt_str(payload.get("name")),
            login=opt_str(payload.get("login")),
        )

    def with_equity_balance(self, *, equity: Optional[float], balance: Optional[float]) -> "LiveAccountInfo":
        return replace(
            self,
            equity=self.equity if equity is None else equity,
            balance=self.balance if balance is None else balance,
        )


@dataclass(frozen=True)
class Position:
    position_id: str
    symbol: str
    lot_size: Optional[float] = None
    entry_time: Optional[str] = None
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    profit_loss: Optional[float] = None
    side: Optional[str] = None
    account_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Position":
        return cls(
            position_id=str(first_of(payload, "positionId", "id", "_id") or ""),
            symbol=str(payload.get("symbol") or ""),
            lot_size=opt_float(first_of(payload, "lotSize", "volume")),
            entry_time=opt_str(payload.get("entryTime")),
            entry_price=opt_float(first_of(payload, "entryPrice", "openPrice")),
            stop_loss=opt_float(payload.get("stopLoss")),
            take_profit=opt_float(payload.get("takeProfit")),
            profit_loss=opt_float(first_of(payload, "profitLoss", "profit")),
            side=opt_str(first_of(payload, "entryType", "type")),
            account_id=opt_str(payload.get("accountId")),
        )


@dataclass(frozen=True)
class PendingOrder:
    order_id: str
    symbol: str
    order_type: Optional[str] = None
    side: Optional[str] = None
    lot_size: Optional[float] = None
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    comment: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PendingOrder":
        return cls(
            order_id=str(first_of(payload, "orderId", "id", "_id") or ""),
            symbol=str(payload.get("symbol") or ""),
            order_type=opt_str(payload.get("orderType")),
            side=opt_str(first_of(payload, "entryType", "type")),
            lot_size=opt_float(first_of(payload, "lotSize", "volume")),
            entry_price=opt_float(first_of(payload, "entryPrice", "openPrice")),
            stop_loss=opt_float(payload.get("stopLoss")),
            take_profit=opt_float(payload.get("takeProfit")),
            comment=opt_str(payload.get("comment")),
        )


@dataclass
class LiveState:
    account_info: Optional[LiveAccountInfo] = None
    positions: list[Position] = field(default_factory=list)
    pending_orders: list[PendingOrder] = field(default_factory=list)

    def clear(self) -> None:
        self.account_info = None
        self.positions = []
        self.pending_orders = []

    @property
    def is_empty(self) -> bool:
        return self.account_info is None and not self.positions and not self.pending_orders
