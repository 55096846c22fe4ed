from __future__ import annotations

from typing import Optional

from hedgeterminal.core.accounts.models import AccountConfig, AccountRef
from hedgeterminal.core.errors import OrderValidationError
from hedgeterminal.core.orders.models import (
    OrderDraft,
    OrderRequest,
    OrderSide,
    OrderType,
    TakeProfit,
)
from hedgeterminal.core.payload import opt_float


def draft_errors(
    draft: OrderDraft,
    *,
    account: Optional[AccountRef],
    config: Optional[AccountConfig],
) -> list[str]:
    """Return every reason the draft cannot be submitted, in form order."""
    errors: list[str] = []
    if account is None:
        errors.append("no account selected")
    if not draft.symbol.strip():
        errors.append("symbol is required")
    if not _auto_lot_size(config) and not _positive(draft.lot_size):
        errors.append("lot size must be greater than zero")
    if not _positive(draft.stop_loss):
        errors.append("stop loss must be greater than zero")
    filled = [level for level in draft.take_profit if level.strip()]
    if not filled:
        errors.append("at least one take profit is required")
    elif not all(_positive(level) for level in filled):
        errors.append("take profit levels must be greater than zero")
    try:
        coerce_side(draft.side)
    except OrderValidationError as exc:
        errors.append(str(exc))
    try:
        order_type: Optional[OrderType] = coerce_order_type(draft.order_type)
    except OrderValidationError as exc:
        errors.append(str(exc))
        order_type = None
    if order_type in (OrderType.STOP, OrderType.LIMIT) and not _positive(draft.entry_price):
        errors.append("entry price must be greater than zero for stop and limit orders")
    return errors


def is_form_valid(
    draft: OrderDraft,
    *,
    account: Optional[AccountRef],
    config: Optional[AccountConfig],
) -> bool:
    return not draft_errors(draft, account=account, config=config)


def validate_draft(
    draft: OrderDraft,
    *,
    account: Optional[AccountRef],
    config: Optional[AccountConfig],
) -> None:
    errors = draft_errors(draft, account=account, config=config)
    if errors:
        raise OrderValidationError(errors[0])


def build_order_request(
    draft: OrderDraft,
    *,
    account: Optional[AccountRef],
    config: Optional[AccountConfig],
) -> OrderRequest:
    """Validate the draft and normalize it into the outbound request.

    The symbol is uppercased, numeric fields are coerced, blank take-profit
    slots are dropped and a single remaining level is sent as a scalar.
    """
    validate_draft(draft, account=account, config=config)
    if account is None:
        raise OrderValidationError("no account selected")
    order_type = coerce_order_type(draft.order_type)
    lot_size = None if _auto_lot_size(config) else opt_float(draft.lot_size)
    entry_price = None if order_type == OrderType.MARKET else opt_float(draft.entry_price)
    comment = draft.comment.strip() or None
    return OrderRequest(
        account_id=account.persistent_id,
        symbol=draft.symbol.strip().upper(),
        entry_type=coerce_side(draft.side),
        stop_loss=_required_float(draft.stop_loss),
        take_profit=normalize_take_profit(draft.take_profit),
        order_type=order_type,
        lot_size=lot_size,
        entry_price=entry_price,
        comment=comment,
    )


def normalize_take_profit(levels: list[str]) -> TakeProfit:
    values = tuple(_required_float(level) for level in levels if level.strip())
    if len(values) == 1:
        return values[0]
    return values


def _auto_lot_size(config: Optional[AccountConfig]) -> bool:
    return bool(config and config.auto_lot_size_set)


def _positive(text: str) -> bool:
    value = opt_float(text)
    return value is not None and value > 0


def _required_float(text: str) -> float:
    value = opt_float(text)
    if value is None:
        raise OrderValidationError(f"invalid number: {text!r}")
    return value


def coerce_side(value: object) -> OrderSide:
    if isinstance(value, OrderSide):
        return value
    if isinstance(value, str):
        try:
            return OrderSide(value.strip().lower())
        except ValueError:
            pass
    raise OrderValidationError(f"invalid side: {value}")


def coerce_order_type(value: object) -> OrderType:
    if isinstance(value, OrderType):
        return value
    if isinstance(value, str):
        normalized = value.strip().capitalize()
        try:
            return OrderType(normalized)
        except ValueError:
            pass
    raise OrderValidationError(f"invalid order_type: {value}")
