from __future__ import annotations

import pytest

from hedgeterminal.core.accounts.models import AccountConfig, AccountRef
from hedgeterminal.core.errors import OrderValidationError
from hedgeterminal.core.orders.draft import (
    build_order_request,
    coerce_order_type,
    draft_errors,
    is_form_valid,
    normalize_take_profit,
)
from hedgeterminal.core.orders.models import OrderDraft, OrderSide, OrderType

_ACCOUNT = AccountRef(persistent_id="p-1", transport_id="T-1", broker_name="Acme")


def _draft(**overrides: object) -> OrderDraft:
    values: dict[str, object] = {
        "symbol": "eurusd",
        "lot_size": "0.1",
        "stop_loss": "1.1000",
        "take_profit": ["1.2000"],
    }
    values.update(overrides)
    return OrderDraft(**values)  # type: ignore[arg-type]


def test_stop_loss_boundary_decides_form_validity() -> None:
    assert is_form_valid(_draft(stop_loss="0"), account=_ACCOUNT, config=None) is False
    assert is_form_valid(_draft(stop_loss="-1"), account=_ACCOUNT, config=None) is False
    assert is_form_valid(_draft(stop_loss=""), account=_ACCOUNT, config=None) is False
    assert is_form_valid(_draft(stop_loss="0.00001"), account=_ACCOUNT, config=None) is True


def test_invalid_stop_loss_wins_even_when_everything_else_is_valid() -> None:
    config = AccountConfig(auto_lot_size_set=True)
    draft = _draft(stop_loss="0", lot_size="")

    assert draft_errors(draft, account=_ACCOUNT, config=config) == ["stop loss must be greater than zero"]


def test_form_requires_account_symbol_and_take_profit() -> None:
    draft = _draft(symbol="  ", take_profit=["", ""])

    errors = draft_errors(draft, account=None, config=None)

    assert errors == [
        "no account selected",
        "symbol is required",
        "at least one take profit is required",
    ]


def test_take_profit_levels_must_be_positive() -> None:
    draft = _draft(take_profit=["1.2", "abc"])

    assert "take profit levels must be greater than zero" in draft_errors(draft, account=_ACCOUNT, config=None)


def test_lot_size_required_unless_auto_lot_size() -> None:
    draft = _draft(lot_size="")

    assert is_form_valid(draft, account=_ACCOUNT, config=AccountConfig()) is False
    assert is_form_valid(draft, account=_ACCOUNT, config=AccountConfig(auto_lot_size_set=True)) is True


def test_stop_and_limit_orders_need_an_entry_price() -> None:
    for order_type in (OrderType.STOP, OrderType.LIMIT):
        draft = _draft(order_type=order_type)
        assert is_form_valid(draft, account=_ACCOUNT, config=None) is False
        draft.entry_price = "1.0950"
        assert is_form_valid(draft, account=_ACCOUNT, config=None) is True


def test_eurusd_draft_normalizes_to_request() -> None:
    request = build_order_request(_draft(order_type="Market"), account=_ACCOUNT, config=None)

    assert request.symbol == "EURUSD"
    assert request.stop_loss == 1.1
    assert request.take_profit == 1.2
    assert request.lot_size == 0.1
    assert request.entry_price is None
    assert request.to_payload() == {
        "accountId": "p-1",
        "symbol": "EURUSD",
        "entryType": "buy",
        "stopLoss": 1.1,
        "takeProfit": 1.2,
        "orderType": "Market",
        "lotSize": 0.1,
    }


def test_auto_lot_size_omits_lot_size_from_payload() -> None:
    config = AccountConfig(auto_lot_size_set=True)
    draft = _draft(lot_size="")

    assert is_form_valid(draft, account=_ACCOUNT, config=config) is True
    payload = build_order_request(draft, account=_ACCOUNT, config=config).to_payload()

    assert "lotSize" not in payload


def test_auto_lot_size_ignores_a_typed_lot_size() -> None:
    config = AccountConfig(auto_lot_size_set=True)

    payload = build_order_request(_draft(lot_size="2"), account=_ACCOUNT, config=config).to_payload()

    assert "lotSize" not in payload


def test_market_orders_drop_entry_price_and_limit_orders_keep_it() -> None:
    market = build_order_request(_draft(entry_price="1.05"), account=_ACCOUNT, config=None)
    limit = build_order_request(
        _draft(order_type=OrderType.LIMIT, entry_price="1.05", side=OrderSide.SELL, comment=" hedge "),
        account=_ACCOUNT,
        config=None,
    )

    assert "entryPrice" not in market.to_payload()
    payload = limit.to_payload()
    assert payload["entryPrice"] == 1.05
    assert payload["entryType"] == "sell"
    assert payload["orderType"] == "Limit"
    assert payload["comment"] == "hedge"


def test_take_profit_is_scalar_for_one_level_and_list_for_many() -> None:
    assert normalize_take_profit(["1.2", ""]) == 1.2
    assert normalize_take_profit(["1.2", "", "1.3"]) == (1.2, 1.3)

    request = build_order_request(_draft(take_profit=["1.2", "1.25", "1.3"]), account=_ACCOUNT, config=None)
    assert request.to_payload()["takeProfit"] == [1.2, 1.25, 1.3]


def test_build_order_request_raises_first_validation_error() -> None:
    with pytest.raises(OrderValidationError, match="symbol is required"):
        build_order_request(_draft(symbol=""), account=_ACCOUNT, config=None)


def test_coerce_order_type_accepts_lowercase_and_rejects_unknown() -> None:
    assert coerce_order_type("limit") is OrderType.LIMIT
    with pytest.raises(OrderValidationError, match="invalid order_type"):
        coerce_order_type("trailing")


def test_empty_draft_has_one_slot_per_splitting_target() -> None:
    for splitting, slots in ((None, 1), (0, 1), (1, 1), (3, 3)):
        config = AccountConfig(splitting_target=splitting)
        assert len(OrderDraft.empty(config.take_profit_slots).take_profit) == slots


def test_build_order_request_without_account_is_rejected() -> None:
    with pytest.raises(OrderValidationError, match="no account selected"):
        build_order_request(_draft(), account=None, config=None)
