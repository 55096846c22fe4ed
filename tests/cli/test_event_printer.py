from __future__ import annotations

import hedgeterminal.cli.event_printer as event_printer
from hedgeterminal.cli.event_printer import format_event, format_verified, print_event
from hedgeterminal.core.live_state.events import LiveStateUpdated
from hedgeterminal.core.ops.events import ChannelDisconnected
from hedgeterminal.core.orders.events import OrderPlaced, OrderVerifyRequested, SubmissionTimedOut
from hedgeterminal.core.orders.models import OrderRequest, OrderResult, OrderSide, OrderType, VerifiedOrder


def test_verify_request_shows_auto_lot_and_take_profit_levels() -> None:
    request = OrderRequest(
        account_id="p-1",
        symbol="EURUSD",
        entry_type=OrderSide.SELL,
        stop_loss=1.1,
        take_profit=(1.05, 1.0),
        order_type=OrderType.LIMIT,
        entry_price=1.08,
    )

    assert format_event(OrderVerifyRequested.now(request)) == (
        "VerifyRequested",
        "sell EURUSD type=Limit lot=auto sl=1.1 tp=1.05/1 entry=1.08",
    )


def test_format_verified_marks_missing_numbers() -> None:
    verified = VerifiedOrder(symbol="EURUSD", side="buy", order_type="Market", quantity=0.2, max_loss=40.0)

    assert format_verified(verified) == "buy EURUSD type=Market qty=0.2 sl=- tp=- max_loss=40 max_profit=-"


def test_other_events_have_one_line_summaries() -> None:
    placed = OrderPlaced.now(OrderResult(message=None, position_ids=("7",)))
    timed_out = SubmissionTimedOut.now(stage="confirm", timeout_secs=30.0)
    dropped = ChannelDisconnected.now(transport_id="T-1", reason="transport close")

    assert format_event(placed) == ("OrderPlaced", "ok positions=7")
    assert format_event(timed_out) == ("SubmissionTimeout", "no confirm response within 30s")
    assert format_event(dropped) == ("Channel", "disconnected transport=T-1 reason=transport close")


def test_print_event_skips_silent_events() -> None:
    printed: list[tuple[str, str]] = []
    original_print_line = event_printer._print_line
    try:
        event_printer._print_line = lambda _ts, label, message: printed.append((label, message))
        silent = LiveStateUpdated.now(kind="snapshot", transport_id="T-1", positions=0, pending_orders=0)
        assert print_event(silent) is False
        assert print_event(SubmissionTimedOut.now(stage="verify", timeout_secs=1.5)) is True
    finally:
        event_printer._print_line = original_print_line

    assert printed == [("SubmissionTimeout", "no verify response within 1.5s")]
