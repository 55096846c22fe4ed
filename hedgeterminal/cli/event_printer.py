from __future__ import annotations

import sys
from datetime import datetime
from typing import Optional

from hedgeterminal.core.accounts.events import (
    AccountConfigFailed,
    AccountConfigLoaded,
    AccountSelected,
    AccountSetupConfirmed,
    AccountSetupFailed,
    AccountSetupVerified,
    AccountsLoaded,
    AccountsLoadFailed,
)
from hedgeterminal.core.ops.events import (
    ChannelClosed,
    ChannelConnected,
    ChannelDisconnected,
    ChannelOpenFailed,
    CliErrorLogged,
)
from hedgeterminal.core.orders.events import (
    OrderPlaced,
    OrderPlaceFailed,
    OrderPlaceRequested,
    OrderValidationFailed,
    OrderVerified,
    OrderVerifyFailed,
    OrderVerifyRequested,
    SubmissionStateChanged,
    SubmissionTimedOut,
    SubmissionTransportFailed,
)
from hedgeterminal.core.orders.models import OrderRequest, VerifiedOrder

try:
    import readline
except ImportError:  # pragma: no cover - platform dependent
    readline = None  # type: ignore[assignment]


def print_event(event: object) -> bool:
    """Print a one-line summary of ``event``; returns False for silent events."""
    line = format_event(event)
    if line is None:
        return False
    label, message = line
    _print_line(getattr(event, "timestamp", None), label, message)
    return True


def format_event(event: object) -> Optional[tuple[str, str]]:
    if isinstance(event, AccountsLoaded):
        return "Accounts", f"{event.count} account(s) available"
    if isinstance(event, AccountsLoadFailed):
        return "AccountsFailed", event.error
    if isinstance(event, AccountSelected):
        return "AccountSelected", f"{event.persistent_id} transport={event.transport_id}"
    if isinstance(event, AccountConfigLoaded):
        config = event.config
        return (
            "AccountConfig",
            f"{event.persistent_id} auto_lot={config.auto_lot_size_set} "
            f"tp_legs={config.take_profit_slots} risk={_num(config.risk_percentage)}% "
            f"remaining_daily={_num(config.remaining_daily_risk)}",
        )
    if isinstance(event, AccountConfigFailed):
        return "AccountConfigFailed", f"{event.persistent_id} error={event.error}"
    if isinstance(event, AccountSetupVerified):
        return "AccountVerified", event.account_id
    if isinstance(event, AccountSetupConfirmed):
        return "AccountConfirmed", event.account_id
    if isinstance(event, AccountSetupFailed):
        return "AccountSetupFailed", f"{event.account_id} {event.stage}: {event.error}"
    if isinstance(event, ChannelConnected):
        return "Channel", f"connected transport={event.transport_id}"
    if isinstance(event, ChannelDisconnected):
        reason = f" reason={event.reason}" if event.reason else ""
        return "Channel", f"disconnected transport={event.transport_id}{reason}"
    if isinstance(event, ChannelOpenFailed):
        return "ChannelFailed", f"transport={event.transport_id} {event.error_type}: {event.message}"
    if isinstance(event, ChannelClosed):
        return "Channel", f"closed transport={event.transport_id} reason={event.reason}"
    if isinstance(event, SubmissionStateChanged):
        return "Submission", f"{event.previous.value} -> {event.current.value}"
    if isinstance(event, OrderValidationFailed):
        return "OrderInvalid", f"{event.stage}: {event.message}"
    if isinstance(event, OrderVerifyRequested):
        return "VerifyRequested", _format_request(event.request)
    if isinstance(event, OrderVerified):
        return "Verified", format_verified(event.verified)
    if isinstance(event, OrderVerifyFailed):
        return "VerifyFailed", event.error
    if isinstance(event, OrderPlaceRequested):
        return "PlaceRequested", _format_request(event.request)
    if isinstance(event, OrderPlaced):
        ids = ",".join(event.result.position_ids) or "-"
        return "OrderPlaced", f"{event.result.message or 'ok'} positions={ids}"
    if isinstance(event, OrderPlaceFailed):
        return "OrderFailed", event.error
    if isinstance(event, SubmissionTransportFailed):
        return "SubmissionFailed", f"{event.stage}: {event.error}"
    if isinstance(event, SubmissionTimedOut):
        return "SubmissionTimeout", f"no {event.stage} response within {event.timeout_secs:g}s"
    if isinstance(event, CliErrorLogged):
        return "CliError", f"{event.error_type}: {event.message}"
    return None


def format_verified(verified: VerifiedOrder) -> str:
    parts = [
        verified.side or "?",
        verified.symbol or "?",
        f"type={verified.order_type or '?'}",
        f"qty={_num(verified.quantity)}",
        f"sl={_num(verified.stop_loss)}",
        f"tp={_tp(verified.take_profit)}",
        f"max_loss={_num(verified.max_loss)}",
        f"max_profit={_num(verified.max_profit)}",
    ]
    if verified.entry_price is not None:
        parts.append(f"entry={_num(verified.entry_price)}")
    return " ".join(parts)


def _format_request(request: OrderRequest) -> str:
    parts = [
        request.entry_type.value,
        request.symbol,
        f"type={request.order_type.value}",
        f"lot={_num(request.lot_size) if request.lot_size is not None else 'auto'}",
        f"sl={_num(request.stop_loss)}",
        f"tp={_tp(request.take_profit)}",
    ]
    if request.entry_price is not None:
        parts.append(f"entry={_num(request.entry_price)}")
    return " ".join(parts)


def _tp(value: object) -> str:
    if isinstance(value, tuple):
        return "/".join(_num(level) for level in value)
    return _num(value)  # type: ignore[arg-type]


def _num(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value:g}"


def _print_line(timestamp: Optional[datetime], label: str, message: str) -> None:
    if timestamp:
        print(f"[{_format_time(timestamp)}] {label}: {message}")
    else:
        print(f"{label}: {message}")


def _format_time(timestamp: datetime) -> str:
    return timestamp.astimezone().strftime("%H:%M:%S")


def make_prompting_event_printer(prompt: str):
    def _handler(event: object) -> None:
        if format_event(event) is None:
            return
        buffer = ""
        if readline is not None:
            buffer = readline.get_line_buffer()
            # Clear the current input line before printing async output.
            sys.stdout.write("\r\x1b[2K")
            sys.stdout.flush()
        print_event(event)
        if readline is not None:
            # Redraw the prompt and any partially typed input.
            sys.stdout.write(prompt + buffer)
            sys.stdout.flush()
            return
        print(prompt, end="", flush=True)

    return _handler
