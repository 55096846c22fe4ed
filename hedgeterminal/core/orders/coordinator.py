from __future__ import annotations

import asyncio
import inspect
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from hedgeterminal.core.errors import (
    DashboardError,
    DomainError,
    DraftLockedError,
    OrderValidationError,
    SubmissionTimeoutError,
    TransportError,
)
from hedgeterminal.core.orders.debounce import Debouncer
from hedgeterminal.core.orders.draft import (
    build_order_request,
    coerce_order_type,
    coerce_side,
)
from hedgeterminal.core.orders.events import (
    OrderPlaced,
    OrderPlaceFailed,
    OrderPlaceRequested,
    OrderValidationFailed,
    OrderVerified,
    OrderVerifyFailed,
    OrderVerifyRequested,
    StaleResponseDiscarded,
    SubmissionStateChanged,
    SubmissionTimedOut,
    SubmissionTransportFailed,
)
from hedgeterminal.core.orders.models import (
    OrderDraft,
    OrderRequest,
    SubmissionState,
    VerifiedOrder,
)
from hedgeterminal.core.orders.ports import EventBus, OrderChannelPort
from hedgeterminal.core.session.context import DashboardContext
from hedgeterminal.core.stream.events import OrderResponse, VerifyOrderResponse

OrderPlacedHook = Callable[[], Awaitable[None] | None]

_DRAFT_FIELDS = frozenset(
    {"symbol", "side", "lot_size", "stop_loss", "take_profit", "order_type", "entry_price", "comment"}
)
_IN_FLIGHT = (SubmissionState.VERIFYING, SubmissionState.CONFIRMING)


@dataclass(frozen=True)
class SubmissionSettings:
    debounce_secs: float = 0.5
    response_timeout_secs: Optional[float] = 30.0

    @classmethod
    def from_env(cls) -> "SubmissionSettings":
        timeout = float(os.getenv("HT_RESPONSE_TIMEOUT", "30"))
        return cls(
            debounce_secs=float(os.getenv("HT_DEBOUNCE_MS", "500")) / 1000.0,
            response_timeout_secs=timeout if timeout > 0 else None,
        )


class SubmissionCoordinator:
    """Two-phase verify/confirm state machine over the account's push channel.

    The channel carries no request ids, so a response is matched to the
    request only by the state the machine is in when it arrives: at most one
    request is in flight, and a response arriving in any other state is stale.
    """

    def __init__(
        self,
        context: DashboardContext,
        channel: OrderChannelPort,
        *,
        event_bus: Optional[EventBus] = None,
        on_order_placed: Optional[OrderPlacedHook] = None,
        settings: Optional[SubmissionSettings] = None,
    ) -> None:
        self._context = context
        self._channel = channel
        self._event_bus = event_bus
        self._on_order_placed = on_order_placed
        self._settings = settings or SubmissionSettings()
        self._debouncer = Debouncer(self._settings.debounce_secs)
        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        self._attempt = 0
        self._tasks: set[asyncio.Future] = set()

    @property
    def state(self) -> SubmissionState:
        return self._context.submission_state

    @property
    def verified_order(self) -> Optional[VerifiedOrder]:
        return self._context.verified_order

    @property
    def settings(self) -> SubmissionSettings:
        return self._settings

    # ── User actions ─────────────────────────────────────────────────────

    def verify(self) -> None:
        if self.state != SubmissionState.IDLE:
            logger.debug("verify ignored in state {}", self.state.value)
            return
        self._debouncer.call(self._run_verify)

    def confirm(self) -> None:
        if self.state != SubmissionState.AWAITING_CONFIRMATION:
            logger.debug("confirm ignored in state {}", self.state.value)
            return
        self._debouncer.call(self._run_confirm)

    def cancel(self) -> None:
        self._debouncer.cancel()
        if self.state in (SubmissionState.VERIFYING, SubmissionState.AWAITING_CONFIRMATION):
            self._attempt += 1
            self._clear_timeout()
            self._context.verified_order = None
            self._set_state(SubmissionState.IDLE)

    def reset(self) -> None:
        """Return to rest without surfacing anything; used on account changes."""
        self._debouncer.cancel()
        self._attempt += 1
        self._clear_timeout()
        self._context.verified_order = None
        self._set_state(SubmissionState.IDLE)

    async def drain(self) -> None:
        """Wait for fired debounced calls and post-order hooks to finish."""
        await self._debouncer.drain()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── Draft editing ────────────────────────────────────────────────────

    def edit_draft(self, **changes: Any) -> OrderDraft:
        """Apply field edits to the shared draft.

        Edits are refused while a request is in flight. An edit made while a
        verified preview is awaiting confirmation discards the preview, so the
        draft must be verified again before it can be confirmed.
        """
        unknown = set(changes) - _DRAFT_FIELDS
        if unknown:
            raise OrderValidationError(f"unknown draft field(s): {', '.join(sorted(unknown))}")
        self._ensure_unlocked()
        draft = self._context.draft
        for name, value in changes.items():
            if name == "side":
                value = coerce_side(value)
            elif name == "order_type":
                value = coerce_order_type(value)
            elif name == "take_profit":
                value = self._take_profit_slots(value)
            elif value is None:
                value = ""
            else:
                value = str(value)
            setattr(draft, name, value)
        self._discard_preview()
        return draft

    def set_take_profit(self, index: int, value: str) -> OrderDraft:
        self._ensure_unlocked()
        draft = self._context.draft
        if index < 0 or index >= len(draft.take_profit):
            raise OrderValidationError(
                f"take profit slot {index + 1} is out of range (1-{len(draft.take_profit)})"
            )
        draft.take_profit[index] = str(value)
        self._discard_preview()
        return draft

    def reset_draft(self) -> OrderDraft:
        self._ensure_unlocked()
        self._context.draft = OrderDraft.empty(self._context.take_profit_slots)
        self._discard_preview()
        return self._context.draft

    def resize_take_profits(self, slots: int) -> None:
        draft = self._context.draft
        resized = draft.resized(slots)
        if resized == draft.take_profit:
            return
        draft.take_profit = resized
        if self.state == SubmissionState.AWAITING_CONFIRMATION:
            self._discard_preview()

    # ── Push responses ───────────────────────────────────────────────────

    def handle_verify_response(self, event: VerifyOrderResponse) -> None:
        if self.state != SubmissionState.VERIFYING:
            self._discard_stale("verify-order-response", event.error)
            return
        self._clear_timeout()
        if event.error:
            self._set_state(SubmissionState.IDLE)
            self._surface(DomainError(event.error), OrderVerifyFailed.now(error=event.error))
            return
        verified = event.verified or VerifiedOrder()
        self._context.verified_order = verified
        self._context.last_error = None
        self._set_state(SubmissionState.AWAITING_CONFIRMATION)
        self._publish(OrderVerified.now(verified))

    def handle_order_response(self, event: OrderResponse) -> None:
        if self.state != SubmissionState.CONFIRMING:
            self._discard_stale("order-response", event.error)
            return
        self._clear_timeout()
        self._context.verified_order = None
        if event.error:
            self._set_state(SubmissionState.IDLE)
            self._surface(DomainError(event.error), OrderPlaceFailed.now(error=event.error))
            return
        self._context.draft = OrderDraft.empty(self._context.take_profit_slots)
        self._context.last_error = None
        self._set_state(SubmissionState.IDLE)
        if event.result is not None:
            self._publish(OrderPlaced.now(event.result))
        if self._on_order_placed:
            self._spawn(self._on_order_placed())

    # ── Round trips ──────────────────────────────────────────────────────

    async def _run_verify(self) -> None:
        if self.state != SubmissionState.IDLE:
            return
        request = self._build_request("verify")
        if request is None:
            return
        self._set_state(SubmissionState.VERIFYING)
        self._publish(OrderVerifyRequested.now(request))
        await self._send("verify", request, self._channel.verify_order)

    async def _run_confirm(self) -> None:
        if self.state != SubmissionState.AWAITING_CONFIRMATION:
            return
        # the account config may have changed since verification
        request = self._build_request("confirm")
        if request is None:
            return
        self._set_state(SubmissionState.CONFIRMING)
        self._publish(OrderPlaceRequested.now(request))
        await self._send("confirm", request, self._channel.place_order)

    def _build_request(self, stage: str) -> Optional[OrderRequest]:
        context = self._context
        try:
            return build_order_request(context.draft, account=context.active, config=context.config)
        except OrderValidationError as exc:
            self._surface(exc, OrderValidationFailed.now(stage=stage, message=str(exc)))
            return None

    async def _send(
        self,
        stage: str,
        request: OrderRequest,
        sender: Callable[[dict[str, Any]], Awaitable[None]],
    ) -> None:
        expected = self.state
        attempt = self._arm_timeout(stage)
        try:
            await sender(request.to_payload())
        except TransportError as exc:
            if self.state != expected or self._attempt != attempt:
                logger.debug("Dropping {} failure from a superseded attempt: {}", stage, exc)
                return
            self._clear_timeout()
            self._context.verified_order = None
            self._set_state(SubmissionState.IDLE)
            self._surface(exc, SubmissionTransportFailed.now(stage=stage, error=str(exc)))

    def _arm_timeout(self, stage: str) -> int:
        self._clear_timeout()
        self._attempt += 1
        timeout = self._settings.response_timeout_secs
        if timeout is not None:
            loop = asyncio.get_running_loop()
            self._timeout_handle = loop.call_later(timeout, self._on_timeout, stage, self._attempt)
        return self._attempt

    def _clear_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _on_timeout(self, stage: str, attempt: int) -> None:
        self._timeout_handle = None
        if attempt != self._attempt or self.state not in _IN_FLIGHT:
            return
        timeout = self._settings.response_timeout_secs or 0.0
        self._context.verified_order = None
        self._set_state(SubmissionState.IDLE)
        self._surface(
            SubmissionTimeoutError(f"no {stage} response within {timeout:g}s"),
            SubmissionTimedOut.now(stage=stage, timeout_secs=timeout),
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def _ensure_unlocked(self) -> None:
        if self.state in _IN_FLIGHT:
            raise DraftLockedError(f"order draft is locked while {self.state.value}")

    def _discard_preview(self) -> None:
        if self.state != SubmissionState.AWAITING_CONFIRMATION:
            return
        self._debouncer.cancel()
        self._context.verified_order = None
        self._set_state(SubmissionState.IDLE)

    def _take_profit_slots(self, value: Any) -> list[str]:
        if value is None:
            levels: list[str] = []
        elif isinstance(value, str):
            levels = [item.strip() for item in value.split(",")]
        else:
            levels = ["" if item is None else str(item) for item in value]
        slots = self._context.take_profit_slots
        if len(levels) > slots:
            raise OrderValidationError(f"account allows {slots} take profit level(s), got {len(levels)}")
        return levels + [""] * (slots - len(levels))

    def _discard_stale(self, response_type: str, error: Optional[str]) -> None:
        logger.debug("Discarding stale {} in state {}", response_type, self.state.value)
        self._publish(StaleResponseDiscarded.now(response_type=response_type, state=self.state, error=error))

    def _set_state(self, state: SubmissionState) -> None:
        previous = self._context.submission_state
        if previous == state:
            return
        self._context.submission_state = state
        self._publish(SubmissionStateChanged.now(previous=previous, current=state))

    def _surface(self, error: DashboardError, event: object) -> None:
        self._context.last_error = error
        logger.warning("{}: {}", type(error).__name__, error)
        self._publish(event)

    def _publish(self, event: object) -> None:
        if self._event_bus:
            self._event_bus.publish(event)

    def _spawn(self, result: Awaitable[None] | None) -> None:
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Post-order hook failed")
