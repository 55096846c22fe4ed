from __future__ import annotations

import asyncio
import shlex
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from hedgeterminal.cli.event_printer import format_verified
from hedgeterminal.core.accounts.models import AccountSetup
from hedgeterminal.core.accounts.setup import AccountSetupService
from hedgeterminal.core.errors import DashboardError
from hedgeterminal.core.ops.events import CliErrorLogged
from hedgeterminal.core.orders.draft import draft_errors
from hedgeterminal.core.orders.models import SubmissionState
from hedgeterminal.core.orders.ports import EventBus
from hedgeterminal.core.payload import opt_float
from hedgeterminal.core.session.manager import SessionManager

CommandHandler = Callable[[list[str], dict[str, str]], Awaitable[None]]

_DRAFT_KEYS = {
    "symbol": "symbol",
    "side": "side",
    "lot": "lot_size",
    "lot_size": "lot_size",
    "sl": "stop_loss",
    "stop_loss": "stop_loss",
    "tp": "take_profit",
    "take_profit": "take_profit",
    "type": "order_type",
    "order_type": "order_type",
    "entry": "entry_price",
    "entry_price": "entry_price",
    "comment": "comment",
}


@dataclass(frozen=True)
class CommandSpec:
    name: str
    handler: CommandHandler
    help: str
    usage: str
    aliases: tuple[str, ...] = ()


class REPL:
    def __init__(
        self,
        session: SessionManager,
        *,
        setup_service: Optional[AccountSetupService] = None,
        event_bus: Optional[EventBus] = None,
        prompt: str = "hedge> ",
    ) -> None:
        self._session = session
        self._setup_service = setup_service
        self._event_bus = event_bus
        self._prompt = prompt
        self._pending_setup: Optional[AccountSetup] = None
        self._commands: dict[str, CommandSpec] = {}
        self._aliases: dict[str, str] = {}
        self._should_exit = False
        self._register_commands()

    async def run(self) -> None:
        print("HedgeTerminal console (type 'help' to list commands).")
        while not self._should_exit:
            try:
                line = await asyncio.to_thread(input, self._prompt)
            except EOFError:
                print()
                break
            await self.execute(line)

    async def execute(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        cmd_name, args, kwargs = self._parse_line(line)
        if cmd_name is None:
            return
        spec = self._resolve_command(cmd_name)
        if not spec:
            print(f"Unknown command: {cmd_name}. Type 'help' to list commands.")
            return
        try:
            await spec.handler(args, kwargs)
        except DashboardError as exc:
            print(f"Error: {exc}")
        except Exception as exc:
            print(f"Error: {exc}")
            if self._event_bus:
                self._event_bus.publish(
                    CliErrorLogged.now(
                        message=str(exc),
                        error_type=type(exc).__name__,
                        command=spec.name,
                        raw_input=line,
                    )
                )

    @property
    def should_exit(self) -> bool:
        return self._should_exit

    def _register_commands(self) -> None:
        specs = [
            CommandSpec("help", self._cmd_help, "Show available commands or help for a command.", "help [command]", ("?",)),
            CommandSpec("accounts", self._cmd_accounts, "List selectable accounts.", "accounts [refresh]"),
            CommandSpec("select", self._cmd_select, "Switch to an account by list number or id.", "select N|ID", ("use",)),
            CommandSpec("config", self._cmd_config, "Show the active account's risk configuration.", "config [refresh]"),
            CommandSpec(
                "set",
                self._cmd_set,
                "Edit the order draft.",
                "set [symbol=...] [side=buy|sell] [lot=...] [sl=...] [tp=a,b,..] [tpN=...] "
                "[type=Market|Stop|Limit] [entry=...] [comment=...]",
            ),
            CommandSpec("buy", self._cmd_buy, "Fill a buy draft and verify it.", "buy SYMBOL [lot=...] sl=... tp=... [type=...] [entry=...]"),
            CommandSpec("sell", self._cmd_sell, "Fill a sell draft and verify it.", "sell SYMBOL [lot=...] sl=... tp=... [type=...] [entry=...]"),
            CommandSpec("draft", self._cmd_draft, "Show the order draft and its problems.", "draft"),
            CommandSpec("clear", self._cmd_clear, "Reset the order draft.", "clear"),
            CommandSpec("verify", self._cmd_verify, "Ask the server to verify the draft.", "verify"),
            CommandSpec("confirm", self._cmd_confirm, "Place the verified order.", "confirm"),
            CommandSpec("cancel", self._cmd_cancel, "Drop the pending verification.", "cancel"),
            CommandSpec("status", self._cmd_status, "Show session and submission status.", "status"),
            CommandSpec("info", self._cmd_info, "Show live account metrics.", "info"),
            CommandSpec("positions", self._cmd_positions, "Show open positions.", "positions", ("pos",)),
            CommandSpec("orders", self._cmd_orders, "Show pending orders.", "orders"),
            CommandSpec(
                "add-account",
                self._cmd_add_account,
                "Verify a new brokerage account with the server.",
                "add-account broker=... account=... api_key=... location=... max_positions=... "
                "splitting=... [auto_lot=true risk=...] [daily_risk=... timezone=...]",
            ),
            CommandSpec("confirm-account", self._cmd_confirm_account, "Save the account verified by add-account.", "confirm-account"),
            CommandSpec("logout", self._cmd_logout, "Close the channel and forget accounts.", "logout"),
            CommandSpec("quit", self._cmd_quit, "Exit the console.", "quit", ("exit", "q")),
        ]
        for spec in specs:
            self._commands[spec.name] = spec
            for alias in spec.aliases:
                self._aliases[alias] = spec.name

    def _resolve_command(self, name: str) -> Optional[CommandSpec]:
        if name in self._commands:
            return self._commands[name]
        target = self._aliases.get(name)
        if target:
            return self._commands.get(target)
        return None

    def _parse_line(self, line: str) -> tuple[Optional[str], list[str], dict[str, str]]:
        try:
            tokens = shlex.split(line)
        except ValueError as exc:
            print(f"Parse error: {exc}")
            return None, [], {}
        if not tokens:
            return None, [], {}
        args: list[str] = []
        kwargs: dict[str, str] = {}
        for token in tokens[1:]:
            if "=" in token:
                key, value = token.split("=", 1)
                kwargs[key.strip().lstrip("-").lower().replace("-", "_")] = value
            else:
                args.append(token)
        return tokens[0].lower(), args, kwargs

    # ── Commands ─────────────────────────────────────────────────────────

    async def _cmd_help(self, args: list[str], _kwargs: dict[str, str]) -> None:
        if args:
            spec = self._resolve_command(args[0].lower())
            if not spec:
                print(f"No such command: {args[0]}")
                return
            print(f"{spec.name}: {spec.help}")
            print(f"Usage: {spec.usage}")
            return
        for spec in sorted(self._commands.values(), key=lambda s: s.name):
            print(f"{spec.name:<16} {spec.help}")

    async def _cmd_accounts(self, args: list[str], _kwargs: dict[str, str]) -> None:
        context = self._session.context
        if not context.accounts or (args and args[0].lower() == "refresh"):
            await self._session.load_accounts()
        if not context.accounts:
            print("No accounts available.")
            return
        for idx, account in enumerate(context.accounts, start=1):
            marker = "*" if context.active == account else " "
            print(f"{marker} {idx:>2}. {account.label:<24} id={account.persistent_id}")

    async def _cmd_select(self, args: list[str], _kwargs: dict[str, str]) -> None:
        if not args:
            print("Usage: select N|ID")
            return
        context = self._session.context
        key = args[0]
        account = None
        if key.isdigit() and 1 <= int(key) <= len(context.accounts):
            account = context.accounts[int(key) - 1]
        if account is None:
            account = context.find_account(key)
        if account is None:
            print(f"No such account: {key}")
            return
        await self._session.select_account(account)
        print(f"Active account: {account.label}")

    async def _cmd_config(self, args: list[str], _kwargs: dict[str, str]) -> None:
        if args and args[0].lower() == "refresh":
            await self._session.refresh_account_config()
        config = self._session.context.config
        if config is None:
            print("No account configuration loaded.")
            return
        print(f"auto lot size     {config.auto_lot_size_set}")
        print(f"take profit legs  {config.take_profit_slots}")
        print(f"risk %            {_num(config.risk_percentage)}")
        print(f"daily risk %      {_num(config.daily_risk_percentage)}")
        print(f"remaining daily   {_num(config.remaining_daily_risk)}")
        print(f"max positions     {config.max_position_limit if config.max_position_limit is not None else '-'}")
        print(f"timezone          {config.timezone or '-'}")

    async def _cmd_set(self, _args: list[str], kwargs: dict[str, str]) -> None:
        if not kwargs:
            print(f"Usage: {self._commands['set'].usage}")
            return
        self._apply_draft_edits(kwargs)
        await self._cmd_draft([], {})

    async def _cmd_buy(self, args: list[str], kwargs: dict[str, str]) -> None:
        await self._fill_and_verify("buy", args, kwargs)

    async def _cmd_sell(self, args: list[str], kwargs: dict[str, str]) -> None:
        await self._fill_and_verify("sell", args, kwargs)

    async def _fill_and_verify(self, side: str, args: list[str], kwargs: dict[str, str]) -> None:
        edits = dict(kwargs)
        edits["side"] = side
        if args:
            edits["symbol"] = args[0]
        self._apply_draft_edits(edits)
        await self._cmd_verify([], {})

    async def _cmd_draft(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        context = self._session.context
        draft = context.draft
        tps = ", ".join(level or "_" for level in draft.take_profit)
        print(
            f"{draft.side.value} {draft.symbol or '_'} type={draft.order_type.value} "
            f"lot={draft.lot_size or '_'} sl={draft.stop_loss or '_'} tp=[{tps}]"
            + (f" entry={draft.entry_price}" if draft.entry_price else "")
            + (f" comment={draft.comment!r}" if draft.comment else "")
        )
        for problem in draft_errors(draft, account=context.active, config=context.config):
            print(f"  - {problem}")

    async def _cmd_clear(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        self._session.coordinator.reset_draft()
        print("Draft cleared.")

    async def _cmd_verify(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        coordinator = self._session.coordinator
        if coordinator.state != SubmissionState.IDLE:
            print(f"Cannot verify while {coordinator.state.value}.")
            return
        coordinator.verify()
        print("Verify queued.")

    async def _cmd_confirm(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        coordinator = self._session.coordinator
        verified = coordinator.verified_order
        if coordinator.state != SubmissionState.AWAITING_CONFIRMATION or verified is None:
            if verified is None:
                print("Nothing to confirm; run verify first.")
            else:
                print(f"Cannot confirm while {coordinator.state.value}.")
            return
        print(f"Placing: {format_verified(verified)}")
        coordinator.confirm()

    async def _cmd_cancel(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        self._session.coordinator.cancel()
        print(f"Submission state: {self._session.coordinator.state.value}")

    async def _cmd_status(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        status = self._session.status()
        state = "connected" if status["connected"] else "disconnected"
        print(
            f"{state} - account={status['account'] or '-'} transport={status['transport_id'] or '-'} "
            f"submission={status['submission_state']}"
        )
        verified = self._session.coordinator.verified_order
        if verified is not None:
            print(f"awaiting confirmation: {format_verified(verified)}")
        error = self._session.context.last_error
        if error is not None:
            print(f"last error: {type(error).__name__}: {error}")

    async def _cmd_info(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        info = self._session.context.live.account_info
        if info is None:
            print("No live account data yet.")
            return
        print(f"{info.name or '-'} login={info.login or '-'} {info.broker or '-'} {info.server or '-'} {info.platform or '-'}")
        print(
            f"balance={_num(info.balance)} equity={_num(info.equity)} margin={_num(info.margin)} "
            f"free={_num(info.free_margin)} credit={_num(info.credit)} leverage={_num(info.leverage)}"
        )

    async def _cmd_positions(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        positions = self._session.context.live.positions
        if not positions:
            print("No open positions.")
            return
        for pos in positions:
            print(
                f"{pos.position_id:<10} {pos.symbol:<10} {pos.side or '':<5} lot={_num(pos.lot_size)} "
                f"sl={_num(pos.stop_loss)} tp={_num(pos.take_profit)} pnl={_num(pos.profit_loss)}"
            )

    async def _cmd_orders(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        orders = self._session.context.live.pending_orders
        if not orders:
            print("No pending orders.")
            return
        for order in orders:
            print(
                f"{order.order_id:<10} {order.symbol:<10} {order.side or '':<5} {order.order_type or '':<7} "
                f"lot={_num(order.lot_size)} entry={_num(order.entry_price)} "
                f"sl={_num(order.stop_loss)} tp={_num(order.take_profit)}"
            )

    async def _cmd_add_account(self, _args: list[str], kwargs: dict[str, str]) -> None:
        if not self._setup_service:
            print("Account setup not configured.")
            return
        setup = AccountSetup(
            broker_name=kwargs.get("broker", ""),
            account_id=kwargs.get("account", ""),
            api_key=kwargs.get("api_key", ""),
            location=kwargs.get("location", ""),
            max_position_limit=opt_float(kwargs.get("max_positions")),
            splitting_target=opt_float(kwargs.get("splitting")),
            risk_percentage=opt_float(kwargs.get("risk")),
            auto_lot_size_set=_parse_bool(kwargs.get("auto_lot", "false")),
            daily_risk_percentage=opt_float(kwargs.get("daily_risk")),
            timezone=kwargs.get("timezone", ""),
        )
        info = await self._setup_service.verify(setup)
        self._pending_setup = setup
        print("Account verified. Run 'confirm-account' to save it.")
        if info:
            for key in sorted(info):
                print(f"  {key}: {info[key]}")

    async def _cmd_confirm_account(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        if not self._setup_service or self._pending_setup is None:
            print("Nothing to confirm; run add-account first.")
            return
        await self._setup_service.confirm(self._pending_setup)
        self._pending_setup = None
        await self._session.load_accounts()
        print("Account saved.")

    async def _cmd_logout(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        await self._session.logout()
        print("Logged out.")

    async def _cmd_quit(self, _args: list[str], _kwargs: dict[str, str]) -> None:
        self._should_exit = True

    def _apply_draft_edits(self, kwargs: dict[str, str]) -> None:
        coordinator = self._session.coordinator
        changes: dict[str, str] = {}
        slots: dict[int, str] = {}
        for key, value in kwargs.items():
            if key.startswith("tp") and key[2:].isdigit():
                slots[int(key[2:]) - 1] = value
                continue
            field_name = _DRAFT_KEYS.get(key)
            if field_name is None:
                raise ValueError(f"unknown draft field: {key}")
            changes[field_name] = value
        if changes:
            coordinator.edit_draft(**changes)
        for index, value in sorted(slots.items()):
            coordinator.set_take_profit(index, value)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _num(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value:g}"
