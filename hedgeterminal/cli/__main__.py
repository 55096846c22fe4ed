import asyncio
import os
import sys
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from hedgeterminal.adapters.eventbus.in_process import InProcessEventBus
from hedgeterminal.adapters.logging.jsonl_logger import JsonlEventLogger
from hedgeterminal.adapters.rest.account_directory import DirectoryConfig, HttpAccountDirectory
from hedgeterminal.adapters.stream.socketio_channel import ChannelConfig, socketio_channel_factory
from hedgeterminal.api.main import create_app
from hedgeterminal.cli.event_printer import make_prompting_event_printer
from hedgeterminal.cli.repl import REPL
from hedgeterminal.core.accounts.setup import AccountSetupService
from hedgeterminal.core.errors import TransportError
from hedgeterminal.core.orders.coordinator import SubmissionSettings
from hedgeterminal.core.session.manager import SessionManager


def _parse_port(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        print(f"Invalid HT_API_PORT value: {value}. API disabled.")
        return None


def _api_server(session: SessionManager) -> Optional[uvicorn.Server]:
    """Build the JSON view server when HT_API_PORT is set."""
    port = _parse_port(os.getenv("HT_API_PORT"))
    if port is None:
        return None
    config = uvicorn.Config(
        create_app(session),
        host=os.getenv("HT_API_HOST", "127.0.0.1"),
        port=port,
        log_level="warning",
    )
    return uvicorn.Server(config)


async def _run(session: SessionManager, repl: REPL, server: Optional[uvicorn.Server] = None) -> None:
    # the API runs on this loop beside the REPL
    api_task = asyncio.create_task(server.serve()) if server is not None else None
    try:
        try:
            await session.load_accounts()
            await session.select_default_account()
        except TransportError as exc:
            print(f"Could not load accounts: {exc}")
        await repl.run()
    finally:
        if api_task is not None:
            server.should_exit = True
            await api_task
        await session.close()


def main() -> None:
    load_dotenv()
    # Diagnostics go to stderr so they do not interleave with command output.
    logger.remove()
    logger.add(sys.stderr, level=os.getenv("HT_LOG_LEVEL", "INFO"))

    token = os.getenv("HT_TOKEN")
    if not token:
        raise SystemExit("HT_TOKEN is not set.")

    bus = InProcessEventBus()
    prompt = "hedge> "
    bus.subscribe(object, make_prompting_event_printer(prompt))
    log_path = os.getenv("HT_EVENT_LOG_PATH", "hedgeterminal/journal/events.jsonl")
    if log_path:
        bus.subscribe(object, JsonlEventLogger(log_path).handle)

    directory = HttpAccountDirectory(DirectoryConfig.from_env(), token)
    session = SessionManager(
        directory,
        socketio_channel_factory(ChannelConfig.from_env()),
        credential=token,
        event_bus=bus,
        settings=SubmissionSettings.from_env(),
    )
    setup_service = AccountSetupService(directory, event_bus=bus)
    repl = REPL(session, setup_service=setup_service, event_bus=bus, prompt=prompt)
    server = _api_server(session)
    if server is not None:
        logger.info("JSON views on http://{}:{}", server.config.host, server.config.port)
    asyncio.run(_run(session, repl, server))


if __name__ == "__main__":
    main()
