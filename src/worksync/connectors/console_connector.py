# src/worksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.bootstrap import AppState
from ..cli.commands import registry as command_registry

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _prompt(state: AppState) -> str:
    user = state.session.user
    return f"{user.name}> " if user else "worksync> "


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL.

    input() blocks, so it runs in the default executor; commands run on the
    event loop next to the view-model observers and the sync loop.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands, /register or /login to start. Use /exit to quit.\n")

    loop = asyncio.get_running_loop()

    while True:
        try:
            line = (await loop.run_in_executor(None, input, _prompt(state))).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not line.startswith("/"):
            _print_ts("Commands start with '/'. Use /help to list them.")
            continue

        try:
            reply = await command_registry.handle(state, line, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
