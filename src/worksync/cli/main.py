# src/worksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, restores the auth session, then runs:
- the background sync loop (optional, WORKSYNC_SYNC_INTERVAL_SECONDS > 0),
- the console REPL (optional; without it the process just keeps syncing).
"""

from __future__ import annotations

import asyncio
import logging

from .. import __version__
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..sync.poller import run_sync_loop
from .bootstrap import create_initial_state, shutdown_state

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    try:
        await state.auth_vm.start()

        interval = float(getattr(settings, "sync_interval_seconds", 0) or 0)
        if interval > 0:
            state.sync_task = asyncio.create_task(
                run_sync_loop(
                    state.task_repository,
                    state.user_repository,
                    state.session,
                    interval_seconds=interval,
                ),
                name="worksync.sync",
            )

        if settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled. Running background sync only. Press Ctrl+C to stop.")
            await asyncio.Event().wait()
    finally:
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(settings)

    logger.info("Starting %s %s...", getattr(settings, "app_name", "worksync"), __version__)
    logger.debug("Logging to %s", log_file)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
