# src/tasklog/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, follows the configured identity
(login starts the sync subscription and the tickers) and runs the console
REPL on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.identity import StaticIdentity
from ..core.lifecycle import follow_identity, logout
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await logout(state)
    except Exception:
        logger.exception("Logout during shutdown failed.")

    try:
        store = getattr(state, "store", None)
        if store is not None and hasattr(store, "close"):
            store.close()
    except Exception:
        logger.debug("Snapshot store close failed.", exc_info=True)


async def _run(settings) -> None:
    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    identity = StaticIdentity(settings.user_id)
    unsubscribe = follow_identity(state, identity)

    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_main.set)
        except (NotImplementedError, RuntimeError):
            # Some platforms may not support signal handlers on the loop.
            pass

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state))
            stopper = asyncio.create_task(stop_main.wait())
            await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            stopper.cancel()
            console.cancel()
            if not console.done():
                logger.info("Signal received, shutting down...")
        else:
            logger.info("Console disabled. Tracking in the background only. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        unsubscribe()
        await _shutdown(state)
        logger.info("Bye.")


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tasklog")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger.info("Starting %s...", getattr(settings, "app_name", "tasklog"))
    asyncio.run(_run(settings))


if __name__ == "__main__":
    main()
