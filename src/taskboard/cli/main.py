# src/taskboard/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the initial board for the session
role, then runs the console loop (slash commands only) on one asyncio loop.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..config import get_settings
from ..core.state import AppState
from ..errors import friendly_error_message
from ..logging_setup import setup_logging
from .bootstrap import create_engine, load_initial_view
from .commands import registry as command_registry

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_console_loop(state: AppState) -> None:
    logger.info("Console started (%s).", state.session.describe())
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            line = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(state, line, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help to list them."
        _print_ts(reply)

    logger.info("Console finished.")


async def _amain() -> None:
    settings = get_settings()
    state = create_engine(settings=settings)
    try:
        if not await state.gateway.check_health():
            logger.warning("Task service at %s did not answer the health check.", settings.api_base_url)
        await load_initial_view(state)
        if state.store.error:
            _print_ts(f"[BOARD] {state.store.error}")
        else:
            _print_ts(f"[BOARD] {len(state.store.tasks)} tasks loaded.")

        if settings.console_enabled:
            await run_console_loop(state)
    except Exception as e:
        logger.exception("Fatal error.")
        _print_ts(friendly_error_message(e))
    finally:
        await state.aclose()


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    try:
        asyncio.run(_amain())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
