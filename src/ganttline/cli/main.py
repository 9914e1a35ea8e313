# src/ganttline/cli/main.py

"""
`ganttline` entrypoint: logging, AppState, initial load, console REPL.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import close_store, create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import GanttlineError
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _session(state: AppState) -> None:
    try:
        try:
            await state.mutations.load(state.project_id)
        except GanttlineError:
            print(f"{state.timeline.last_error} Use /load to retry.")

        if state.settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled (GANTT_CONSOLE_ENABLED); loaded %d task(s).", len(state.timeline.tasks))
    finally:
        await close_store(state)


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.console_log_level)
    logger.info("Starting %s (store=%s, log=%s)", settings.app_name, settings.store_base_url or "offline", log_file)

    state = create_initial_state(settings=settings)
    try:
        asyncio.run(_session(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Stopped.")


if __name__ == "__main__":
    main()
