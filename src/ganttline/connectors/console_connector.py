# src/ganttline/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

PROMPT = "gantt> "
EXIT_COMMANDS = frozenset({"/exit", "/quit", "/q"})


def _stamp(text: str) -> str:
    return f"[{datetime.now().astimezone():%H:%M:%S}] {text}"


def _say(text: str) -> None:
    print(_stamp(text), flush=True)


async def _read_line() -> str | None:
    """Next non-empty input line, or None on EOF / Ctrl+C."""
    while True:
        try:
            line = await asyncio.to_thread(input, PROMPT)
        except (EOFError, KeyboardInterrupt):
            print()
            return None
        line = line.strip()
        if line:
            return line


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL over the slash commands.

    input() blocks in a worker thread, so the event loop stays free while the
    user types.
    """
    logger.info("Console connector started.")
    _say(f"{len(state.timeline.tasks)} task(s) loaded. /help lists commands, /exit quits.")

    while (line := await _read_line()) is not None:
        if line.lower() in EXIT_COMMANDS:
            break

        try:
            reply = await command_registry.handle(state, line, emit=_say)
        except Exception:
            logger.exception("Command crashed: %s", line)
            reply = "Internal error while handling the command (see log file)."

        _say(reply if reply is not None else "Commands start with '/'. Try /help.")

    logger.info("Console connector finished.")
