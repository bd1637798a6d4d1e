"""Interactive session loop: keys and completions in, rendered snapshots out."""

import asyncio
import logging
from collections.abc import Callable

from rich.console import Console
from rich.live import Live

from mailterm.cli.keyboard import KeyReader, terminal_input
from mailterm.cli.render import render
from mailterm.config import Settings
from mailterm.gmail.client import MailService
from mailterm.session.controller import SessionController
from mailterm.session.events import Event
from mailterm.session.scheduler import CommandScheduler
from mailterm.session.state import SessionSnapshot

logger = logging.getLogger(__name__)


async def run_session(
    service: MailService,
    settings: Settings,
    console: Console,
    *,
    read: Callable[[], str] | None = None,
    screen: bool = True,
) -> SessionSnapshot:
    """Run one interactive session until the user quits; return the final snapshot.

    ``read`` overrides the terminal as the key source.
    """
    events: asyncio.Queue[Event] = asyncio.Queue()
    scheduler = CommandScheduler(service, events)
    controller = SessionController(scheduler, settings)
    loop = asyncio.get_running_loop()

    snapshot = controller.start()
    with terminal_input() as terminal_read:
        reader = KeyReader(loop, events, read or terminal_read)
        reader.start()
        try:
            with Live(
                render(snapshot, console.size.height),
                console=console,
                screen=screen,
                auto_refresh=False,
            ) as live:
                while not controller.finished:
                    event = await events.get()
                    logger.debug("Event %s", type(event).__name__)
                    snapshot = controller.handle(event)
                    live.update(render(snapshot, console.size.height), refresh=True)
        finally:
            reader.stop()

    if scheduler.pending:
        logger.info("Waiting for %d outstanding command(s)", scheduler.pending)
    await scheduler.aclose()
    return snapshot
