"""Command scheduler — runs commands as asyncio tasks and reports back on the event queue."""

import asyncio
import logging
from typing import Protocol

from mailterm.gmail.client import GmailAPIError, MailService
from mailterm.mime.encoder import AttachmentError
from mailterm.session.commands import Command
from mailterm.session.events import CommandFailed, Event

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    """What the controller needs from a scheduler: fire and forget."""

    def submit(self, command: Command) -> None:
        ...


class CommandScheduler:
    """Executes each submitted command without blocking the caller.

    Every command produces exactly one event on ``events``: whatever its
    ``run`` returned, or ``CommandFailed`` if it raised.  There is no
    cancellation and no timeout; a command runs until it finishes.
    """

    def __init__(self, service: MailService, events: "asyncio.Queue[Event]") -> None:
        self._service = service
        self._events = events
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of commands still running."""
        return len(self._tasks)

    def submit(self, command: Command) -> None:
        """Start ``command`` on the running loop and return immediately."""
        logger.debug("Scheduling %s", type(command).__name__)
        task = asyncio.get_running_loop().create_task(
            self._execute(command), name=f"command-{type(command).__name__}"
        )
        # Keep a strong reference until done so the task is not garbage collected.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def aclose(self) -> None:
        """Wait for every outstanding command to deliver its event."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _execute(self, command: Command) -> None:
        try:
            event = await command.run(self._service)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "%s failed: %s", type(command).__name__, exc, exc_info=not _expected(exc)
            )
            event = CommandFailed(command, str(exc) or type(exc).__name__)
        await self._events.put(event)


def _expected(exc: Exception) -> bool:
    """Service and validation errors are routine; anything else deserves a traceback."""
    return isinstance(exc, (GmailAPIError, AttachmentError, OSError))
