"""Terminal key reader.

A daemon thread blocks on the terminal and forwards every key to the asyncio
event queue as a ``KeyPressed`` event.  Raw byte sequences are translated
into the symbolic names the session keymaps use.
"""

import asyncio
import logging
import os
import sys
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import click

from mailterm.session.events import Event, KeyPressed

logger = logging.getLogger(__name__)

# Escape sequences and control bytes → key names.
KEY_NAMES: dict[str, str] = {
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x1b": "esc",
    "\x1b[Z": "shift+tab",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\x01": "ctrl+a",
    "\x03": "ctrl+c",
    "\x04": "ctrl+d",
    "\x13": "ctrl+s",
    "\x18": "ctrl+x",
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    "\x1b[5~": "pgup",
    "\x1b[6~": "pgdown",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOH": "home",
    "\x1bOF": "end",
    # Windows console scan codes as returned by click.getchar.
    "\xe0H": "up",
    "\xe0P": "down",
    "\xe0I": "pgup",
    "\xe0Q": "pgdown",
    "\xe0G": "home",
    "\xe0O": "end",
}


def decode_keys(raw: str) -> list[str]:
    """Split one terminal read into key names.

    A read may hold a single escape sequence or several ordinary characters
    (a paste, or fast typing).  Unknown escape sequences are dropped.
    """
    if not raw:
        return []
    if raw in KEY_NAMES:
        return [KEY_NAMES[raw]]
    if raw.startswith("\x1b"):
        logger.debug("Unknown escape sequence %r", raw)
        return []
    return [KEY_NAMES.get(ch, ch) for ch in raw if ch in KEY_NAMES or ch.isprintable()]


@contextmanager
def terminal_input() -> Iterator[Callable[[], str]]:
    """Put stdin in raw mode for the duration and yield a blocking read function.

    Output post-processing stays on so the renderer's newlines still return
    the carriage.  Where termios is unavailable, falls back to click.getchar.
    """
    if os.name != "posix" or not sys.stdin.isatty():
        yield _getchar
        return

    import termios
    import tty

    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        attrs = termios.tcgetattr(fd)
        attrs[1] |= termios.OPOST | termios.ONLCR
        termios.tcsetattr(fd, termios.TCSADRAIN, attrs)
        yield lambda: os.read(fd, 32).decode("utf-8", errors="replace")
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)


def _getchar() -> str:
    # click translates ctrl+c / ctrl+d into exceptions; turn them back into keys.
    try:
        return click.getchar()
    except KeyboardInterrupt:
        return "\x03"
    except EOFError:
        return "\x04"


class KeyReader:
    """Pumps keys from ``read`` into ``events`` on a daemon thread."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        events: "asyncio.Queue[Event]",
        read: Callable[[], str],
    ) -> None:
        self._loop = loop
        self._events = events
        self._read = read
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True, name="mailterm-keys")

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        """Stop forwarding; the thread exits after its current read returns."""
        self._stop.set()

    def _run(self) -> None:
        logger.debug("key reader thread started")
        while not self._stop.is_set():
            try:
                raw = self._read()
            except OSError as exc:
                logger.error("Key reader failed: %s", exc)
                raw = ""
            if raw == "":
                # Nothing more will arrive; end the session.
                logger.warning("Key input closed")
                self._post("ctrl+c")
                return
            for key in decode_keys(raw):
                if self._stop.is_set() or not self._post(key):
                    return

    def _post(self, key: str) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._events.put_nowait, KeyPressed(key))
        except RuntimeError:
            # Event loop already closed during shutdown.
            return False
        return True
