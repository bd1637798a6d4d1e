"""Minimal input widgets the controller delegates unhandled keys to.

Keys are symbolic names produced by ``mailterm.cli.keyboard``: a single
printable character for ordinary keys, or a name such as ``"enter"``,
``"backspace"``, ``"up"``, ``"pgdown"``.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

_PAGE = 10


def is_printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()


@dataclass
class TextField:
    """Single- or multi-line text buffer edited at its end."""

    value: str = ""
    multiline: bool = False

    def handle(self, key: str) -> bool:
        """Apply one key; return False when the key means nothing to a text field."""
        if is_printable(key):
            self.value += key
        elif key == "backspace":
            self.value = self.value[:-1]
        elif key == "enter" and self.multiline:
            self.value += "\n"
        else:
            return False
        return True

    def reset(self) -> None:
        self.value = ""


def edit_text(value: str, key: str, *, multiline: bool = False) -> tuple[str, bool]:
    """Functional form of TextField.handle for plain string attributes."""
    field = TextField(value, multiline)
    handled = field.handle(key)
    return field.value, handled


@dataclass
class ListCursor:
    """Highlighted row of a list."""

    index: int = 0

    def handle(self, key: str, length: int) -> bool:
        if length == 0:
            self.index = 0
            return key in ("up", "down", "k", "j", "home", "end", "g", "G")
        if key in ("down", "j"):
            self.index = min(self.index + 1, length - 1)
        elif key in ("up", "k"):
            self.index = max(self.index - 1, 0)
        elif key in ("home", "g"):
            self.index = 0
        elif key in ("end", "G"):
            self.index = length - 1
        elif key == "pgdown":
            self.index = min(self.index + _PAGE, length - 1)
        elif key == "pgup":
            self.index = max(self.index - _PAGE, 0)
        else:
            return False
        return True

    def pick(self, items: Sequence[T]) -> T | None:
        if 0 <= self.index < len(items):
            return items[self.index]
        return None

    def reset(self) -> None:
        self.index = 0


@dataclass
class Viewport:
    """Scroll position over the body of the open message."""

    offset: int = 0

    def handle(self, key: str) -> bool:
        if key in ("down", "j"):
            self.offset += 1
        elif key in ("up", "k"):
            self.offset = max(self.offset - 1, 0)
        elif key in ("pgdown", " "):
            self.offset += _PAGE
        elif key == "pgup":
            self.offset = max(self.offset - _PAGE, 0)
        elif key in ("home", "g"):
            self.offset = 0
        else:
            return False
        return True

    def goto_top(self) -> None:
        self.offset = 0
