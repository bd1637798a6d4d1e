"""Key → Action resolution, one keymap per mode.

Navigation modes bind letters.  Text-entry modes bind only control keys so
that every printable character reaches the focused text field.
"""

from enum import Enum

from mailterm.session.state import Mode


class Action(str, Enum):
    BACK = "back"
    SELECT = "select"
    COMPOSE = "compose"
    REPLY = "reply"
    DELETE = "delete"
    SEARCH = "search"
    LABELS = "labels"
    TOGGLE_READ = "toggle_read"
    QUIT = "quit"
    HELP = "help"
    SEND = "send"
    NEXT_FIELD = "next_field"
    PREV_FIELD = "prev_field"
    ADD_ATTACHMENT = "add_attachment"
    REMOVE_ATTACHMENT = "remove_attachment"
    DOWNLOAD_ATTACHMENT = "download_attachment"
    SUBMIT = "submit"


# Bound in every mode, including LOADING.
GLOBAL_KEYS: dict[str, Action] = {"ctrl+c": Action.QUIT}

_NAVIGATION_COMMON: dict[str, Action] = {
    "b": Action.BACK,
    "esc": Action.BACK,
    "?": Action.HELP,
}

_TEXT_ENTRY_COMMON: dict[str, Action] = {
    "esc": Action.BACK,
    "enter": Action.SUBMIT,
}

_DRAFT_KEYS: dict[str, Action] = {
    **_TEXT_ENTRY_COMMON,
    "ctrl+s": Action.SEND,
    "ctrl+a": Action.ADD_ATTACHMENT,
    "ctrl+x": Action.REMOVE_ATTACHMENT,
}

KEYMAPS: dict[Mode, dict[str, Action]] = {
    Mode.INBOX: {
        **_NAVIGATION_COMMON,
        "enter": Action.SELECT,
        "c": Action.COMPOSE,
        "d": Action.DELETE,
        "/": Action.SEARCH,
        "l": Action.LABELS,
        "m": Action.TOGGLE_READ,
        "q": Action.QUIT,
    },
    Mode.VIEWING: {
        **_NAVIGATION_COMMON,
        "r": Action.REPLY,
        "d": Action.DELETE,
        "l": Action.LABELS,
        "m": Action.TOGGLE_READ,
        "q": Action.QUIT,
        "ctrl+d": Action.DOWNLOAD_ATTACHMENT,
    },
    Mode.MANAGING_LABELS: {
        **_NAVIGATION_COMMON,
        "enter": Action.SELECT,
    },
    Mode.COMPOSING: {
        **_DRAFT_KEYS,
        "tab": Action.NEXT_FIELD,
        "shift+tab": Action.PREV_FIELD,
    },
    Mode.REPLYING: dict(_DRAFT_KEYS),
    Mode.SEARCHING: dict(_TEXT_ENTRY_COMMON),
    Mode.LOADING: {},
}

# Shown by the help overlay, grouped like the keymaps above.
HELP_ROWS: tuple[tuple[str, str], ...] = (
    ("enter", "open / select"),
    ("c", "compose"),
    ("r", "reply"),
    ("/", "search"),
    ("l", "labels"),
    ("d", "delete"),
    ("m", "mark read/unread"),
    ("b / esc", "back"),
    ("q", "quit"),
    ("ctrl+s", "send"),
    ("tab / shift+tab", "next / previous field"),
    ("ctrl+a", "add attachment"),
    ("ctrl+x", "remove attachment"),
    ("ctrl+d", "download attachment"),
    ("?", "toggle help"),
)


def resolve(mode: Mode, key: str) -> Action | None:
    """Return the action ``key`` triggers in ``mode``, or None to delegate it."""
    if key in GLOBAL_KEYS:
        return GLOBAL_KEYS[key]
    return KEYMAPS[mode].get(key)
