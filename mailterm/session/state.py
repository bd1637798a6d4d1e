"""Session state: the single aggregate the controller owns and mutates."""

from dataclasses import dataclass, field
from enum import Enum

from mailterm.gmail.types import Label
from mailterm.mime.types import Draft, MessageDetail, MessageSummary
from mailterm.session.widgets import ListCursor, TextField, Viewport


class Mode(str, Enum):
    """Exactly one mode is active at a time."""

    INBOX = "inbox"
    VIEWING = "viewing"
    LOADING = "loading"
    COMPOSING = "composing"
    REPLYING = "replying"
    SEARCHING = "searching"
    MANAGING_LABELS = "managing_labels"


class DraftKind(str, Enum):
    COMPOSE = "compose"
    REPLY = "reply"


# Compose focus order; tab / shift+tab rotate through it modulo its length.
COMPOSE_FIELDS: tuple[str, ...] = ("sender", "to", "cc", "bcc", "subject", "body")


@dataclass
class Session:
    """Everything the presentation layer needs, and nothing it may write.

    ``return_mode`` remembers where to go back to if the outstanding
    loading-class operation fails.
    """

    mode: Mode = Mode.LOADING
    messages: tuple[MessageSummary, ...] = ()
    message_cursor: ListCursor = field(default_factory=ListCursor)
    current: MessageDetail | None = None
    viewport: Viewport = field(default_factory=Viewport)
    compose: Draft = field(default_factory=Draft)
    reply: Draft = field(default_factory=Draft)
    reply_to: MessageDetail | None = None
    focused: int = 0
    labels: tuple[Label, ...] = ()
    label_cursor: ListCursor = field(default_factory=ListCursor)
    search: TextField = field(default_factory=TextField)
    attachment_input: TextField = field(default_factory=TextField)
    adding_attachment: bool = False
    picker_armed: bool = False
    help_visible: bool = False
    notification: str = ""
    return_mode: Mode = Mode.INBOX
    sending: set[DraftKind] = field(default_factory=set)
    started: bool = False
    quit_requested: bool = False
    fatal_error: str = ""

    @property
    def selected_message(self) -> MessageSummary | None:
        return self.message_cursor.pick(self.messages)

    @property
    def selected_label(self) -> Label | None:
        return self.label_cursor.pick(self.labels)

    @property
    def focused_field(self) -> str:
        return COMPOSE_FIELDS[self.focused]

    def draft(self, kind: DraftKind) -> Draft:
        return self.compose if kind is DraftKind.COMPOSE else self.reply

    def snapshot(self) -> "SessionSnapshot":
        return SessionSnapshot(
            mode=self.mode,
            messages=self.messages,
            selected_index=self.message_cursor.index,
            current=self.current,
            viewport_offset=self.viewport.offset,
            compose=self.compose.copy(),
            reply=self.reply.copy(),
            reply_to=self.reply_to,
            focused_field=self.focused_field,
            labels=self.labels,
            selected_label_index=self.label_cursor.index,
            search_text=self.search.value,
            attachment_input=self.attachment_input.value,
            adding_attachment=self.adding_attachment,
            picker_armed=self.picker_armed,
            help_visible=self.help_visible,
            notification=self.notification,
            quit_requested=self.quit_requested,
            fatal_error=self.fatal_error,
        )


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of a Session, emitted after every processed event."""

    mode: Mode
    messages: tuple[MessageSummary, ...]
    selected_index: int
    current: MessageDetail | None
    viewport_offset: int
    compose: Draft
    reply: Draft
    reply_to: MessageDetail | None
    focused_field: str
    labels: tuple[Label, ...]
    selected_label_index: int
    search_text: str
    attachment_input: str
    adding_attachment: bool
    picker_armed: bool
    help_visible: bool
    notification: str
    quit_requested: bool
    fatal_error: str
