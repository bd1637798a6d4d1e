"""Events consumed by the session controller: key presses and command completions."""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Union

from mailterm.gmail.types import Label
from mailterm.mime.types import MessageDetail, MessageSummary
from mailterm.session.state import DraftKind

if TYPE_CHECKING:
    from mailterm.session.commands import Command


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class MessageLoaded:
    detail: MessageDetail


@dataclass(frozen=True)
class MessagesLoaded:
    """Result of an inbox, search, or label listing."""

    messages: tuple[MessageSummary, ...]


@dataclass(frozen=True)
class LabelsLoaded:
    labels: tuple[Label, ...]
    background: bool = False


@dataclass(frozen=True)
class MessageSent:
    kind: DraftKind


@dataclass(frozen=True)
class MessageTrashed:
    message_id: str


@dataclass(frozen=True)
class ReadToggled:
    message_id: str
    unread: bool  # state after the change


@dataclass(frozen=True)
class AttachmentSaved:
    path: Path


@dataclass(frozen=True)
class AttachmentValidated:
    kind: DraftKind
    path: str


@dataclass(frozen=True)
class CommandFailed:
    """The single completion event of a command that raised."""

    command: "Command"
    error: str


Event = Union[
    KeyPressed,
    MessageLoaded,
    MessagesLoaded,
    LabelsLoaded,
    MessageSent,
    MessageTrashed,
    ReadToggled,
    AttachmentSaved,
    AttachmentValidated,
    CommandFailed,
]
