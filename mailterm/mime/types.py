"""Display-ready message models produced by the decoder and consumed by the session."""

from dataclasses import dataclass, field
from enum import Enum

SNIPPET_LIMIT = 80
_SNIPPET_KEEP = SNIPPET_LIMIT - 3

# Gmail rejects messages over 25 MiB; enforced per attachment before encoding.
MAX_ATTACHMENT_BYTES = 25 * 1024 * 1024


class BodyStatus(str, Enum):
    """How the displayed body text was obtained.

    Lets callers tell a real body apart from one of the fallback strings.
    """

    OK = "ok"
    EMPTY = "empty"                  # no textual part at all
    DECODE_FAILED = "decode_failed"  # a textual part existed but its payload was garbage


def truncate_snippet(snippet: str) -> str:
    """Clamp a list snippet to 80 characters, ending in ``...`` when cut."""
    if len(snippet) > SNIPPET_LIMIT:
        return snippet[:_SNIPPET_KEEP] + "..."
    return snippet


@dataclass(frozen=True)
class AttachmentRef:
    """Pointer to an attachment held by the mail service.

    ``index`` is 1-based and is the key the attachment picker selects by.
    ``inline_data`` is set when the service embedded the payload in the
    part itself instead of handing out an ``attachment_id``.
    """

    index: int
    filename: str
    size: int
    mime_type: str
    attachment_id: str
    message_id: str
    inline_data: str = ""


@dataclass(frozen=True)
class MessageSummary:
    """One row of the message list."""

    id: str
    thread_id: str
    subject: str
    sender: str
    snippet: str
    date: str
    unread: bool
    label_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class MessageDetail:
    """A fully decoded message, ready to show in the viewer."""

    summary: MessageSummary
    to: str
    cc: str
    bcc: str
    body: str
    body_status: BodyStatus
    attachments: tuple[AttachmentRef, ...] = ()

    @property
    def id(self) -> str:
        return self.summary.id

    @property
    def subject(self) -> str:
        return self.summary.subject

    @property
    def sender(self) -> str:
        return self.summary.sender

    @property
    def date(self) -> str:
        return self.summary.date

    @property
    def unread(self) -> bool:
        return self.summary.unread


@dataclass
class Draft:
    """An unsent compose or reply payload.

    Mutated only by the session controller.  Background work receives a
    ``copy()`` so later edits never leak into an in-flight send.
    """

    sender: str = ""
    to: str = ""
    cc: str = ""
    bcc: str = ""
    subject: str = ""
    body: str = ""
    attachments: list[str] = field(default_factory=list)

    def copy(self) -> "Draft":
        return Draft(
            sender=self.sender,
            to=self.to,
            cc=self.cc,
            bcc=self.bcc,
            subject=self.subject,
            body=self.body,
            attachments=list(self.attachments),
        )

    def push_attachment(self, path: str) -> None:
        self.attachments.append(path)

    def pop_attachment(self) -> str | None:
        """Remove and return the most recently added attachment, if any."""
        if not self.attachments:
            return None
        return self.attachments.pop()
