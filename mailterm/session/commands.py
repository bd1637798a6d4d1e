"""Units of background work.

Each command carries an immutable snapshot of exactly the inputs it needs and
turns into exactly one completion event.  Commands never see the Session.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from mailterm.gmail.client import MailService
from mailterm.gmail.types import UNREAD_LABEL, MessageFormat
from mailterm.mime.attachments import (
    DEFAULT_DOWNLOADS_DIR,
    fetch_attachment_bytes,
    save_attachment,
    validate_attachment_path,
)
from mailterm.mime.decoder import decode_message, summarize
from mailterm.mime.encoder import encode_draft, encode_raw
from mailterm.mime.types import MAX_ATTACHMENT_BYTES, AttachmentRef, Draft, MessageSummary
from mailterm.session.events import (
    AttachmentSaved,
    AttachmentValidated,
    Event,
    LabelsLoaded,
    MessageLoaded,
    MessagesLoaded,
    MessageSent,
    MessageTrashed,
    ReadToggled,
)
from mailterm.session.state import DraftKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Command:
    """Base class.  ``loading`` marks commands that hold the session in LOADING."""

    loading: ClassVar[bool] = False
    failure_prefix: ClassVar[str] = "Error"

    async def run(self, service: MailService) -> Event:
        raise NotImplementedError

    def describe_failure(self, error: str) -> str:
        return f"{self.failure_prefix}: {error}" if self.failure_prefix else error


# ── Loading-class ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FetchMessageList(Command):
    """Search (or the inbox query) → list rows."""

    loading: ClassVar[bool] = True

    query: str
    max_results: int

    async def run(self, service: MailService) -> Event:
        ids = await service.list_messages(self.query, self.max_results)
        return MessagesLoaded(await _summaries(service, ids))


@dataclass(frozen=True)
class FetchLabelMessages(Command):
    loading: ClassVar[bool] = True

    label_id: str
    max_results: int

    async def run(self, service: MailService) -> Event:
        ids = await service.list_messages_by_label(self.label_id, self.max_results)
        return MessagesLoaded(await _summaries(service, ids))


@dataclass(frozen=True)
class FetchMessage(Command):
    loading: ClassVar[bool] = True

    message_id: str

    async def run(self, service: MailService) -> Event:
        message = await service.get_message(self.message_id, MessageFormat.FULL)
        return MessageLoaded(decode_message(message))


@dataclass(frozen=True)
class FetchLabels(Command):
    loading: ClassVar[bool] = True

    async def run(self, service: MailService) -> Event:
        labels = await service.list_labels()
        return LabelsLoaded(tuple(labels), background=not self.loading)


@dataclass(frozen=True)
class PrefetchLabels(FetchLabels):
    """Startup label fetch; runs beside the inbox fetch without holding LOADING."""

    loading: ClassVar[bool] = False


# ── Background ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SendDraft(Command):
    failure_prefix: ClassVar[str] = "Send failed"

    draft: Draft
    kind: DraftKind
    limit: int = MAX_ATTACHMENT_BYTES

    async def run(self, service: MailService) -> Event:
        # Attachment checks and file reads happen here, before any network call.
        message = await asyncio.to_thread(encode_draft, self.draft, limit=self.limit)
        await service.send_raw(encode_raw(message))
        return MessageSent(self.kind)


@dataclass(frozen=True)
class TrashMessage(Command):
    failure_prefix: ClassVar[str] = "Delete failed"

    message_id: str

    async def run(self, service: MailService) -> Event:
        await service.trash(self.message_id)
        return MessageTrashed(self.message_id)


@dataclass(frozen=True)
class ToggleRead(Command):
    failure_prefix: ClassVar[str] = "Update failed"

    message_id: str
    unread: bool  # state before the toggle

    async def run(self, service: MailService) -> Event:
        if self.unread:
            await service.modify_labels(self.message_id, remove=[UNREAD_LABEL])
        else:
            await service.modify_labels(self.message_id, add=[UNREAD_LABEL])
        return ReadToggled(self.message_id, unread=not self.unread)


@dataclass(frozen=True)
class DownloadAttachment(Command):
    failure_prefix: ClassVar[str] = "Download failed"

    ref: AttachmentRef
    downloads_dir: Path = DEFAULT_DOWNLOADS_DIR

    async def run(self, service: MailService) -> Event:
        data = await fetch_attachment_bytes(service, self.ref)
        path = await asyncio.to_thread(save_attachment, data, self.ref.filename, self.downloads_dir)
        return AttachmentSaved(path)


@dataclass(frozen=True)
class ValidateAttachment(Command):
    """Local existence check for a path about to join a draft."""

    failure_prefix: ClassVar[str] = ""

    path: str
    kind: DraftKind

    async def run(self, service: MailService) -> Event:
        checked = await asyncio.to_thread(validate_attachment_path, self.path)
        return AttachmentValidated(self.kind, str(checked))


async def _summaries(service: MailService, ids: list[str]) -> tuple[MessageSummary, ...]:
    """Fetch list rows concurrently, keeping list order and skipping failures."""
    results = await asyncio.gather(
        *(service.get_message(message_id, MessageFormat.MINIMAL) for message_id in ids),
        return_exceptions=True,
    )
    rows: list[MessageSummary] = []
    for message_id, result in zip(ids, results):
        if isinstance(result, BaseException):
            logger.warning("Skipping message %s: %s", message_id, result)
            continue
        rows.append(summarize(result))
    return tuple(rows)
