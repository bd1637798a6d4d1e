"""Tests for CommandScheduler and the commands it runs — MailService is an AsyncMock."""

import asyncio
import base64
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from mailterm.gmail.client import GmailAPIError
from mailterm.gmail.types import Label, MessageFormat, WireMessage, WirePart
from mailterm.mime.types import AttachmentRef, Draft
from mailterm.session.commands import (
    DownloadAttachment,
    FetchLabelMessages,
    FetchLabels,
    FetchMessage,
    FetchMessageList,
    PrefetchLabels,
    SendDraft,
    ToggleRead,
    TrashMessage,
    ValidateAttachment,
)
from mailterm.session.events import (
    AttachmentSaved,
    AttachmentValidated,
    CommandFailed,
    LabelsLoaded,
    MessageLoaded,
    MessagesLoaded,
    MessageSent,
    MessageTrashed,
    ReadToggled,
)
from mailterm.session.scheduler import CommandScheduler
from mailterm.session.state import DraftKind


# ── Helpers ────────────────────────────────────────────────────────────────────


def _minimal(message_id: str) -> WireMessage:
    return WireMessage(
        id=message_id,
        snippet=f"snippet {message_id}",
        label_ids=("INBOX",),
        payload=WirePart(
            mime_type="text/plain",
            headers=(("Subject", f"Subject {message_id}"), ("From", "a@example.com")),
        ),
    )


async def _run_one(service: AsyncMock, command) -> object:
    events: asyncio.Queue = asyncio.Queue()
    scheduler = CommandScheduler(service, events)
    scheduler.submit(command)
    await scheduler.aclose()
    assert events.qsize() == 1
    return events.get_nowait()


# ── Scheduler ──────────────────────────────────────────────────────────────────


class TestCommandScheduler:
    async def test_submit_returns_before_completion(self, mail_service) -> None:
        gate = asyncio.Event()

        async def slow_trash(message_id: str) -> None:
            await gate.wait()

        mail_service.trash.side_effect = slow_trash
        events: asyncio.Queue = asyncio.Queue()
        scheduler = CommandScheduler(mail_service, events)

        scheduler.submit(TrashMessage("msg_1"))
        await asyncio.sleep(0)
        assert scheduler.pending == 1
        assert events.empty()

        gate.set()
        await scheduler.aclose()
        assert scheduler.pending == 0
        assert events.get_nowait() == MessageTrashed("msg_1")

    async def test_exception_becomes_single_failure_event(self, mail_service) -> None:
        mail_service.trash.side_effect = GmailAPIError("404 Not Found")
        event = await _run_one(mail_service, TrashMessage("msg_1"))
        assert isinstance(event, CommandFailed)
        assert event.error == "404 Not Found"
        assert event.command == TrashMessage("msg_1")

    async def test_unexpected_exception_also_reported(self, mail_service) -> None:
        mail_service.trash.side_effect = RuntimeError()
        event = await _run_one(mail_service, TrashMessage("msg_1"))
        assert isinstance(event, CommandFailed)
        assert event.error == "RuntimeError"

    async def test_every_command_yields_one_event(self, mail_service) -> None:
        mail_service.trash.side_effect = [None, GmailAPIError("gone")]
        events: asyncio.Queue = asyncio.Queue()
        scheduler = CommandScheduler(mail_service, events)
        for message_id in ("a", "b"):
            scheduler.submit(TrashMessage(message_id))
        scheduler.submit(FetchLabels())
        await scheduler.aclose()
        assert events.qsize() == 3


# ── Commands ───────────────────────────────────────────────────────────────────


class TestFetchCommands:
    async def test_message_list_in_order_skipping_failures(self, mail_service) -> None:
        mail_service.list_messages.return_value = ["m1", "m2", "m3"]

        async def get_message(message_id: str, fmt: MessageFormat) -> WireMessage:
            assert fmt is MessageFormat.MINIMAL
            if message_id == "m2":
                raise GmailAPIError("gone")
            return _minimal(message_id)

        mail_service.get_message.side_effect = get_message
        event = await _run_one(mail_service, FetchMessageList("in:inbox", 10))
        assert isinstance(event, MessagesLoaded)
        assert [m.id for m in event.messages] == ["m1", "m3"]
        assert event.messages[0].subject == "Subject m1"
        mail_service.list_messages.assert_awaited_once_with("in:inbox", 10)

    async def test_list_failure_fails_command(self, mail_service) -> None:
        mail_service.list_messages.side_effect = GmailAPIError("401 Unauthorized")
        event = await _run_one(mail_service, FetchMessageList("q", 5))
        assert isinstance(event, CommandFailed)
        assert event.command.describe_failure(event.error) == "Error: 401 Unauthorized"

    async def test_label_messages(self, mail_service) -> None:
        mail_service.list_messages_by_label.return_value = ["m1"]
        mail_service.get_message.return_value = _minimal("m1")
        event = await _run_one(mail_service, FetchLabelMessages("Label_1", 10))
        assert [m.id for m in event.messages] == ["m1"]
        mail_service.list_messages_by_label.assert_awaited_once_with("Label_1", 10)

    async def test_full_message(self, mail_service, make_wire_message) -> None:
        mail_service.get_message.return_value = make_wire_message("m1", body="hello there")
        event = await _run_one(mail_service, FetchMessage("m1"))
        assert isinstance(event, MessageLoaded)
        assert event.detail.body == "hello there"
        mail_service.get_message.assert_awaited_once_with("m1", MessageFormat.FULL)

    async def test_labels_foreground_and_background(self, mail_service) -> None:
        mail_service.list_labels.return_value = [Label("INBOX", "INBOX", "system")]
        foreground = await _run_one(mail_service, FetchLabels())
        background = await _run_one(mail_service, PrefetchLabels())
        assert foreground == LabelsLoaded((Label("INBOX", "INBOX", "system"),), background=False)
        assert background.background is True
        assert FetchLabels.loading and not PrefetchLabels.loading


class TestSendDraft:
    async def test_encodes_and_sends(self, mail_service) -> None:
        draft = Draft(sender="me", to="bob@example.com", subject="Hi", body="Hello")
        event = await _run_one(mail_service, SendDraft(draft, DraftKind.COMPOSE))
        assert event == MessageSent(DraftKind.COMPOSE)
        raw = mail_service.send_raw.await_args.args[0]
        decoded = base64.urlsafe_b64decode(raw)
        assert decoded.startswith(b"To: bob@example.com\r\nSubject: Hi\r\n")

    async def test_oversized_attachment_never_sends(self, mail_service, tmp_path: Path) -> None:
        big = tmp_path / "big.bin"
        big.write_bytes(b"123456")
        draft = Draft(to="bob@example.com", attachments=[str(big)])
        event = await _run_one(mail_service, SendDraft(draft, DraftKind.REPLY, limit=5))
        assert isinstance(event, CommandFailed)
        assert event.command.describe_failure(event.error).startswith(
            "Send failed: attachment too large: big.bin"
        )
        mail_service.send_raw.assert_not_awaited()

    async def test_combined_attachments_over_limit_never_send(
        self, mail_service, tmp_path: Path
    ) -> None:
        paths = []
        for name in ("a.bin", "b.bin"):
            path = tmp_path / name
            path.write_bytes(b"123456")
            paths.append(str(path))
        draft = Draft(to="bob@example.com", attachments=paths)
        event = await _run_one(mail_service, SendDraft(draft, DraftKind.COMPOSE, limit=10))
        assert isinstance(event, CommandFailed)
        assert event.command.describe_failure(event.error).startswith(
            "Send failed: attachments too large"
        )
        assert "b.bin" in event.error
        mail_service.send_raw.assert_not_awaited()

    async def test_missing_attachment_never_sends(self, mail_service, tmp_path: Path) -> None:
        draft = Draft(to="bob@example.com", attachments=[str(tmp_path / "gone.txt")])
        event = await _run_one(mail_service, SendDraft(draft, DraftKind.COMPOSE))
        assert isinstance(event, CommandFailed)
        assert "File not found" in event.error
        mail_service.send_raw.assert_not_awaited()


class TestBackgroundCommands:
    async def test_mark_read_removes_unread(self, mail_service) -> None:
        event = await _run_one(mail_service, ToggleRead("m1", unread=True))
        mail_service.modify_labels.assert_awaited_once_with("m1", remove=["UNREAD"])
        assert event == ReadToggled("m1", unread=False)

    async def test_mark_unread_adds_unread(self, mail_service) -> None:
        event = await _run_one(mail_service, ToggleRead("m1", unread=False))
        mail_service.modify_labels.assert_awaited_once_with("m1", add=["UNREAD"])
        assert event == ReadToggled("m1", unread=True)

    async def test_download(self, mail_service, tmp_path: Path) -> None:
        mail_service.get_attachment.return_value = base64.urlsafe_b64encode(b"%PDF").decode()
        ref = AttachmentRef(
            index=1,
            filename="report.pdf",
            size=4,
            mime_type="application/pdf",
            attachment_id="att_1",
            message_id="m1",
        )
        event = await _run_one(mail_service, DownloadAttachment(ref, tmp_path / "dl"))
        assert event == AttachmentSaved(tmp_path / "dl" / "report.pdf")
        assert (tmp_path / "dl" / "report.pdf").read_bytes() == b"%PDF"

    async def test_validate_existing(self, mail_service, tmp_path: Path) -> None:
        file = tmp_path / "a.txt"
        file.write_text("x")
        event = await _run_one(mail_service, ValidateAttachment(str(file), DraftKind.COMPOSE))
        assert event == AttachmentValidated(DraftKind.COMPOSE, str(file))

    async def test_validate_missing_message_has_no_prefix(self, mail_service, tmp_path: Path) -> None:
        missing = str(tmp_path / "nope.txt")
        event = await _run_one(mail_service, ValidateAttachment(missing, DraftKind.COMPOSE))
        assert isinstance(event, CommandFailed)
        assert event.command.describe_failure(event.error) == f"File not found: {missing}"


@pytest.mark.parametrize(
    "command, prefix",
    [
        (TrashMessage("m"), "Delete failed"),
        (ToggleRead("m", True), "Update failed"),
        (FetchMessage("m"), "Error"),
    ],
)
def test_failure_prefixes(command, prefix) -> None:
    assert command.describe_failure("x") == f"{prefix}: x"
