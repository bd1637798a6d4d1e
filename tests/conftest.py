"""Shared pytest fixtures."""

import base64
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from mailterm.gmail.types import WireMessage, WirePart
from mailterm.session.commands import Command


def b64url(text: str | bytes) -> str:
    raw = text.encode("utf-8") if isinstance(text, str) else text
    return base64.urlsafe_b64encode(raw).decode("ascii")


class RecordingScheduler:
    """Scheduler double: remembers submitted commands instead of running them."""

    def __init__(self) -> None:
        self.submitted: list[Command] = []

    def submit(self, command: Command) -> None:
        self.submitted.append(command)

    @property
    def last(self) -> Command:
        return self.submitted[-1]

    def of_type(self, kind: type) -> list[Command]:
        return [c for c in self.submitted if isinstance(c, kind)]


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def mail_service() -> AsyncMock:
    """An AsyncMock standing in for MailService, empty mailbox by default."""
    service = AsyncMock()
    service.list_messages.return_value = []
    service.list_messages_by_label.return_value = []
    service.list_labels.return_value = []
    service.get_attachment.return_value = ""
    return service


@pytest.fixture
def make_wire_message() -> Callable[..., WireMessage]:
    """Factory for a single-part text/plain WireMessage."""

    def _make(
        message_id: str = "msg_001",
        *,
        subject: str = "Budget review",
        sender: str = "alice@example.com",
        to: str = "bob@example.com",
        date: str = "Mon, 02 Jan 2006 15:04:05 -0700",
        body: str = "Please review the budget.",
        snippet: str = "Please review the budget.",
        label_ids: tuple[str, ...] = ("INBOX",),
        extra_headers: tuple[tuple[str, str], ...] = (),
        parts: tuple[WirePart, ...] = (),
    ) -> WireMessage:
        headers = (
            ("Subject", subject),
            ("From", sender),
            ("To", to),
            ("Date", date),
        ) + extra_headers
        if parts:
            payload = WirePart(mime_type="multipart/mixed", headers=headers, parts=parts)
        else:
            payload = WirePart(mime_type="text/plain", headers=headers, data=b64url(body))
        return WireMessage(
            id=message_id,
            thread_id=f"thread_{message_id}",
            snippet=snippet,
            label_ids=label_ids,
            payload=payload,
        )

    return _make


@pytest.fixture
def api_message() -> Callable[..., dict[str, Any]]:
    """Factory for a Gmail ``Message`` JSON object as the REST API returns it."""

    def _make(message_id: str = "msg_001", **overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": message_id,
            "threadId": f"thread_{message_id}",
            "snippet": "Please review the budget.",
            "labelIds": ["INBOX", "UNREAD"],
            "payload": {
                "mimeType": "text/plain",
                "filename": "",
                "headers": [
                    {"name": "Subject", "value": "Budget review"},
                    {"name": "From", "value": "alice@example.com"},
                    {"name": "Date", "value": "Mon, 02 Jan 2006 15:04:05 -0700"},
                ],
                "body": {"size": 25, "data": b64url("Please review the budget.")},
            },
        }
        data.update(overrides)
        return data

    return _make
