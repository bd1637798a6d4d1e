"""Wire-level types returned by the Gmail REST API."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

UNREAD_LABEL = "UNREAD"


class MessageFormat(str, Enum):
    """How much of a message to fetch.

    MINIMAL is enough to render a list row (headers, snippet, labels).
    FULL includes the body part tree and attachment descriptors.
    """

    MINIMAL = "minimal"
    FULL = "full"


@dataclass(frozen=True)
class WirePart:
    """One node of a message's MIME part tree, as the service describes it.

    ``data`` is the (possibly absent) base64 body payload; ``attachment_id``
    is set instead when the service keeps the payload server-side.
    """

    mime_type: str
    filename: str = ""
    headers: tuple[tuple[str, str], ...] = ()
    data: str = ""
    size: int = 0
    attachment_id: str = ""
    parts: tuple["WirePart", ...] = ()

    def header(self, name: str) -> str:
        """Return the first header value whose name matches ``name`` exactly."""
        for key, value in self.headers:
            if key == name:
                return value
        return ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "WirePart":
        """Map a Gmail ``MessagePart`` JSON object to a WirePart."""
        body = data.get("body") or {}
        return cls(
            mime_type=str(data.get("mimeType", "")),
            filename=str(data.get("filename", "") or ""),
            headers=tuple(
                (str(h.get("name", "")), str(h.get("value", "")))
                for h in data.get("headers") or []
                if isinstance(h, dict)
            ),
            data=str(body.get("data", "") or ""),
            size=int(body.get("size", 0) or 0),
            attachment_id=str(body.get("attachmentId", "") or ""),
            parts=tuple(cls.from_api(p) for p in data.get("parts") or [] if isinstance(p, dict)),
        )


@dataclass(frozen=True)
class WireMessage:
    """A message as returned by ``users.messages.get``."""

    id: str
    thread_id: str = ""
    snippet: str = ""
    label_ids: tuple[str, ...] = ()
    payload: WirePart | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "WireMessage":
        """Map a Gmail ``Message`` JSON object to a WireMessage."""
        payload = data.get("payload")
        return cls(
            id=str(data.get("id", "")),
            thread_id=str(data.get("threadId", "")),
            snippet=str(data.get("snippet", "") or ""),
            label_ids=tuple(str(label) for label in data.get("labelIds") or []),
            payload=WirePart.from_api(payload) if isinstance(payload, dict) else None,
        )


@dataclass(frozen=True)
class Label:
    """A mailbox label: system (INBOX, UNREAD, ...) or user-created."""

    id: str
    name: str
    type: str = "user"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Label":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            type=str(data.get("type", "user")),
        )

