"""Gmail REST client — wraps the users.messages / users.labels endpoints behind a typed async API."""

import logging
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

import httpx

from mailterm.gmail.types import Label, MessageFormat, WireMessage

logger = logging.getLogger(__name__)

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"

# Headers requested for list rows; the "metadata" format omits the body entirely.
_SUMMARY_HEADERS = ("Subject", "From", "Date")

_JsonObject = dict[str, Any]


class GmailAPIError(Exception):
    """Raised when a Gmail API call fails at the transport or HTTP level."""


@runtime_checkable
class MailService(Protocol):
    """Interface for the remote mailbox the session talks to."""

    async def list_messages(self, query: str, max_results: int) -> list[str]:
        """Return ids of messages matching a search query."""
        ...

    async def list_messages_by_label(self, label_id: str, max_results: int) -> list[str]:
        """Return ids of messages carrying a label."""
        ...

    async def get_message(self, message_id: str, fmt: MessageFormat) -> WireMessage:
        """Return one message in minimal (list row) or full (body + parts) form."""
        ...

    async def list_labels(self) -> list[Label]:
        """Return every label in the mailbox."""
        ...

    async def send_raw(self, raw: str) -> None:
        """Send a URL-safe base64 encoded RFC 2822 message."""
        ...

    async def trash(self, message_id: str) -> None:
        """Move a message to the trash."""
        ...

    async def modify_labels(
        self, message_id: str, add: Sequence[str] = (), remove: Sequence[str] = ()
    ) -> None:
        """Add and/or remove label ids on a message."""
        ...

    async def get_attachment(self, message_id: str, attachment_id: str) -> str:
        """Return the base64 payload of a stored attachment."""
        ...


class GmailClient:
    """Thin async wrapper around the Gmail v1 REST API.

    Holds a single long-lived ``httpx.AsyncClient`` so the session reuses one
    connection pool for every call.  The client must already carry a valid
    bearer token; see ``mailterm.gmail.auth`` for how one is obtained.
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Public API ─────────────────────────────────────────────────────────────

    async def list_messages(self, query: str, max_results: int) -> list[str]:
        """Return message ids matching a Gmail search query (``in:inbox``, ``from:x``...)."""
        data = await self._request(
            "GET", "/messages", params={"q": query, "maxResults": max_results}
        )
        return self._parse_message_ids(data)

    async def list_messages_by_label(self, label_id: str, max_results: int) -> list[str]:
        """Return message ids carrying ``label_id``."""
        data = await self._request(
            "GET", "/messages", params={"labelIds": label_id, "maxResults": max_results}
        )
        return self._parse_message_ids(data)

    async def get_message(self, message_id: str, fmt: MessageFormat) -> WireMessage:
        """Fetch one message.

        MINIMAL maps to Gmail's ``metadata`` format restricted to the headers a
        list row shows; Gmail's own ``minimal`` format carries no headers at all.
        """
        params: list[tuple[str, str]]
        if fmt is MessageFormat.FULL:
            params = [("format", "full")]
        else:
            params = [("format", "metadata")]
            params += [("metadataHeaders", name) for name in _SUMMARY_HEADERS]
        data = await self._request("GET", f"/messages/{message_id}", params=params)
        return WireMessage.from_api(data)

    async def list_labels(self) -> list[Label]:
        data = await self._request("GET", "/labels")
        return [
            Label.from_api(raw)
            for raw in data.get("labels", [])
            if isinstance(raw, dict) and raw.get("id")
        ]

    async def send_raw(self, raw: str) -> None:
        await self._request("POST", "/messages/send", json={"raw": raw})
        logger.info("Sent message (%d encoded bytes)", len(raw))

    async def trash(self, message_id: str) -> None:
        await self._request("POST", f"/messages/{message_id}/trash")
        logger.info("Trashed message %s", message_id)

    async def modify_labels(
        self, message_id: str, add: Sequence[str] = (), remove: Sequence[str] = ()
    ) -> None:
        body: dict[str, list[str]] = {}
        if add:
            body["addLabelIds"] = list(add)
        if remove:
            body["removeLabelIds"] = list(remove)
        await self._request("POST", f"/messages/{message_id}/modify", json=body)
        logger.debug("Modified labels on %s: +%s -%s", message_id, list(add), list(remove))

    async def get_attachment(self, message_id: str, attachment_id: str) -> str:
        data = await self._request(
            "GET", f"/messages/{message_id}/attachments/{attachment_id}"
        )
        return str(data.get("data", ""))

    # ── Internal helpers ───────────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs: Any) -> _JsonObject:
        """Issue one API call and return the decoded JSON object.

        Raises GmailAPIError on transport failures and non-2xx responses.
        Empty bodies (trash/modify/send acks may be tiny) decode to ``{}``.
        """
        logger.debug("Gmail → %s %s", method, path)
        try:
            response = await self._http.request(method, GMAIL_API_BASE + path, **kwargs)
        except httpx.HTTPError as exc:
            raise GmailAPIError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            raise GmailAPIError(
                f"{method} {path} returned {response.status_code}: {self._error_message(response)}"
            )

        if not response.content:
            return {}
        try:
            parsed = response.json()
        except ValueError as exc:
            raise GmailAPIError(f"{method} {path} returned invalid JSON") from exc
        return parsed if isinstance(parsed, dict) else {}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull the human-readable message out of a Gmail error envelope."""
        try:
            payload = response.json()
        except ValueError:
            return response.text[:200]
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return response.reason_phrase

    @staticmethod
    def _parse_message_ids(data: _JsonObject) -> list[str]:
        """Extract ids from a ``users.messages.list`` response; absent list means none."""
        return [
            str(m["id"])
            for m in data.get("messages", []) or []
            if isinstance(m, dict) and m.get("id")
        ]
