"""Inbound MIME decoding: Gmail part trees → display-ready summaries and details.

Nothing in this module raises on malformed input.  Broken payloads degrade to
fixed sentinel strings and are flagged through ``BodyStatus`` instead.
"""

import base64
import binascii
import logging
import re
from collections.abc import Iterator
from datetime import datetime

from mailterm.gmail.types import UNREAD_LABEL, WireMessage, WirePart
from mailterm.mime.types import (
    AttachmentRef,
    BodyStatus,
    MessageDetail,
    MessageSummary,
    truncate_snippet,
)

logger = logging.getLogger(__name__)

DECODE_FAILED = "(decode failed)"
NO_TEXT_CONTENT = "(no text content found)"

# Tried in order; first successful parse wins.
DATE_FORMATS: tuple[str, ...] = (
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%d %b %Y %H:%M:%S %z",
    "%d %b %y %H:%M %z",
    "%d %b %y %H:%M %Z",
)
DISPLAY_DATE_FORMAT = "%b %d, %Y %H:%M"

# strptime's %Z only knows UTC, GMT and the local zone; other abbreviations
# (EST, PDT, CET, ...) are dropped and the wall-clock time is kept.
_ZONE_NAME_RE = re.compile(r"\s+[A-Z]{2,5}$")

# &amp; must stay last so "&amp;lt;" decodes to "&lt;" rather than "<".
HTML_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&apos;", "'"),
    ("&#39;", "'"),
    ("&ndash;", "-"),
    ("&mdash;", "—"),
    ("&amp;", "&"),
)

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_URLSAFE_RE = re.compile(r"[A-Za-z0-9_-]*={0,2}")
_STANDARD_RE = re.compile(r"[A-Za-z0-9+/]*={0,2}")

_SUMMARY_HEADERS = ("Subject", "From", "Date")
_DETAIL_HEADERS = ("Subject", "From", "To", "Cc", "Bcc", "Date")


# ── Public API ─────────────────────────────────────────────────────────────────


def summarize(message: WireMessage) -> MessageSummary:
    """Build a list row from a minimal- or full-format message."""
    headers = _extract_headers(message.payload, _SUMMARY_HEADERS)
    return MessageSummary(
        id=message.id,
        thread_id=message.thread_id,
        subject=headers["Subject"],
        sender=headers["From"],
        snippet=truncate_snippet(message.snippet),
        date=format_date(headers["Date"]) if headers["Date"] else "",
        unread=UNREAD_LABEL in message.label_ids,
        label_ids=message.label_ids,
    )


def decode_message(message: WireMessage) -> MessageDetail:
    """Build the viewer model from a full-format message."""
    summary = summarize(message)
    headers = _extract_headers(message.payload, _DETAIL_HEADERS)

    if message.payload is None:
        body, status = NO_TEXT_CONTENT, BodyStatus.EMPTY
        attachments: tuple[AttachmentRef, ...] = ()
    else:
        body, status = extract_body(message.payload)
        attachments = find_attachments(message.payload, message.id)

    if status is BodyStatus.DECODE_FAILED:
        logger.warning("Body of message %s could not be decoded", message.id)

    return MessageDetail(
        summary=summary,
        to=headers["To"],
        cc=headers["Cc"],
        bcc=headers["Bcc"],
        body=body,
        body_status=status,
        attachments=attachments,
    )


def extract_body(part: WirePart) -> tuple[str, BodyStatus]:
    """Return the display text of a part tree and how it was obtained.

    Plain text anywhere in the tree wins over HTML anywhere in the tree;
    HTML is only consulted when no plain-text part yields non-empty text.
    """
    for mime_type in ("text/plain", "text/html"):
        for leaf in _text_leaves(part, mime_type):
            text, ok = decode_base64_text(leaf.data)
            if not ok:
                return DECODE_FAILED, BodyStatus.DECODE_FAILED
            if mime_type == "text/html":
                text = strip_html(text)
            if text:
                return text, BodyStatus.OK
    return NO_TEXT_CONTENT, BodyStatus.EMPTY


def find_attachments(part: WirePart, message_id: str) -> tuple[AttachmentRef, ...]:
    """List every named part, depth-first left-to-right, numbered from 1."""
    return tuple(
        AttachmentRef(
            index=index,
            filename=found.filename,
            size=found.size,
            mime_type=found.mime_type,
            attachment_id=found.attachment_id,
            message_id=message_id,
            inline_data="" if found.attachment_id else found.data,
        )
        for index, found in enumerate(_named_parts(part), start=1)
    )


def decode_base64_text(data: str) -> tuple[str, bool]:
    """Decode a body payload to text.

    Returns ``(text, True)`` on success and ``(DECODE_FAILED, False)`` when
    neither the URL-safe nor the standard alphabet accepts the payload.
    """
    raw = decode_base64(data)
    if raw is None:
        return DECODE_FAILED, False
    return raw.decode("utf-8", errors="replace"), True


def decode_base64(data: str) -> bytes | None:
    """Pad to a multiple of 4, then try the URL-safe alphabet, then the standard one."""
    padded = data + "=" * (-len(data) % 4)
    if _URLSAFE_RE.fullmatch(padded):
        try:
            return base64.urlsafe_b64decode(padded)
        except (binascii.Error, ValueError):
            pass
    if _STANDARD_RE.fullmatch(padded):
        try:
            return base64.b64decode(padded, validate=True)
        except (binascii.Error, ValueError):
            pass
    return None


def strip_html(html: str) -> str:
    """Drop tags, decode a fixed entity table, and collapse whitespace."""
    text = _TAG_RE.sub("", html)
    for entity, replacement in HTML_ENTITIES:
        text = text.replace(entity, replacement)
    return _WHITESPACE_RE.sub(" ", text).strip()


def format_date(value: str) -> str:
    """Normalise a Date header for display; unknown formats pass through unchanged."""
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return parsed.strftime(DISPLAY_DATE_FORMAT)

    match = _ZONE_NAME_RE.search(value)
    if match:
        bare = value[: match.start()]
        for fmt in DATE_FORMATS:
            if not fmt.endswith(" %Z"):
                continue
            try:
                parsed = datetime.strptime(bare, fmt[: -len(" %Z")])
            except ValueError:
                continue
            return parsed.strftime(DISPLAY_DATE_FORMAT)
    return value


# ── Internal helpers ───────────────────────────────────────────────────────────


def _extract_headers(payload: WirePart | None, names: tuple[str, ...]) -> dict[str, str]:
    if payload is None:
        return {name: "" for name in names}
    return {name: payload.header(name) for name in names}


def _text_leaves(part: WirePart, mime_type: str) -> Iterator[WirePart]:
    """Yield body-candidate leaves of ``mime_type``; named parts are attachments, not bodies."""
    if part.filename:
        return
    if part.mime_type.startswith("multipart/"):
        for child in part.parts:
            yield from _text_leaves(child, mime_type)
    elif part.mime_type == mime_type and part.data:
        yield part


def _named_parts(part: WirePart) -> Iterator[WirePart]:
    if part.filename:
        yield part
        return
    for child in part.parts:
        yield from _named_parts(child)
