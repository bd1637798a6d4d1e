"""Outbound MIME encoding: Draft → multipart/mixed wire bytes → base64 payload.

The byte layout is fixed (CRLF line endings, header order, a single closing
boundary) because the receiving service parses it verbatim.
"""

import base64
import logging
import mimetypes
import secrets
from pathlib import Path

from mailterm.mime.types import MAX_ATTACHMENT_BYTES, Draft

logger = logging.getLogger(__name__)

CRLF = "\r\n"
DEFAULT_MIME_TYPE = "application/octet-stream"


class AttachmentError(Exception):
    """An attachment cannot be included in an outgoing message."""

    def __init__(self, path: str | Path, message: str) -> None:
        super().__init__(message)
        self.path = str(path)


class AttachmentNotFoundError(AttachmentError):
    """The attachment path does not name a readable regular file."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(path, f"File not found: {path}")


class AttachmentTooLargeError(AttachmentError):
    """One attachment on its own exceeds the size limit."""

    def __init__(self, path: str | Path, size: int, limit: int) -> None:
        super().__init__(path, f"attachment too large: {Path(path).name} (max {limit // (1024 * 1024)}MB)")
        self.size = size
        self.limit = limit



class MessageTooLargeError(AttachmentError):
    """The attachments together exceed the size limit for one message."""

    def __init__(self, path: str | Path, total: int, limit: int) -> None:
        super().__init__(
            path,
            f"attachments too large: total exceeds {limit // (1024 * 1024)}MB at {Path(path).name}",
        )
        self.total = total
        self.limit = limit


def new_boundary() -> str:
    """Return a random 60-character hex multipart boundary."""
    return secrets.token_hex(30)


def guess_mime_type(path: str | Path) -> str:
    mime_type, _ = mimetypes.guess_type(str(path), strict=False)
    return mime_type or DEFAULT_MIME_TYPE


def check_attachment(path: str | Path, limit: int = MAX_ATTACHMENT_BYTES) -> int:
    """Return the file size, raising AttachmentError if it cannot be sent."""
    file_path = Path(path)
    try:
        stat = file_path.stat()
    except OSError as exc:
        raise AttachmentNotFoundError(path) from exc
    if not file_path.is_file():
        raise AttachmentNotFoundError(path)
    if stat.st_size > limit:
        raise AttachmentTooLargeError(path, stat.st_size, limit)
    return stat.st_size


def build_headers(draft: Draft, boundary: str) -> str:
    """Top-level headers, ending with the blank line that opens the body."""
    lines: list[str] = []
    if "@" in draft.sender:
        lines.append(f"From: {draft.sender}")
    lines.append(f"To: {draft.to}")
    if draft.cc:
        lines.append(f"Cc: {draft.cc}")
    if draft.bcc:
        lines.append(f"Bcc: {draft.bcc}")
    lines.append(f"Subject: {draft.subject}")
    lines.append("MIME-Version: 1.0")
    lines.append(f"Content-Type: multipart/mixed; boundary={boundary}")
    return CRLF.join(lines) + CRLF + CRLF


def encode_draft(
    draft: Draft,
    *,
    boundary: str | None = None,
    limit: int = MAX_ATTACHMENT_BYTES,
) -> bytes:
    """Assemble the complete multipart message for ``draft``.

    Every attachment is checked before any file content is read, and so is
    their combined size; an oversized or missing file aborts the whole
    message and nothing partial is ever produced.
    """
    boundary = boundary or new_boundary()
    total = 0
    for path in draft.attachments:
        total += check_attachment(path, limit)
        if total > limit:
            raise MessageTooLargeError(path, total, limit)

    out: list[bytes] = [
        build_headers(draft, boundary).encode("utf-8"),
        (
            f"--{boundary}{CRLF}"
            f"Content-Type: text/plain; charset=utf-8{CRLF}{CRLF}"
            f"{draft.body}{CRLF}"
        ).encode("utf-8"),
    ]

    for position, path in enumerate(draft.attachments):
        out.append(_attachment_part(Path(path), boundary, first=position == 0))

    out.append(f"{CRLF}--{boundary}--{CRLF}".encode("ascii"))
    message = b"".join(out)
    logger.debug(
        "Encoded message to=%r with %d attachment(s), %d bytes",
        draft.to,
        len(draft.attachments),
        len(message),
    )
    return message


def encode_raw(message: bytes) -> str:
    """URL-safe base64 of the whole message, as ``send_raw`` expects."""
    return base64.urlsafe_b64encode(message).decode("ascii")


def _attachment_part(path: Path, boundary: str, *, first: bool) -> bytes:
    # Header names in lexical order: Disposition, Transfer-Encoding, Type.
    opening = f"--{boundary}{CRLF}" if first else f"{CRLF}--{boundary}{CRLF}"
    headers = (
        f'Content-Disposition: attachment; filename="{path.name}"{CRLF}'
        f"Content-Transfer-Encoding: base64{CRLF}"
        f"Content-Type: {guess_mime_type(path)}{CRLF}"
        f"{CRLF}"
    )
    try:
        payload = base64.b64encode(path.read_bytes())
    except OSError as exc:
        raise AttachmentNotFoundError(path) from exc
    return (opening + headers).encode("utf-8") + payload
