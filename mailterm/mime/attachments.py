"""Attachment transfer: save remote attachments locally, vet local files for upload."""

import logging
from pathlib import Path

from mailterm.gmail.client import MailService
from mailterm.mime.decoder import decode_base64
from mailterm.mime.encoder import AttachmentError, AttachmentNotFoundError
from mailterm.mime.types import AttachmentRef

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOADS_DIR = Path("downloads")
_FALLBACK_FILENAME = "attachment"
_ALLOWED_PUNCTUATION = frozenset(" -_.")


def sanitize_filename(name: str) -> str:
    """Map every character except letters, digits, space, ``-``, ``_`` and ``.`` to ``_``.

    Names that would still resolve outside the downloads directory
    (empty, ``.``, ``..``) are replaced by a fixed fallback.
    """
    cleaned = "".join(
        ch if ch.isalnum() or ch in _ALLOWED_PUNCTUATION else "_" for ch in name
    )
    if not cleaned.strip(". "):
        return _FALLBACK_FILENAME
    return cleaned


async def fetch_attachment_bytes(service: MailService, ref: AttachmentRef) -> bytes:
    """Retrieve and decode one attachment's payload."""
    if ref.attachment_id:
        data = await service.get_attachment(ref.message_id, ref.attachment_id)
    else:
        data = ref.inline_data
    raw = decode_base64(data.rstrip("="))
    if raw is None:
        raise AttachmentError(ref.filename, f"Failed to decode: {ref.filename}")
    return raw


def save_attachment(data: bytes, filename: str, downloads_dir: Path = DEFAULT_DOWNLOADS_DIR) -> Path:
    """Write ``data`` under ``downloads_dir`` (created if absent) and return the path."""
    downloads_dir.mkdir(parents=True, exist_ok=True)
    target = downloads_dir / sanitize_filename(filename)
    target.write_bytes(data)
    logger.info("Saved attachment %s (%d bytes)", target, len(data))
    return target


def validate_attachment_path(path: str) -> Path:
    """Check that ``path`` names an existing regular file before it joins a draft."""
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise AttachmentNotFoundError(path)
    return file_path
