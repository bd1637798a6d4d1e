"""Runtime settings, read from the environment (and a .env file loaded by the CLI)."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from mailterm.mime.types import MAX_ATTACHMENT_BYTES

logger = logging.getLogger(__name__)

DEFAULT_INBOX_QUERY = "in:inbox category:primary"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default


@dataclass
class Settings:
    """Everything tunable about a session."""

    credentials_file: Path = field(default_factory=lambda: Path("credentials.json"))
    token_file: Path = field(default_factory=lambda: Path.home() / ".mailterm-token.json")
    downloads_dir: Path = field(default_factory=lambda: Path("downloads"))
    inbox_query: str = DEFAULT_INBOX_QUERY
    inbox_max_results: int = 10
    search_max_results: int = 30
    label_max_results: int = 10
    http_timeout: int = 30
    attachment_limit: int = MAX_ATTACHMENT_BYTES
    log_file: Path = field(default_factory=lambda: Path("mailterm.log"))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build Settings from MAILTERM_* environment variables (and LOG_LEVEL)."""
        defaults = cls()
        return cls(
            credentials_file=Path(
                os.environ.get("MAILTERM_CREDENTIALS_FILE", str(defaults.credentials_file))
            ),
            token_file=Path(
                os.environ.get("MAILTERM_TOKEN_FILE", str(defaults.token_file))
            ).expanduser(),
            downloads_dir=Path(
                os.environ.get("MAILTERM_DOWNLOADS_DIR", str(defaults.downloads_dir))
            ),
            inbox_query=os.environ.get("MAILTERM_INBOX_QUERY", defaults.inbox_query),
            inbox_max_results=_env_int("MAILTERM_INBOX_MAX_RESULTS", defaults.inbox_max_results),
            search_max_results=_env_int("MAILTERM_SEARCH_MAX_RESULTS", defaults.search_max_results),
            label_max_results=_env_int("MAILTERM_LABEL_MAX_RESULTS", defaults.label_max_results),
            http_timeout=_env_int("MAILTERM_HTTP_TIMEOUT", defaults.http_timeout),
            log_file=Path(os.environ.get("MAILTERM_LOG_FILE", str(defaults.log_file))),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level).upper(),
        )
