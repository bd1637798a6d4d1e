"""Tests for Settings.from_env."""

from pathlib import Path

import pytest

from mailterm.config import DEFAULT_INBOX_QUERY, Settings
from mailterm.mime.types import MAX_ATTACHMENT_BYTES

_VARS = (
    "MAILTERM_CREDENTIALS_FILE",
    "MAILTERM_TOKEN_FILE",
    "MAILTERM_DOWNLOADS_DIR",
    "MAILTERM_INBOX_QUERY",
    "MAILTERM_INBOX_MAX_RESULTS",
    "MAILTERM_SEARCH_MAX_RESULTS",
    "MAILTERM_LABEL_MAX_RESULTS",
    "MAILTERM_HTTP_TIMEOUT",
    "MAILTERM_LOG_FILE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings.from_env()
    assert settings.credentials_file == Path("credentials.json")
    assert settings.token_file == Path.home() / ".mailterm-token.json"
    assert settings.downloads_dir == Path("downloads")
    assert settings.inbox_query == DEFAULT_INBOX_QUERY
    assert (settings.inbox_max_results, settings.search_max_results, settings.label_max_results) == (
        10,
        30,
        10,
    )
    assert settings.attachment_limit == MAX_ATTACHMENT_BYTES
    assert settings.log_level == "INFO"


def test_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MAILTERM_CREDENTIALS_FILE", str(tmp_path / "client.json"))
    monkeypatch.setenv("MAILTERM_DOWNLOADS_DIR", str(tmp_path / "dl"))
    monkeypatch.setenv("MAILTERM_INBOX_QUERY", "in:inbox")
    monkeypatch.setenv("MAILTERM_SEARCH_MAX_RESULTS", "50")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.credentials_file == tmp_path / "client.json"
    assert settings.downloads_dir == tmp_path / "dl"
    assert settings.inbox_query == "in:inbox"
    assert settings.search_max_results == 50
    assert settings.log_level == "DEBUG"


def test_token_file_expands_home(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAILTERM_TOKEN_FILE", "~/tok.json")
    assert Settings.from_env().token_file == Path.home() / "tok.json"


@pytest.mark.parametrize("raw", ["ten", "", "  "])
def test_bad_integer_falls_back(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("MAILTERM_INBOX_MAX_RESULTS", raw)
    assert Settings.from_env().inbox_max_results == 10
