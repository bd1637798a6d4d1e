"""OAuth 2.0 authorisation for the Gmail API — yields a ready GmailClient."""

import json
import logging
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlencode

import httpx

from mailterm.gmail.client import GmailClient

logger = logging.getLogger(__name__)

OAUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPES = ["https://mail.google.com/"]

# Refresh a little early so a token never expires mid-session on the first call.
_EXPIRY_SKEW = timedelta(seconds=60)


class AuthError(Exception):
    """Raised when no authorised Gmail handle can be produced."""


class Authenticator(Protocol):
    """Produces an already-authorised mail service handle."""

    async def authorize(self) -> GmailClient:
        ...


class TokenFileAuthenticator:
    """Authorises against Google using a client secrets file and a cached token file.

    Flow, in order:
      1. Load the cached token; refresh it with the refresh token when stale.
      2. If there is no cached token, or the refresh is rejected, run the
         interactive consent flow: print the consent URL, read the pasted
         code, exchange it for tokens.
      3. Persist whatever token was obtained (best effort).
    """

    def __init__(
        self,
        credentials_file: Path,
        token_file: Path,
        *,
        timeout: float = 30.0,
        prompt: Callable[[str], str] = input,
        announce: Callable[[str], None] = print,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials_file = credentials_file
        self._token_file = token_file
        self._timeout = timeout
        self._prompt = prompt
        self._announce = announce
        self._transport = transport

    async def authorize(self) -> GmailClient:
        """Return a GmailClient whose HTTP client carries a valid bearer token."""
        client_config = self._load_client_config()
        token = self._load_token()

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as oauth_http:
            if token is None:
                token = await self._consent_flow(oauth_http, client_config)
            elif self._is_stale(token):
                try:
                    token = await self._refresh(oauth_http, client_config, token)
                except AuthError as exc:
                    logger.warning("Token refresh failed (%s); re-running consent flow", exc)
                    token = await self._consent_flow(oauth_http, client_config)

        self._save_token(token)
        http = httpx.AsyncClient(
            auth=_RefreshingBearerAuth(self, client_config, token),
            timeout=self._timeout,
            transport=self._transport,
        )
        return GmailClient(http)

    async def refresh_token(self, client: dict[str, str], token: dict[str, Any]) -> dict[str, Any]:
        """Refresh ``token`` and persist the result; used mid-session on expiry."""
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as oauth_http:
            refreshed = await self._refresh(oauth_http, client, token)
        self._save_token(refreshed)
        return refreshed

    # ── Internal helpers ───────────────────────────────────────────────────────

    def _load_client_config(self) -> dict[str, str]:
        """Read client_id/client_secret from an ``installed`` or ``web`` secrets file."""
        try:
            raw = json.loads(self._credentials_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise AuthError(f"unable to read credentials file {self._credentials_file}: {exc}") from exc
        section = raw.get("installed") or raw.get("web") or raw
        if not isinstance(section, dict) or not section.get("client_id"):
            raise AuthError(f"no client_id in {self._credentials_file}")
        redirect_uris = section.get("redirect_uris") or ["http://localhost"]
        return {
            "client_id": str(section["client_id"]),
            "client_secret": str(section.get("client_secret", "")),
            "redirect_uri": str(redirect_uris[0]),
        }

    def _load_token(self) -> dict[str, Any] | None:
        if not self._token_file.is_file():
            return None
        try:
            token = json.loads(self._token_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable token file %s: %s", self._token_file, exc)
            return None
        if not isinstance(token, dict) or not token.get("access_token"):
            return None
        return token

    def _save_token(self, token: dict[str, Any]) -> None:
        try:
            self._token_file.write_text(json.dumps(token), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not persist token to %s: %s", self._token_file, exc)

    @staticmethod
    def _is_stale(token: dict[str, Any]) -> bool:
        expiry = token.get("expiry")
        if not expiry:
            return True
        try:
            expires_at = datetime.fromisoformat(str(expiry))
        except ValueError:
            return True
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) + _EXPIRY_SKEW >= expires_at

    @staticmethod
    def _with_expiry(tokens: dict[str, Any]) -> dict[str, Any]:
        expires_in = int(tokens.get("expires_in", 3600))
        tokens["expiry"] = (datetime.now(timezone.utc) + timedelta(seconds=expires_in)).isoformat()
        return tokens

    async def _refresh(
        self, http: httpx.AsyncClient, client: dict[str, str], token: dict[str, Any]
    ) -> dict[str, Any]:
        refresh_token = token.get("refresh_token")
        if not refresh_token:
            raise AuthError("cached token has no refresh token")
        logger.info("Refreshing Gmail access token")
        refreshed = await self._post_token(
            http,
            {
                "client_id": client["client_id"],
                "client_secret": client["client_secret"],
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        # Google omits the refresh token on refresh responses; keep the old one.
        refreshed.setdefault("refresh_token", refresh_token)
        return self._with_expiry(refreshed)

    async def _consent_flow(self, http: httpx.AsyncClient, client: dict[str, str]) -> dict[str, Any]:
        params = {
            "client_id": client["client_id"],
            "redirect_uri": client["redirect_uri"],
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": "state-token",
        }
        self._announce(
            f"\nAuthorization required. Please visit:\n{OAUTH_URL}?{urlencode(params)}\n"
        )
        code = self._prompt("Enter authorization code: ").strip()
        if not code:
            raise AuthError("no authorization code entered")
        tokens = await self._post_token(
            http,
            {
                "code": code,
                "client_id": client["client_id"],
                "client_secret": client["client_secret"],
                "redirect_uri": client["redirect_uri"],
                "grant_type": "authorization_code",
            },
        )
        logger.info("Exchanged authorization code for tokens")
        return self._with_expiry(tokens)

    @staticmethod
    async def _post_token(http: httpx.AsyncClient, form: dict[str, str]) -> dict[str, Any]:
        try:
            response = await http.post(TOKEN_URL, data=form)
        except httpx.HTTPError as exc:
            raise AuthError(f"token endpoint unreachable: {exc}") from exc
        if response.status_code != 200:
            raise AuthError(f"token endpoint returned {response.status_code}: {response.text[:200]}")
        tokens = response.json()
        if not isinstance(tokens, dict) or not tokens.get("access_token"):
            raise AuthError("token endpoint response carried no access token")
        return tokens


class _RefreshingBearerAuth(httpx.Auth):
    """Attach the bearer token; refresh it when stale or when the API answers 401."""

    def __init__(
        self,
        authenticator: TokenFileAuthenticator,
        client: dict[str, str],
        token: dict[str, Any],
    ) -> None:
        self._authenticator = authenticator
        self._client = client
        self._token = token

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        if TokenFileAuthenticator._is_stale(self._token):
            self._token = await self._authenticator.refresh_token(self._client, self._token)
        request.headers["Authorization"] = f"Bearer {self._token['access_token']}"
        response = yield request
        if response.status_code == 401 and self._token.get("refresh_token"):
            logger.info("Access token rejected; refreshing and retrying once")
            self._token = await self._authenticator.refresh_token(self._client, self._token)
            request.headers["Authorization"] = f"Bearer {self._token['access_token']}"
            yield request
