"""OAuth credential handling for the owner's Google account.

``CredentialStore`` is created once at process start, handed to the Google
gateway, and updated by the OAuth callback. Nothing else reads the token
file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from coordinator.errors import Unauthenticated

log = logging.getLogger("coordinator.credentials")

SCOPES = ["https://www.googleapis.com/auth/calendar"]


class CredentialStore:
    """Holds the OAuth user credential and persists it to a token file."""

    def __init__(self, token_path: str | Path) -> None:
        self._token_path = Path(token_path)
        self._credentials: Optional[Credentials] = None

    @property
    def token_path(self) -> Path:
        return self._token_path

    def load(self) -> bool:
        """Read the token file if present. Returns True when a credential was loaded."""
        if not self._token_path.exists():
            log.info("No Google token at %s, owner must authorize", self._token_path)
            return False
        try:
            info = json.loads(self._token_path.read_text(encoding="utf-8"))
            self._credentials = Credentials.from_authorized_user_info(info, SCOPES)
        except (OSError, ValueError) as exc:
            log.error("Failed to load Google token from %s: %s", self._token_path, exc)
            self._credentials = None
            return False
        log.info("Loaded Google token from %s", self._token_path)
        return True

    @property
    def is_authenticated(self) -> bool:
        creds = self._credentials
        if creds is None:
            return False
        return creds.valid or bool(creds.refresh_token)

    def get_credentials(self) -> Credentials:
        """Return a usable credential, refreshing an expired token first.

        Raises:
            Unauthenticated: no credential, or the refresh was refused.
        """
        creds = self._credentials
        if creds is None:
            raise Unauthenticated("Google account not connected.")

        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as exc:
                log.warning("Google token refresh refused: %s", exc)
                raise Unauthenticated("Google token expired; reconnect the account.") from exc
            self._persist(creds)

        if not creds.valid and not creds.refresh_token:
            raise Unauthenticated("Google token is no longer valid.")
        return creds

    def update(self, credentials: Credentials) -> None:
        """Replace the credential (OAuth callback) and persist it."""
        self._credentials = credentials
        self._persist(credentials)
        log.info("Google credential updated")

    def clear(self) -> None:
        self._credentials = None
        self._token_path.unlink(missing_ok=True)

    def _persist(self, credentials: Credentials) -> None:
        self._token_path.write_text(credentials.to_json(), encoding="utf-8")


class OAuthFlow:
    """Web-server OAuth flow built from a downloaded client secrets file."""

    def __init__(self, client_secrets_path: str | Path, redirect_uri: str = "") -> None:
        self._client_secrets_path = Path(client_secrets_path)
        self._redirect_uri = redirect_uri

    def _load_client_config(self) -> dict[str, Any]:
        try:
            return json.loads(self._client_secrets_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise Unauthenticated(
                f"Google client secrets unavailable at {self._client_secrets_path}: {exc}"
            ) from exc

    def _flow(self) -> Flow:
        client_config = self._load_client_config()
        redirect_uri = self._redirect_uri
        if not redirect_uri:
            section = client_config.get("web") or client_config.get("installed") or {}
            redirect_uris = section.get("redirect_uris") or [""]
            redirect_uri = redirect_uris[0]
        return Flow.from_client_config(
            client_config,
            scopes=SCOPES,
            redirect_uri=redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self) -> str:
        url, _state = self._flow().authorization_url(
            access_type="offline",
            prompt="consent",
        )
        return url

    def exchange_code(self, code: str) -> Credentials:
        """Trade the callback ``code`` for a user credential."""
        flow = self._flow()
        flow.fetch_token(code=code)
        return flow.credentials
