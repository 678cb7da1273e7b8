from __future__ import annotations

import logging
import secrets
from importlib import import_module
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from personal_youtube.models.listing_contracts import LoginOption
from personal_youtube.repositories.session_token_repository import SessionTokenRepository
from personal_youtube.services.youtube_catalog_client import (
    YOUTUBE_READONLY_SCOPE,
    YouTubeServiceError,
)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
STATE_SESSION_KEY_PARAM = "sesskey"

LOGGER = logging.getLogger("personal_youtube.oauth")


class OAuthSessionManager:
    """Authorization-code flow bound to one host session.

    The access token lives in the session store; nothing here talks to the provider except
    the one-time code exchange in `authenticate`.
    """

    def __init__(
        self,
        *,
        session_id: str,
        token_repository: SessionTokenRepository,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> None:
        self._session_id = session_id
        self._token_repository = token_repository
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    @property
    def access_token(self) -> str | None:
        return self._token_repository.get_access_token(self._session_id)

    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def authenticate(self, authorization_code: str) -> None:
        if not authorization_code:
            return
        flow = self._build_flow()
        try:
            flow.fetch_token(code=authorization_code)
            token = flow.credentials.token
        except Exception as exc:
            # Exception text may echo client credentials; log the type only.
            LOGGER.warning("oauth code_exchange_failed error_type=%s", type(exc).__name__)
            return

        if not isinstance(token, str) or not token:
            LOGGER.warning("oauth code_exchange_returned_no_token")
            return
        self._token_repository.store_access_token(self._session_id, token)
        LOGGER.info("oauth authenticated")

    def build_authorization_url(self, return_state: str) -> str:
        flow = self._build_flow()
        url, _state = flow.authorization_url(
            state=self._state_with_session_key(return_state),
            access_type="online",
            include_granted_scopes="true",
        )
        return str(url)

    def login_options(self, return_state: str) -> list[LoginOption]:
        return [LoginOption(url=self.build_authorization_url(return_state))]

    def logout(self) -> None:
        self._token_repository.store_access_token(self._session_id, None)

    def session_key(self) -> str:
        existing = self._token_repository.get_session_key(self._session_id)
        if existing:
            return existing
        created = secrets.token_urlsafe(16)
        self._token_repository.store_session_key(self._session_id, created)
        return created

    def verify_state(self, state: str) -> str | None:
        """Return the local return location encoded in `state`, or None if it is not trusted."""
        if not _is_local_location(state):
            return None
        parts = urlsplit(state)
        query = parse_qsl(parts.query, keep_blank_values=True)
        presented = [value for key, value in query if key == STATE_SESSION_KEY_PARAM]
        expected = self._token_repository.get_session_key(self._session_id)
        if expected is None or len(presented) != 1:
            return None
        if not secrets.compare_digest(presented[0], expected):
            return None
        remaining = [(key, value) for key, value in query if key != STATE_SESSION_KEY_PARAM]
        return urlunsplit(("", "", parts.path, urlencode(remaining), parts.fragment))

    def _state_with_session_key(self, return_state: str) -> str:
        location = return_state if _is_local_location(return_state) else "/"
        parts = urlsplit(location)
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key != STATE_SESSION_KEY_PARAM
        ]
        query.append((STATE_SESSION_KEY_PARAM, self.session_key()))
        return urlunsplit(("", "", parts.path, urlencode(query), parts.fragment))

    def _build_flow(self) -> Any:
        return _build_oauth_flow(
            client_id=self._client_id,
            client_secret=self._client_secret,
            redirect_uri=self._redirect_uri,
        )


def _build_oauth_flow(*, client_id: str, client_secret: str, redirect_uri: str) -> Any:
    try:
        flow_module = import_module("google_auth_oauthlib.flow")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeServiceError(
            "OAuth login requires the google-auth-oauthlib dependency"
        ) from exc

    flow_cls: Any = flow_module.Flow
    client_config = {
        "web": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [redirect_uri],
        }
    }
    # The code exchange happens in a later request than the authorization redirect, so
    # no PKCE verifier can be carried between them.
    return flow_cls.from_client_config(
        client_config,
        scopes=[YOUTUBE_READONLY_SCOPE],
        redirect_uri=redirect_uri,
        autogenerate_code_verifier=False,
    )


def _is_local_location(location: str) -> bool:
    if not location.startswith("/") or location.startswith("//") or "\\" in location:
        return False
    parts = urlsplit(location)
    return not parts.scheme and not parts.netloc
