from __future__ import annotations

import types
from typing import Any
from urllib.parse import parse_qs, urlencode, urlsplit

import pytest

from personal_youtube.repositories.session_token_repository import SessionTokenRepository
from personal_youtube.services.oauth_session import OAuthSessionManager

REDIRECT_URI = "https://moodle.example/oauth2callback"


class FakeFlow:
    configs: list[dict[str, Any]] = []

    def __init__(self, client_config: dict[str, Any], scopes: list[str], **kwargs: Any) -> None:
        self.client_config = client_config
        self.scopes = scopes
        self.kwargs = kwargs
        self.credentials: Any = None

    @classmethod
    def from_client_config(
        cls, client_config: dict[str, Any], scopes: list[str], **kwargs: Any
    ) -> FakeFlow:
        flow = cls(client_config, scopes, **kwargs)
        cls.configs.append({"client_config": client_config, "scopes": scopes, **kwargs})
        return flow

    def authorization_url(self, **kwargs: str) -> tuple[str, str]:
        params = {
            "response_type": "code",
            "client_id": self.client_config["web"]["client_id"],
            "redirect_uri": self.kwargs["redirect_uri"],
            "scope": " ".join(self.scopes),
            **kwargs,
        }
        return f"https://accounts.google.com/o/oauth2/auth?{urlencode(params)}", kwargs["state"]

    def fetch_token(self, *, code: str) -> dict[str, str]:
        if code == "rejected-code":
            raise RuntimeError("invalid_grant client_secret=test-client-secret")
        if code == "tokenless-code":
            self.credentials = types.SimpleNamespace(token=None)
            return {}
        self.credentials = types.SimpleNamespace(token=f"ya29.{code}")
        return {"access_token": f"ya29.{code}"}


@pytest.fixture
def fake_flow(monkeypatch: pytest.MonkeyPatch) -> type[FakeFlow]:
    FakeFlow.configs = []

    def fake_import_module(name: str) -> object:
        if name == "google_auth_oauthlib.flow":
            return types.SimpleNamespace(Flow=FakeFlow)
        raise AssertionError(f"Unexpected module import: {name}")

    monkeypatch.setattr("personal_youtube.services.oauth_session.import_module", fake_import_module)
    return FakeFlow


def _manager(token_repository: SessionTokenRepository, session_id: str = "sess-1") -> OAuthSessionManager:
    return OAuthSessionManager(
        session_id=session_id,
        token_repository=token_repository,
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri=REDIRECT_URI,
    )


def test_authenticate_stores_access_token(
    token_repository: SessionTokenRepository,
    fake_flow: type[FakeFlow],
) -> None:
    manager = _manager(token_repository)
    assert manager.is_authenticated() is False

    manager.authenticate("good-code")

    assert manager.is_authenticated() is True
    assert manager.access_token == "ya29.good-code"
    assert token_repository.get_access_token("sess-1") == "ya29.good-code"
    config = fake_flow.configs[0]
    assert config["client_config"]["web"]["client_id"] == "test-client-id"
    assert config["client_config"]["web"]["client_secret"] == "test-client-secret"
    assert config["scopes"] == ["https://www.googleapis.com/auth/youtube.readonly"]
    assert config["redirect_uri"] == REDIRECT_URI
    assert config["autogenerate_code_verifier"] is False


@pytest.mark.parametrize("code", ["rejected-code", "tokenless-code", ""])
def test_failed_exchange_stores_nothing(
    token_repository: SessionTokenRepository,
    fake_flow: type[FakeFlow],
    code: str,
) -> None:
    _ = fake_flow
    manager = _manager(token_repository)

    manager.authenticate(code)

    assert manager.is_authenticated() is False


def test_logout_is_idempotent(
    token_repository: SessionTokenRepository,
    fake_flow: type[FakeFlow],
) -> None:
    _ = fake_flow
    manager = _manager(token_repository)
    manager.authenticate("good-code")

    manager.logout()
    manager.logout()

    assert manager.is_authenticated() is False


def test_sessions_do_not_share_tokens(
    token_repository: SessionTokenRepository,
    fake_flow: type[FakeFlow],
) -> None:
    _ = fake_flow
    _manager(token_repository, "sess-1").authenticate("good-code")

    assert _manager(token_repository, "sess-2").is_authenticated() is False


def test_authorization_url_embeds_redirect_scope_and_state(
    token_repository: SessionTokenRepository,
    fake_flow: type[FakeFlow],
) -> None:
    _ = fake_flow
    manager = _manager(token_repository)

    url = manager.build_authorization_url("/repositories/7/listing?callback=yes")

    query = parse_qs(urlsplit(url).query)
    assert query["redirect_uri"] == [REDIRECT_URI]
    assert query["scope"] == ["https://www.googleapis.com/auth/youtube.readonly"]
    state = query["state"][0]
    state_parts = urlsplit(state)
    assert state_parts.path == "/repositories/7/listing"
    state_query = parse_qs(state_parts.query)
    assert state_query["callback"] == ["yes"]
    assert state_query["sesskey"] == [manager.session_key()]


def test_authorization_url_is_deterministic_per_session(
    token_repository: SessionTokenRepository,
    fake_flow: type[FakeFlow],
) -> None:
    _ = fake_flow
    manager = _manager(token_repository)

    assert manager.build_authorization_url("/a") == manager.build_authorization_url("/a")


def test_non_local_return_state_falls_back_to_root(
    token_repository: SessionTokenRepository,
    fake_flow: type[FakeFlow],
) -> None:
    _ = fake_flow
    manager = _manager(token_repository)

    url = manager.build_authorization_url("https://evil.example/steal")

    state = parse_qs(urlsplit(url).query)["state"][0]
    assert urlsplit(state).path == "/"
    assert "evil.example" not in state


def test_verify_state_accepts_matching_session_key(
    token_repository: SessionTokenRepository,
) -> None:
    manager = _manager(token_repository)
    session_key = manager.session_key()

    location = manager.verify_state(f"/repositories/7/listing?callback=yes&sesskey={session_key}")

    assert location == "/repositories/7/listing?callback=yes"


@pytest.mark.parametrize(
    "state",
    [
        "/repositories/7/listing?sesskey=forged",
        "/repositories/7/listing",
        "//evil.example/?sesskey=SESSKEY",
        "https://evil.example/?sesskey=SESSKEY",
        "/\\evil.example/?sesskey=SESSKEY",
        "",
    ],
)
def test_verify_state_rejects_untrusted_state(
    token_repository: SessionTokenRepository,
    state: str,
) -> None:
    manager = _manager(token_repository)
    session_key = manager.session_key()

    assert manager.verify_state(state.replace("SESSKEY", session_key)) is None


def test_verify_state_rejects_key_from_other_session(
    token_repository: SessionTokenRepository,
) -> None:
    other_key = _manager(token_repository, "sess-2").session_key()
    manager = _manager(token_repository, "sess-1")
    manager.session_key()

    assert manager.verify_state(f"/listing?sesskey={other_key}") is None


def test_login_options_offer_popup(
    token_repository: SessionTokenRepository,
    fake_flow: type[FakeFlow],
) -> None:
    _ = fake_flow
    options = _manager(token_repository).login_options("/repositories/7/listing")

    assert len(options) == 1
    assert options[0].type == "popup"
    assert options[0].url.startswith("https://accounts.google.com/o/oauth2/auth?")


def test_authorization_url_with_google_auth_oauthlib(
    token_repository: SessionTokenRepository,
) -> None:
    manager = _manager(token_repository)

    url = manager.build_authorization_url("/repositories/7/listing")

    parts = urlsplit(url)
    query = parse_qs(parts.query)
    assert parts.netloc == "accounts.google.com"
    assert query["client_id"] == ["test-client-id"]
    assert query["redirect_uri"] == [REDIRECT_URI]
    assert query["scope"] == ["https://www.googleapis.com/auth/youtube.readonly"]
    assert manager.verify_state(query["state"][0]) == "/repositories/7/listing"
    assert "test-client-secret" not in url
