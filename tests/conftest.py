from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from personal_youtube.dependencies import reset_cached_dependencies
from personal_youtube.main import create_app
from personal_youtube.repositories.database import Database
from personal_youtube.repositories.session_token_repository import SessionTokenRepository


@pytest.fixture
def token_repository(tmp_path: Path) -> SessionTokenRepository:
    db = Database(tmp_path / "state.db")
    db.initialize()
    return SessionTokenRepository(db)


@pytest.fixture
def runtime_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("PERSONAL_YOUTUBE_DATA_DIR", str(data_dir))
    monkeypatch.setenv("PERSONAL_YOUTUBE_CLIENT_ID", "test-client-id.apps.example")
    monkeypatch.setenv("PERSONAL_YOUTUBE_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("PERSONAL_YOUTUBE_PUBLIC_BASE_URL", "https://moodle.example")
    monkeypatch.setenv("PERSONAL_YOUTUBE_PAGE_SIZE", "3")
    reset_cached_dependencies()

    yield data_dir

    reset_cached_dependencies()


@pytest.fixture
def client(runtime_env: Path) -> Iterator[TestClient]:
    _ = runtime_env
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
