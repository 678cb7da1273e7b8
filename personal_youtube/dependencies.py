from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from personal_youtube.config import AppSettings, load_settings
from personal_youtube.repositories.database import Database
from personal_youtube.repositories.session_token_repository import SessionTokenRepository
from personal_youtube.services.listing_service import (
    CatalogClientFactory,
    ListingOptions,
    ListingService,
)
from personal_youtube.services.oauth_session import OAuthSessionManager
from personal_youtube.services.youtube_catalog_client import build_catalog_client

SESSION_COOKIE_NAME = "personal_youtube_session"
SESSION_HEADER_NAME = "X-Session-ID"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_token_repository() -> SessionTokenRepository:
    database = Database(get_settings().db_path)
    database.initialize()
    return SessionTokenRepository(database)


def get_catalog_client_factory() -> CatalogClientFactory:
    return build_catalog_client


def get_session_id(request: Request) -> str:
    candidates = (
        request.cookies.get(SESSION_COOKIE_NAME),
        request.headers.get(SESSION_HEADER_NAME),
    )
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    raise HTTPException(status_code=401, detail="Missing host session identifier.")


def get_oauth_manager(
    session_id: Annotated[str, Depends(get_session_id)],
    settings: Annotated[AppSettings, Depends(get_settings)],
    token_repository: Annotated[SessionTokenRepository, Depends(get_token_repository)],
) -> OAuthSessionManager:
    return OAuthSessionManager(
        session_id=session_id,
        token_repository=token_repository,
        client_id=settings.client_id or "",
        client_secret=settings.client_secret or "",
        redirect_uri=settings.redirect_uri,
    )


def get_listing_service(
    repository_id: str,
    oauth: Annotated[OAuthSessionManager, Depends(get_oauth_manager)],
    settings: Annotated[AppSettings, Depends(get_settings)],
    token_repository: Annotated[SessionTokenRepository, Depends(get_token_repository)],
    client_factory: Annotated[CatalogClientFactory, Depends(get_catalog_client_factory)],
) -> ListingService:
    return ListingService(
        repository_id=repository_id,
        oauth=oauth,
        token_repository=token_repository,
        client_factory=client_factory,
        options=ListingOptions(
            page_size=settings.page_size,
            supports_total_count=settings.supports_total_count,
            supports_sort_and_cursor_reuse=settings.supports_sort_and_cursor_reuse,
        ),
    )


def reset_cached_dependencies() -> None:
    get_token_repository.cache_clear()
    get_settings.cache_clear()
