from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel, ConfigDict
from structlog.contextvars import bind_contextvars, reset_contextvars

from personal_youtube.config import OAUTH_CALLBACK_PATH
from personal_youtube.dependencies import (
    get_listing_service,
    get_oauth_manager,
    get_session_id,
    get_token_repository,
)
from personal_youtube.models.listing_contracts import (
    CAPABILITIES,
    LogoutResponse,
    PageResult,
    RepositoryCapabilities,
    RepositoryError,
    RepositoryResponse,
)
from personal_youtube.repositories.session_token_repository import SessionTokenRepository
from personal_youtube.services.listing_service import ListingService
from personal_youtube.services.oauth_session import OAuthSessionManager
from personal_youtube.services.youtube_catalog_client import YouTubeApiError

router = APIRouter()

LOGGER = logging.getLogger("personal_youtube.api")


class SessionEndResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ok: bool
    cleared: int


def _listing_location(repository_id: str) -> str:
    return f"/repositories/{repository_id}/listing"


def _page_response(
    repository_id: str,
    result: PageResult | None,
    oauth: OAuthSessionManager,
) -> RepositoryResponse:
    if result is None:
        return RepositoryResponse(
            ok=True,
            result=None,
            login=oauth.login_options(_listing_location(repository_id)),
        )
    return RepositoryResponse(ok=True, result=result)


def _api_error_response(exc: YouTubeApiError) -> JSONResponse:
    payload = RepositoryResponse(
        ok=False,
        error=RepositoryError(code="apierror", message=str(exc)),
    )
    return JSONResponse(status_code=502, content=payload.model_dump(mode="json"))


@router.get(
    OAUTH_CALLBACK_PATH,
    tags=["oauth"],
    operation_id="oauth2_callback",
    response_class=RedirectResponse,
)
def oauth2_callback(
    oauth: Annotated[OAuthSessionManager, Depends(get_oauth_manager)],
    state: str = "",
    code: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    return_location = oauth.verify_state(state)
    if return_location is None:
        LOGGER.warning("oauth callback_rejected reason=invalid_state")
        raise HTTPException(status_code=403, detail="Invalid OAuth state.")

    if code:
        oauth.authenticate(code)
    else:
        LOGGER.info("oauth callback_without_code provider_error=%s", error or "none")
    return RedirectResponse(url=return_location)


@router.get(
    "/repositories/{repository_id}/listing",
    response_model=RepositoryResponse,
    tags=["repository"],
    operation_id="repository_get_listing",
)
def repository_get_listing(
    repository_id: str,
    service: Annotated[ListingService, Depends(get_listing_service)],
    oauth: Annotated[OAuthSessionManager, Depends(get_oauth_manager)],
    path: str = "",
    page: str = "",
) -> Response | RepositoryResponse:
    context_tokens = bind_contextvars(repository_id=repository_id, repository_action="listing")
    try:
        result = service.get_listing(path, page)
    except YouTubeApiError as exc:
        return _api_error_response(exc)
    finally:
        reset_contextvars(**context_tokens)
    return _page_response(repository_id, result, oauth)


@router.get(
    "/repositories/{repository_id}/search",
    response_model=RepositoryResponse,
    tags=["repository"],
    operation_id="repository_search",
)
def repository_search(
    repository_id: str,
    service: Annotated[ListingService, Depends(get_listing_service)],
    oauth: Annotated[OAuthSessionManager, Depends(get_oauth_manager)],
    s: str = "",
    page: str = "",
    sort: str = "",
) -> Response | RepositoryResponse:
    context_tokens = bind_contextvars(repository_id=repository_id, repository_action="search")
    try:
        result = service.search(s, page, sort or None)
    except YouTubeApiError as exc:
        return _api_error_response(exc)
    finally:
        reset_contextvars(**context_tokens)
    return _page_response(repository_id, result, oauth)


@router.get(
    "/repositories/{repository_id}/login",
    response_model=RepositoryResponse,
    tags=["repository"],
    operation_id="repository_login",
)
def repository_login(
    repository_id: str,
    oauth: Annotated[OAuthSessionManager, Depends(get_oauth_manager)],
    return_to: str | None = None,
) -> RepositoryResponse:
    location = return_to or _listing_location(repository_id)
    return RepositoryResponse(ok=True, login=oauth.login_options(location))


@router.post(
    "/repositories/{repository_id}/logout",
    response_model=LogoutResponse,
    tags=["repository"],
    operation_id="repository_logout",
)
def repository_logout(
    repository_id: str,
    oauth: Annotated[OAuthSessionManager, Depends(get_oauth_manager)],
) -> LogoutResponse:
    oauth.logout()
    return LogoutResponse(ok=True, login=oauth.login_options(_listing_location(repository_id)))


@router.get(
    "/capabilities",
    response_model=RepositoryCapabilities,
    tags=["repository"],
    operation_id="repository_capabilities",
)
def repository_capabilities() -> RepositoryCapabilities:
    return CAPABILITIES


@router.delete(
    "/session",
    response_model=SessionEndResponse,
    tags=["session"],
    operation_id="session_end",
)
def session_end(
    session_id: Annotated[str, Depends(get_session_id)],
    token_repository: Annotated[SessionTokenRepository, Depends(get_token_repository)],
) -> SessionEndResponse:
    cleared = token_repository.clear_session(session_id)
    return SessionEndResponse(ok=True, cleared=cleared)
